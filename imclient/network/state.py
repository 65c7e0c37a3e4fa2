"""Connection state tracking for the session."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime, timezone


class ConnectionState(enum.Enum):
    """Session state machine: idle → connecting → authenticating → connected → closed."""

    IDLE = "idle"
    CONNECTING = "connecting"
    AUTHENTICATING = "authenticating"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"
    CLOSED = "closed"


_ALLOWED: dict[ConnectionState, set[ConnectionState]] = {
    ConnectionState.IDLE: {ConnectionState.CONNECTING, ConnectionState.CLOSED},
    ConnectionState.CONNECTING: {ConnectionState.AUTHENTICATING, ConnectionState.CLOSED},
    ConnectionState.AUTHENTICATING: {ConnectionState.CONNECTED, ConnectionState.CLOSED},
    ConnectionState.CONNECTED: {ConnectionState.CLOSED},
    ConnectionState.RECONNECTING: {ConnectionState.CONNECTING, ConnectionState.CLOSED},
    ConnectionState.CLOSED: {ConnectionState.CONNECTING, ConnectionState.RECONNECTING},
}


@dataclass
class ConnectionTracker:
    """In-memory connection state with validated transitions."""

    state: ConnectionState = ConnectionState.IDLE
    last_transition_at: datetime = field(default_factory=lambda: datetime.now(tz=timezone.utc))

    def transition(self, next_state: ConnectionState) -> None:
        """Move into ``next_state``, raising ``ValueError`` for disallowed moves."""

        if not self.can_transition(next_state):
            raise ValueError(f"Invalid transition {self.state.value} → {next_state.value}")
        self.state = next_state
        self.last_transition_at = datetime.now(tz=timezone.utc)

    def can_transition(self, next_state: ConnectionState) -> bool:
        return next_state in _ALLOWED.get(self.state, set())
