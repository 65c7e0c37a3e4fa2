"""Transport abstractions for the session layer."""

from __future__ import annotations

import enum
from abc import ABC, abstractmethod
from typing import Union

from shared.protocol import CLOSE_ABNORMAL, CLOSE_NORMAL


class ReadyState(enum.Enum):
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSING = "closing"
    CLOSED = "closed"


class TransportNotReady(RuntimeError):
    """Raised when IO is attempted on a transport that is not open."""


class TransportClosed(ConnectionError):
    """Raised by :meth:`BaseTransport.receive` once the connection is closed."""

    def __init__(self, code: int = CLOSE_ABNORMAL, reason: str = "") -> None:
        super().__init__(f"Transport closed (code {code}): {reason}")
        self.code = code
        self.reason = reason


class BaseTransport(ABC):
    """Abstract WebSocket-like transport carrying text frames."""

    @property
    @abstractmethod
    def ready_state(self) -> ReadyState:
        ...

    @abstractmethod
    async def connect(self) -> None:
        ...

    @abstractmethod
    async def send(self, frame: str) -> None:
        ...

    @abstractmethod
    async def receive(self) -> Union[str, bytes]:
        """Return the next frame as received; binary frames stay ``bytes``."""

    @abstractmethod
    async def close(self, code: int = CLOSE_NORMAL, reason: str = "") -> None:
        ...

    @abstractmethod
    def abort(self) -> None:
        """Drop the connection immediately without a closing handshake."""
