"""Exception taxonomy for the session layer."""

from __future__ import annotations

from typing import Any, Optional

from shared.models.rpc import RpcError


class SessionError(RuntimeError):
    """Base class for session failures."""


class NotConnectedError(SessionError):
    """Raised when a write is attempted while the transport is not open."""


class ConnectError(SessionError):
    """Raised when the transport cannot be opened."""


class ConnectionClosedError(SessionError):
    """Raised for pending requests when the transport is torn down."""


class RequestTimeoutError(SessionError, TimeoutError):
    """Raised when a correlated request receives no response in time."""

    def __init__(self, method: str, request_id: str, timeout: float) -> None:
        super().__init__(f"Request timeout for method {method} (id: {request_id}) after {timeout:.2f}s")
        self.method = method
        self.request_id = request_id
        self.timeout = timeout


class RpcRequestError(SessionError):
    """Raised when the server answers a request with an error object."""

    def __init__(self, code: int, message: str, data: Optional[Any] = None) -> None:
        super().__init__(f"{message} (code {code})")
        self.code = code
        self.message = message
        self.data = data

    @classmethod
    def from_error(cls, error: RpcError) -> "RpcRequestError":
        return cls(error.code, error.message, error.data)


class AuthenticationError(SessionError):
    """Raised when the connect handshake is rejected or times out."""


class KeepaliveTimeoutError(SessionError):
    """Raised when a keepalive ping goes unanswered."""


class ReconnectFailedError(SessionError):
    """Raised when all reconnection attempts are exhausted."""

    def __init__(self, attempts: int) -> None:
        super().__init__(f"Reconnection failed after {attempts} attempt(s)")
        self.attempts = attempts


class ProtocolError(SessionError):
    """Raised for inbound frames that cannot be decoded or routed."""


class SessionDestroyedError(SessionError):
    """Raised when a destroyed session is used."""
