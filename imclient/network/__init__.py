"""Network stack (transport/session/registry) for the IM server connection."""

from imclient.network.client import get_default_session, init
from imclient.network.errors import (
    AuthenticationError,
    ConnectError,
    ConnectionClosedError,
    KeepaliveTimeoutError,
    NotConnectedError,
    ProtocolError,
    ReconnectFailedError,
    RequestTimeoutError,
    RpcRequestError,
    SessionDestroyedError,
    SessionError,
)
from imclient.network.events import Event, EventEmitter
from imclient.network.registry import SessionRegistry, default_registry
from imclient.network.session import Session
from imclient.network.state import ConnectionState, ConnectionTracker
from imclient.network.transport import BaseTransport, DummyTransport, ReadyState, WebSocketTransport

__all__ = [
    "init",
    "get_default_session",
    "Session",
    "SessionRegistry",
    "default_registry",
    "Event",
    "EventEmitter",
    "ConnectionState",
    "ConnectionTracker",
    "BaseTransport",
    "DummyTransport",
    "ReadyState",
    "WebSocketTransport",
    "AuthenticationError",
    "ConnectError",
    "ConnectionClosedError",
    "KeepaliveTimeoutError",
    "NotConnectedError",
    "ProtocolError",
    "ReconnectFailedError",
    "RequestTimeoutError",
    "RpcRequestError",
    "SessionDestroyedError",
    "SessionError",
]
