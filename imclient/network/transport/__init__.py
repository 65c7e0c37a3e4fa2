"""Transport implementations for the session layer."""

from .base import BaseTransport, ReadyState, TransportClosed, TransportNotReady
from .dummy import DummyTransport
from .websocket import WebSocketTransport

__all__ = [
    "BaseTransport",
    "ReadyState",
    "TransportClosed",
    "TransportNotReady",
    "DummyTransport",
    "WebSocketTransport",
]
