"""Session client for the WuKongIM JSON-RPC WebSocket protocol."""

from imclient.identity import Credentials
from imclient.network import (
    ConnectionState,
    Event,
    Session,
    SessionRegistry,
    default_registry,
    init,
)

__all__ = [
    "Credentials",
    "ConnectionState",
    "Event",
    "Session",
    "SessionRegistry",
    "default_registry",
    "init",
]
