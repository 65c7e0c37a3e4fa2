"""Factory entrypoint for building sessions."""

from __future__ import annotations

import logging
from typing import Optional

from imclient.config import ClientSettings, get_settings
from imclient.identity import Credentials

from .registry import SessionRegistry, default_registry
from .session import Session, TransportFactory
from .transport.websocket import WebSocketTransport

LOGGER = logging.getLogger(__name__)


def init(
    url: str,
    credentials: Credentials,
    *,
    settings: Optional[ClientSettings] = None,
    singleton: Optional[bool] = None,
    registry: Optional[SessionRegistry] = None,
    transport_factory: Optional[TransportFactory] = None,
) -> Session:
    """Create a session.

    In singleton mode the session becomes the registry's default; a session
    registered before it is force-closed and destroyed first.
    """

    if not url:
        raise ValueError("URL is required for initialization")
    settings = settings or get_settings()
    if singleton is None:
        singleton = settings.singleton
    registry = registry or default_registry

    if singleton:
        previous = registry.get()
        if previous is not None:
            LOGGER.info("Replacing default session %s", previous.session_id)
            previous.force_close("Session replaced by init()")
            previous._mark_destroyed()

    session = Session(
        url=url,
        credentials=credentials,
        settings=settings,
        transport_factory=transport_factory or WebSocketTransport,
        registry=registry if singleton else None,
    )
    if singleton:
        registry.set(session)
    return session


def get_default_session(registry: Optional[SessionRegistry] = None) -> Optional[Session]:
    return (registry or default_registry).get()
