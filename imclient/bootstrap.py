"""Client bootstrap entrypoint for session wiring."""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from imclient.config import ClientSettings, get_settings
from imclient.identity import Credentials
from imclient.network import Event, Session, init
from imclient.network.session import TransportFactory
from imclient.network.transport import DummyTransport, WebSocketTransport

LOGGER = logging.getLogger(__name__)
_session: Session | None = None


def resolve_transport_factory(settings: ClientSettings) -> TransportFactory:
    return WebSocketTransport if settings.transport == "websocket" else DummyTransport


def _log_connect(result) -> None:
    LOGGER.info("Connected (server_version=%s node_id=%s)", result.server_version, result.node_id)


def _log_disconnect(info) -> None:
    LOGGER.info("Disconnected: %s", info)


def _log_message(message) -> None:
    LOGGER.info(
        "Message %s seq=%s from %s in %s/%s",
        message.message_id,
        message.message_seq,
        message.from_uid,
        message.channel_type,
        message.channel_id,
    )


def _log_error(error) -> None:
    LOGGER.error("Session error: %s", error)


def _log_reconnecting(info) -> None:
    LOGGER.info("Reconnecting attempt=%s delay=%.2fs", info["attempt"], info["delay"])


def _log_custom_event(event) -> None:
    LOGGER.info("Event %s type=%s", event.id, event.type)


async def setup(
    settings: Optional[ClientSettings] = None,
    *,
    transport_factory: Optional[TransportFactory] = None,
) -> Session:
    """Construct the session from settings, attach logging listeners and connect."""

    global _session
    settings = settings or get_settings()
    if not settings.uid or not settings.token:
        raise RuntimeError("uid and token must be configured (WKIM_UID / WKIM_TOKEN)")
    credentials = Credentials(
        uid=settings.uid,
        token=settings.token,
        device_id=settings.device_id,
        device_flag=settings.device_flag,
    )
    factory = transport_factory or resolve_transport_factory(settings)
    LOGGER.debug("Initialising session via %s", getattr(factory, "__name__", factory))
    session = init(
        str(settings.server_url),
        credentials,
        settings=settings,
        transport_factory=factory,
    )
    session.on(Event.CONNECT, _log_connect)
    session.on(Event.DISCONNECT, _log_disconnect)
    session.on(Event.MESSAGE, _log_message)
    session.on(Event.ERROR, _log_error)
    session.on(Event.RECONNECTING, _log_reconnecting)
    session.on(Event.CUSTOM_EVENT, _log_custom_event)

    await session.connect()
    _session = session
    return session


async def serve_forever() -> None:
    """Connect and keep the process alive until cancelled."""

    await setup()
    try:
        await asyncio.Future()  # block until cancelled
    except asyncio.CancelledError:
        LOGGER.info("Client shutdown requested")
        raise
    finally:
        if _session:
            await _session.destroy()
