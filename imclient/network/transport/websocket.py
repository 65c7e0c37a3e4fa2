"""WebSocket transport implementation."""

from __future__ import annotations

import logging
from typing import Any, Optional, Union

import websockets
from websockets.exceptions import ConnectionClosed

from imclient.config import ClientSettings
from shared.protocol import CLOSE_ABNORMAL, CLOSE_NORMAL

from .base import BaseTransport, ReadyState, TransportClosed, TransportNotReady

LOGGER = logging.getLogger(__name__)


def _closed_from(exc: ConnectionClosed) -> TransportClosed:
    frame = exc.rcvd
    if frame is None:
        return TransportClosed(CLOSE_ABNORMAL, str(exc))
    return TransportClosed(frame.code, frame.reason)


class WebSocketTransport(BaseTransport):
    """Text-frame transport over the ``websockets`` client."""

    def __init__(self, url: str, settings: Optional[ClientSettings] = None) -> None:
        self._url = url
        self._settings = settings
        self._ws: Optional[Any] = None
        self._state = ReadyState.CLOSED

    @property
    def ready_state(self) -> ReadyState:
        return self._state

    async def connect(self) -> None:
        LOGGER.info("Connecting to IM server WebSocket at %s", self._url)
        open_timeout = self._settings.connect_timeout_seconds if self._settings else 10.0
        self._state = ReadyState.CONNECTING
        try:
            # application-level ping is used instead of protocol pings
            self._ws = await websockets.connect(self._url, open_timeout=open_timeout, ping_interval=None)
        except Exception:
            self._state = ReadyState.CLOSED
            raise
        self._state = ReadyState.OPEN

    async def send(self, frame: str) -> None:
        if not self._ws or self._state is not ReadyState.OPEN:
            raise TransportNotReady("WebSocket transport not connected")
        LOGGER.debug("WebSocket send: %s", frame)
        try:
            await self._ws.send(frame)
        except ConnectionClosed as exc:
            self._state = ReadyState.CLOSED
            raise _closed_from(exc) from exc

    async def receive(self) -> Union[str, bytes]:
        if not self._ws:
            raise TransportNotReady("WebSocket transport not connected")
        try:
            raw = await self._ws.recv()
        except ConnectionClosed as exc:
            self._state = ReadyState.CLOSED
            raise _closed_from(exc) from exc
        LOGGER.debug("WebSocket receive: %r", raw)
        return raw

    async def close(self, code: int = CLOSE_NORMAL, reason: str = "") -> None:
        ws = self._ws
        if ws is None:
            self._state = ReadyState.CLOSED
            return
        LOGGER.info("Closing WebSocket transport code=%s reason=%s", code, reason)
        self._state = ReadyState.CLOSING
        try:
            await ws.close(code=code, reason=reason)
        except Exception:
            LOGGER.warning("Closing handshake failed; aborting WebSocket connection", exc_info=True)
            ws.transport.abort()
            raise
        finally:
            self._ws = None
            self._state = ReadyState.CLOSED

    def abort(self) -> None:
        ws = self._ws
        self._ws = None
        self._state = ReadyState.CLOSED
        if ws is not None:
            LOGGER.info("Aborting WebSocket transport")
            ws.transport.abort()
