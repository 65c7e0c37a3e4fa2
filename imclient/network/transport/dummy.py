"""In-memory transport for offline testing."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Optional, Union

from shared.protocol import CLOSE_ABNORMAL, CLOSE_NORMAL, encode_frame

from .base import BaseTransport, ReadyState, TransportClosed, TransportNotReady

LOGGER = logging.getLogger(__name__)


class DummyTransport(BaseTransport):
    """Loopback transport that records outbound frames and replays scripted inbound ones."""

    def __init__(self, url: Optional[str] = None, settings=None) -> None:
        self.url = url
        self._settings = settings
        self._state = ReadyState.CLOSED
        self._inbound: asyncio.Queue[Union[str, bytes, TransportClosed]] = asyncio.Queue()
        self.sent: list[str] = []
        self.close_code: Optional[int] = None
        self.close_reason: Optional[str] = None
        self.aborted = False

    @property
    def ready_state(self) -> ReadyState:
        return self._state

    def sent_frames(self) -> list[dict[str, Any]]:
        return [json.loads(frame) for frame in self.sent]

    async def connect(self) -> None:
        LOGGER.debug("Dummy transport connect() url=%s", self.url)
        self._state = ReadyState.OPEN

    async def send(self, frame: str) -> None:
        if self._state is not ReadyState.OPEN:
            raise TransportNotReady("Dummy transport not open")
        LOGGER.debug("Dummy transport send(): %s", frame)
        self.sent.append(frame)

    async def receive(self) -> Union[str, bytes]:
        item = await self._inbound.get()
        if isinstance(item, TransportClosed):
            self._state = ReadyState.CLOSED
            raise item
        LOGGER.debug("Dummy transport receive(): %s", item)
        return item

    async def close(self, code: int = CLOSE_NORMAL, reason: str = "") -> None:
        LOGGER.debug("Dummy transport close() code=%s reason=%s", code, reason)
        if self._state is ReadyState.CLOSED:
            return
        self._state = ReadyState.CLOSED
        self.close_code = code
        self.close_reason = reason
        self._inbound.put_nowait(TransportClosed(code, reason))

    def abort(self) -> None:
        LOGGER.debug("Dummy transport abort()")
        self.aborted = True
        if self._state is not ReadyState.CLOSED:
            self._state = ReadyState.CLOSED
            self._inbound.put_nowait(TransportClosed(CLOSE_ABNORMAL, "aborted"))

    def feed(self, frame: Union[str, bytes, dict[str, Any]]) -> None:
        """Queue an inbound frame as if the server had sent it."""

        if isinstance(frame, dict):
            frame = encode_frame(frame)
        self._inbound.put_nowait(frame)

    def drop(self, code: int = CLOSE_ABNORMAL, reason: str = "connection lost") -> None:
        """Simulate the server closing the connection."""

        self._inbound.put_nowait(TransportClosed(code, reason))
