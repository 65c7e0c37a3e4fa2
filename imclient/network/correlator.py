"""Request/response correlation with per-request timeouts."""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass
from functools import partial
from typing import Any, Optional

from .errors import ConnectionClosedError, RequestTimeoutError

LOGGER = logging.getLogger(__name__)


@dataclass
class PendingRequest:
    method: str
    future: asyncio.Future[Any]
    timeout: float
    timer: Optional[asyncio.TimerHandle] = None


class RequestCorrelator:
    """Tracks in-flight requests by id.

    Each entry leaves the table exactly once: on a matching response, when its
    timer fires, when the awaiting caller is cancelled, or in a bulk
    :meth:`fail_all` sweep.
    """

    def __init__(self, default_timeout: float) -> None:
        self.default_timeout = float(default_timeout)
        self._pending: dict[str, PendingRequest] = {}

    def __len__(self) -> int:
        return len(self._pending)

    def __contains__(self, request_id: object) -> bool:
        return request_id in self._pending

    def register(self, method: str, timeout: Optional[float] = None) -> tuple[str, asyncio.Future[Any]]:
        loop = asyncio.get_running_loop()
        request_id = str(uuid.uuid4())
        timeout = float(timeout if timeout is not None else self.default_timeout)
        future: asyncio.Future[Any] = loop.create_future()
        pending = PendingRequest(method=method, future=future, timeout=timeout)
        pending.timer = loop.call_later(timeout, self._expire, request_id)
        self._pending[request_id] = pending
        future.add_done_callback(partial(self._on_future_done, request_id))
        return request_id, future

    def resolve(self, request_id: str, result: Any) -> bool:
        pending = self._pop(request_id)
        if pending is None:
            return False
        if not pending.future.done():
            pending.future.set_result(result)
        return True

    def reject(self, request_id: str, exc: BaseException) -> bool:
        pending = self._pop(request_id)
        if pending is None:
            return False
        if not pending.future.done():
            pending.future.set_exception(exc)
        return True

    def discard(self, request_id: str) -> None:
        """Forget an entry whose frame never reached the transport."""

        self._pop(request_id)

    def fail_all(self, reason: str = "Connection closed") -> int:
        if not self._pending:
            return 0
        entries = list(self._pending.values())
        self._pending.clear()
        LOGGER.debug("Failing %s pending request(s): %s", len(entries), reason)
        for pending in entries:
            if pending.timer:
                pending.timer.cancel()
            if not pending.future.done():
                pending.future.set_exception(ConnectionClosedError(reason))
        return len(entries)

    def _pop(self, request_id: str) -> Optional[PendingRequest]:
        pending = self._pending.pop(request_id, None)
        if pending and pending.timer:
            pending.timer.cancel()
        return pending

    def _expire(self, request_id: str) -> None:
        pending = self._pending.pop(request_id, None)
        if pending is None:
            return
        LOGGER.warning("Request %s (%s) timed out after %.2fs", request_id, pending.method, pending.timeout)
        if not pending.future.done():
            pending.future.set_exception(RequestTimeoutError(pending.method, request_id, pending.timeout))

    def _on_future_done(self, request_id: str, future: asyncio.Future[Any]) -> None:
        if future.cancelled():
            self._pop(request_id)
