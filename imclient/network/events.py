"""Application-facing event names and listener dispatch."""

from __future__ import annotations

import asyncio
import enum
import inspect
import logging
from typing import Any, Callable, Dict, List, Optional, Set, Union

LOGGER = logging.getLogger(__name__)

Listener = Callable[..., Any]


class Event(str, enum.Enum):
    CONNECT = "connect"
    DISCONNECT = "disconnect"
    MESSAGE = "message"
    ERROR = "error"
    SEND_ACK = "sendack"
    RECONNECTING = "reconnecting"
    CUSTOM_EVENT = "customevent"


class EventEmitter:
    """Per-event listener lists with failure isolation.

    Listeners run synchronously in registration order. A listener that raises
    is logged and skipped; one that returns an awaitable has it scheduled as a
    task on the running loop.
    """

    def __init__(self) -> None:
        self._listeners: Dict[Event, List[Listener]] = {event: [] for event in Event}
        self._tasks: Set[asyncio.Task[Any]] = set()

    @staticmethod
    def _coerce(event: Union[Event, str]) -> Optional[Event]:
        try:
            return Event(event)
        except ValueError:
            return None

    def on(self, event: Union[Event, str], callback: Listener) -> None:
        resolved = self._coerce(event)
        if resolved is None:
            LOGGER.warning("Attempted to register listener for unknown event: %s", event)
            return
        self._listeners[resolved].append(callback)

    def off(self, event: Union[Event, str], callback: Listener) -> None:
        resolved = self._coerce(event)
        if resolved is None:
            return
        listeners = self._listeners[resolved]
        if callback in listeners:
            listeners.remove(callback)

    def listener_count(self, event: Union[Event, str]) -> int:
        resolved = self._coerce(event)
        return len(self._listeners[resolved]) if resolved is not None else 0

    def clear(self) -> None:
        for listeners in self._listeners.values():
            listeners.clear()

    def emit(self, event: Event, *args: Any) -> int:
        delivered = 0
        for callback in list(self._listeners[event]):
            try:
                result = callback(*args)
                if inspect.isawaitable(result):
                    self._schedule(event, result)
                delivered += 1
            except Exception:  # noqa: BLE001
                LOGGER.exception("Error in event listener for %s", event.value)
        return delivered

    def _schedule(self, event: Event, awaitable: Any) -> None:
        task = asyncio.ensure_future(awaitable)
        self._tasks.add(task)

        def _done(completed: asyncio.Future[Any]) -> None:
            self._tasks.discard(completed)
            if completed.cancelled():
                return
            exc = completed.exception()
            if exc is not None:
                LOGGER.error("Async listener for %s failed", event.value, exc_info=exc)

        task.add_done_callback(_done)
