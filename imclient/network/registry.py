"""Process-wide default session registry."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from .session import Session

LOGGER = logging.getLogger(__name__)


class SessionRegistry:
    """Holds at most one registered (non-destroyed) session."""

    def __init__(self) -> None:
        self._session: Optional["Session"] = None

    def get(self) -> Optional["Session"]:
        return self._session

    def set(self, session: "Session") -> Optional["Session"]:
        """Register ``session`` and return the one it replaced, if any."""

        previous = self._session
        self._session = session
        LOGGER.debug("Registered default session %s", session.session_id)
        return previous if previous is not session else None

    def clear(self, session: Optional["Session"] = None) -> None:
        """Drop the registration; with ``session`` given, only if it is the registered one."""

        if session is not None and self._session is not session:
            return
        self._session = None


default_registry = SessionRegistry()
