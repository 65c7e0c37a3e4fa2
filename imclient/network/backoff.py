"""Exponential reconnection backoff."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass
class ReconnectPolicy:
    base_delay: float
    max_attempts: int
    max_delay: Optional[float] = None
    attempts: int = 0
    is_reconnecting: bool = False

    def exhausted(self) -> bool:
        return self.attempts >= self.max_attempts

    def peek_delay(self) -> float:
        delay = self.base_delay * (2 ** self.attempts)
        if self.max_delay is not None:
            delay = min(delay, self.max_delay)
        return delay

    def next_delay(self) -> float:
        """Return the delay before the next attempt and count that attempt."""

        delay = self.peek_delay()
        self.attempts += 1
        return delay

    def reset(self) -> None:
        self.attempts = 0
