"""Fixed-window admission control guarding upstream API calls."""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass

from loguru import logger

from .keyed_locks import KeyedLocks


@dataclass
class RateWindow:
    """Admission counter for one key and the instant its window opened."""

    count: int
    window_start: float


class RateLimiter:
    """Per-key fixed-window counter.

    A window of length ``window_seconds`` admits at most ``capacity`` calls.
    Denials do not increment the counter. Each key has its own lock, so
    checks for different keys never block one another.
    """

    def __init__(
        self,
        capacity: int = 10,
        window_seconds: float = 60.0,
        *,
        clock: Callable[[], float] = time.monotonic,
    ):
        if capacity < 1:
            raise ValueError(f"capacity must be >= 1, got {capacity}")
        if window_seconds <= 0:
            raise ValueError(f"window_seconds must be > 0, got {window_seconds}")

        self.capacity = capacity
        self.window_seconds = window_seconds
        self._clock = clock
        self._windows: dict[str, RateWindow] = {}
        self._locks = KeyedLocks()

    def allow(self, key: str) -> bool:
        """Record an admission attempt for `key` and report whether it is permitted."""
        with self._locks.hold(key):
            now = self._clock()
            window = self._windows.get(key)

            if window is None:
                self._windows[key] = RateWindow(count=1, window_start=now)
                return True

            if now - window.window_start > self.window_seconds:
                window.count = 1
                window.window_start = now
                return True

            if window.count >= self.capacity:
                logger.warning(f"Rate limit exceeded for key: {key}. Count: {window.count}")
                return False

            window.count += 1
            return True

    def remaining(self, key: str) -> int:
        """Admissions left in the current window for `key` (no side effects)."""
        with self._locks.hold(key):
            window = self._windows.get(key)
            if window is None or self._clock() - window.window_start > self.window_seconds:
                return self.capacity
            return max(self.capacity - window.count, 0)

    def reset(self, key: str) -> None:
        with self._locks.hold(key):
            self._windows.pop(key, None)

    def cleanup(self) -> int:
        """Purge windows idle for longer than the window length.

        Returns:
            Number of windows removed
        """
        removed = 0
        for key in list(self._windows):
            with self._locks.hold(key):
                window = self._windows.get(key)
                if window is not None and self._clock() - window.window_start > self.window_seconds:
                    self._windows.pop(key, None)
                    removed += 1
        if removed:
            logger.debug(f"Purged {removed} idle rate-limit windows")
        return removed

    def __len__(self) -> int:
        return len(self._windows)
