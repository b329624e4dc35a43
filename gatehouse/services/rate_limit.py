"""
In-memory fixed-window rate limiter keyed by arbitrary strings
('api:<user id>', 'api:<ip>', 'login:<email>|<ip>').

Counters live in process memory, so limits apply per worker process.
"""

import logging
import math
import threading
import time
from collections.abc import Callable

logger = logging.getLogger(__name__)


class RateLimiter:
    """Counts hits per key inside a window that starts at the first hit."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._windows: dict[str, tuple[int, float]] = {}
        self._lock = threading.Lock()

    def _current(self, key: str) -> tuple[int, float] | None:
        entry = self._windows.get(key)
        if entry is None:
            return None
        if entry[1] <= self._clock():
            del self._windows[key]
            return None
        return entry

    def hit(self, key: str, decay_seconds: int) -> int:
        """Record one attempt and return the attempt count in the current window."""
        with self._lock:
            entry = self._current(key)
            if entry is None:
                entry = (0, self._clock() + decay_seconds)
            attempts = entry[0] + 1
            self._windows[key] = (attempts, entry[1])
            return attempts

    def attempts(self, key: str) -> int:
        with self._lock:
            entry = self._current(key)
            return entry[0] if entry else 0

    def too_many_attempts(self, key: str, max_attempts: int) -> bool:
        return self.attempts(key) >= max_attempts

    def remaining(self, key: str, max_attempts: int) -> int:
        return max(0, max_attempts - self.attempts(key))

    def available_in(self, key: str) -> int:
        """Seconds until the window for key resets (0 when there is no window)."""
        with self._lock:
            entry = self._current(key)
            if entry is None:
                return 0
            return max(0, math.ceil(entry[1] - self._clock()))

    def clear(self, key: str) -> None:
        with self._lock:
            self._windows.pop(key, None)

    def reset(self) -> None:
        with self._lock:
            self._windows.clear()


# Singleton instance
limiter = RateLimiter()
