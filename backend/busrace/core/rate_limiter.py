"""Global sliding-window limiter for upstream feed calls."""

import time
from collections import deque
from typing import Callable


class SlidingWindowLimiter:
    """Admits at most ``limit`` calls per ``window_sec`` across all operators.

    Not thread-safe; ``allow()`` never awaits, so within one event loop the
    prune/check/record sequence cannot interleave with another caller.
    """

    def __init__(
        self, limit: int, window_sec: float, clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.limit = max(1, limit)
        self.window_sec = max(1.0, window_sec)
        self._clock = clock
        self._events: deque[float] = deque()

    def _prune(self, now: float) -> None:
        while self._events and self._events[0] <= now - self.window_sec:
            self._events.popleft()

    def allow(self) -> tuple[bool, int]:
        """Record a call if under quota; otherwise return seconds until a slot frees."""
        now = self._clock()
        self._prune(now)
        if len(self._events) >= self.limit:
            retry_after = int(self.window_sec - (now - self._events[0]))
            return False, max(1, retry_after)
        self._events.append(now)
        return True, 0

    def in_window(self) -> int:
        self._prune(self._clock())
        return len(self._events)
