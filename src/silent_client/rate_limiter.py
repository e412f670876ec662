"""
Sliding-window limiter for stand-in spawn attempts.
"""

import time
from collections import deque
from typing import Callable

from .settings import DEFAULT_MAX_SPAWN_ATTEMPTS, DEFAULT_SPAWN_WINDOW


class RateLimiter:
    """Allows at most max_attempts spawn attempts per sliding window.

    Old attempts are pruned lazily on each check; a rejected check does not
    count as an attempt.
    """

    def __init__(
        self,
        max_attempts: int = DEFAULT_MAX_SPAWN_ATTEMPTS,
        window: float = DEFAULT_SPAWN_WINDOW,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_attempts = max_attempts
        self.window = window
        self._clock = clock
        self._attempts: deque = deque()

    def _prune(self, now: float) -> None:
        while self._attempts and now - self._attempts[0] >= self.window:
            self._attempts.popleft()

    def can_spawn(self) -> bool:
        """Record an attempt and return True if the window has capacity."""
        now = self._clock()
        self._prune(now)
        if len(self._attempts) >= self.max_attempts:
            return False
        self._attempts.append(now)
        return True

    @property
    def attempts_in_window(self) -> int:
        self._prune(self._clock())
        return len(self._attempts)

    def seconds_until_available(self) -> float:
        """Time until the next attempt would be allowed (0 if now)."""
        now = self._clock()
        self._prune(now)
        if len(self._attempts) < self.max_attempts:
            return 0.0
        return max(0.0, self._attempts[0] + self.window - now)
