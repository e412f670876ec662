"""
Heartbeat tracking for genuine clients.

Only the most recent genuine signal is kept; liveness is a pure function
of that timestamp and the timeout. Signals tagged as coming from the
stand-in agent are dropped so it can never keep itself alive.
"""

import threading
import time
from typing import Callable, Optional

from .logging_config import get_logger
from .settings import DEFAULT_HEARTBEAT_TIMEOUT
from .states import AGENT_ORIGIN

log = get_logger("heartbeat")


class HeartbeatTracker:
    """Records the last genuine presence signal and answers liveness queries.

    Written from HTTP handler threads, read from the control loop, so
    access to last_seen goes through a lock.
    """

    def __init__(
        self,
        timeout: float = DEFAULT_HEARTBEAT_TIMEOUT,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.timeout = timeout
        self._clock = clock
        self._lock = threading.Lock()
        self._last_seen: Optional[float] = None

    @property
    def last_seen(self) -> Optional[float]:
        """Clock time of the last genuine signal, None if never seen."""
        with self._lock:
            return self._last_seen

    def record_signal(self, tag: Optional[str] = None) -> bool:
        """Record a presence signal.

        Args:
            tag: Origin tag; AGENT_ORIGIN marks the stand-in's own traffic

        Returns:
            True if the signal counted as genuine presence
        """
        if tag == AGENT_ORIGIN:
            log.debug("Ignoring self-originated heartbeat")
            return False
        now = self._clock()
        with self._lock:
            self._last_seen = now
        return True

    def is_alive(self) -> bool:
        """True while the last genuine signal is younger than the timeout."""
        with self._lock:
            last_seen = self._last_seen
        if last_seen is None:
            return False
        return (self._clock() - last_seen) < self.timeout

    def seconds_since_last_signal(self) -> Optional[float]:
        with self._lock:
            last_seen = self._last_seen
        if last_seen is None:
            return None
        return self._clock() - last_seen
