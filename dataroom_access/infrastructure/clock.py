"""Clock sources for quiescence timers"""

import threading
import time


class Clock:
    """Abstract monotonic clock"""

    def now(self) -> float:
        """Current time in seconds"""
        raise NotImplementedError


class MonotonicClock(Clock):
    """Wall clock backed by ``time.monotonic``"""

    def now(self) -> float:
        return time.monotonic()


class ManualClock(Clock):
    """Clock that only moves when advanced explicitly"""

    def __init__(self, start: float = 0.0):
        self._now = start
        self._lock = threading.Lock()

    def now(self) -> float:
        with self._lock:
            return self._now

    def advance(self, seconds: float) -> float:
        if seconds < 0:
            raise ValueError("Cannot move a clock backwards")
        with self._lock:
            self._now += seconds
            return self._now
