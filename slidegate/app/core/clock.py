"""Time sources for the rate limiter.

Every "current time" read in the window algorithm goes through a Clock so
tests can move time forward without sleeping.
"""

import threading
import time
from abc import ABC, abstractmethod


class Clock(ABC):
    """Abstract time source returning epoch seconds."""

    @abstractmethod
    def now(self) -> float:
        """Return the current time as seconds since the epoch."""
        pass

    @abstractmethod
    def sleep(self, seconds: float) -> None:
        """Block for the given number of seconds."""
        pass


class SystemClock(Clock):
    """Wall clock backed by time.time() and time.sleep()."""

    def now(self) -> float:
        return time.time()

    def sleep(self, seconds: float) -> None:
        if seconds > 0:
            time.sleep(seconds)


class MockClock(Clock):
    """Manually driven clock for deterministic tests.

    sleep() advances the clock instead of blocking.

    Example:
        >>> clock = MockClock(1000.0)
        >>> clock.sleep(5)
        >>> clock.now()
        1005.0
    """

    def __init__(self, start: float | None = None) -> None:
        self._now = time.time() if start is None else float(start)
        self._lock = threading.Lock()

    def now(self) -> float:
        with self._lock:
            return self._now

    def sleep(self, seconds: float) -> None:
        if seconds > 0:
            self.advance(seconds)

    def advance(self, seconds: float) -> None:
        """Move the clock forward (or backward, for negative values)."""
        with self._lock:
            self._now += seconds

    def set(self, timestamp: float) -> None:
        """Jump to an absolute timestamp."""
        with self._lock:
            self._now = float(timestamp)


_default_clock: Clock = SystemClock()


def get_clock() -> Clock:
    """Get the process-wide default clock."""
    return _default_clock
