"""Sliding window state.

A SlidingWindow approximates a true sliding count from two fixed windows:
the hits of the current window plus the hits of the previous one, weighted
down linearly as the current window progresses.
"""

import math
from datetime import datetime
from typing import Optional

from slidegate.app.core.clock import Clock, get_clock
from slidegate.app.core.utils import timestamp_to_datetime
from slidegate.app.exceptions import InvalidIntervalError
from slidegate.app.rate_limit.models import StoredWindow


class SlidingWindow:
    """Counting epoch of one identity.

    Attributes:
        id: Rate limited subject
        interval_seconds: Length of one fixed window
        window_end_at: Epoch seconds at which the current fixed window ends
        hit_count: Hits recorded in the current fixed window
        hit_count_for_last_window: Hits carried over from the previous window
        cached: True once the window was loaded from storage
    """

    def __init__(self, id: str, interval_seconds: int, clock: Optional[Clock] = None):
        if interval_seconds < 1:
            raise InvalidIntervalError(interval_seconds)
        self._clock = clock or get_clock()
        self.id = id
        self.interval_seconds = interval_seconds
        self.window_end_at = self._clock.now() + interval_seconds
        self.hit_count = 0
        self.hit_count_for_last_window = 0
        self.cached = False

    @classmethod
    def create_from_previous_window(
        cls,
        window: "SlidingWindow",
        interval_seconds: int,
        clock: Optional[Clock] = None,
    ) -> "SlidingWindow":
        """Start the window following `window`.

        The previous hit count is carried over only when the new window
        would still be running; after a longer gap the new window starts
        clean.
        """
        new = cls(window.id, interval_seconds, clock=clock)
        window_end_at = window.window_end_at + interval_seconds

        if new._clock.now() < window_end_at:
            new.hit_count_for_last_window = window.hit_count
            new.window_end_at = window_end_at

        return new

    @classmethod
    def from_stored(cls, stored: StoredWindow, clock: Optional[Clock] = None) -> "SlidingWindow":
        """Rebuild a window loaded from storage (always cached)."""
        window = cls.__new__(cls)
        window._clock = clock or get_clock()
        window.id = stored.id
        window.interval_seconds = stored.interval_seconds
        window.window_end_at = stored.window_end_at
        window.hit_count = stored.hit_count
        window.hit_count_for_last_window = stored.hit_count_for_last_window
        window.cached = True
        return window

    def to_stored(self) -> StoredWindow:
        return StoredWindow(
            id=self.id,
            hit_count=self.hit_count,
            interval_seconds=self.interval_seconds,
            hit_count_for_last_window=self.hit_count_for_last_window,
            window_end_at=self.window_end_at,
        )

    def get_expiration_time(self) -> Optional[int]:
        """Store for the rest of this time frame and the next.

        Returns None for a window loaded from storage: the backend keeps
        the expiry it already tracks.
        """
        if self.cached:
            return None
        return 2 * self.interval_seconds

    def is_expired(self) -> bool:
        return self._clock.now() > self.window_end_at

    def add(self, hits: int = 1) -> None:
        if hits < 0:
            raise ValueError(f"hits must be non-negative, got {hits}")
        self.hit_count += hits

    def get_hit_count(self) -> int:
        """Calculate the sliding window number of hits."""
        start_of_window = self.window_end_at - self.interval_seconds
        elapsed = (self._clock.now() - start_of_window) / self.interval_seconds
        # Clamped to [0, 1]: the clock may step backwards
        percent_of_current_time_frame = min(max(elapsed, 0.0), 1.0)

        return math.floor(
            self.hit_count_for_last_window * (1 - percent_of_current_time_frame)
            + self.hit_count
        )

    def get_retry_after(self) -> datetime:
        return timestamp_to_datetime(self.window_end_at)

    def __repr__(self) -> str:
        return (
            f"SlidingWindow(id={self.id!r}, interval_seconds={self.interval_seconds}, "
            f"window_end_at={self.window_end_at}, hit_count={self.hit_count}, "
            f"hit_count_for_last_window={self.hit_count_for_last_window}, "
            f"cached={self.cached})"
        )
