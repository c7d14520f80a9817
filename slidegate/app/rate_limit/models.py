"""Rate limiting data models.

This module contains the decision record returned by the limiter and the
persisted projection of a sliding window.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from slidegate.app.core.clock import Clock, get_clock
from slidegate.app.core.utils import seconds_until
from slidegate.app.exceptions import RateLimitExceededError


@dataclass(frozen=True)
class RateLimit:
    """Result of one consume call."""
    limit: int
    remaining_tokens: int
    accepted: bool
    retry_after: datetime

    def ensure_accepted(self) -> "RateLimit":
        """Return self, or raise RateLimitExceededError if rejected."""
        if not self.accepted:
            raise RateLimitExceededError(self)
        return self

    def retry_after_seconds(self, now: float) -> int:
        """Whole seconds until retry_after, never negative."""
        return seconds_until(self.retry_after, now)

    def wait(self, clock: Optional[Clock] = None) -> None:
        """Block until retry_after has passed."""
        clock = clock or get_clock()
        delay = self.retry_after.timestamp() - clock.now()
        if delay > 0:
            clock.sleep(delay)


class StoredWindow(BaseModel):
    """Persisted state of a sliding window.

    Only these five fields are written to a storage backend. The
    transient "cached" flag of SlidingWindow is not among them; anything
    rebuilt from this model counts as loaded from storage.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str
    hit_count: int = Field(ge=0)
    interval_seconds: int = Field(ge=1)
    hit_count_for_last_window: int = Field(ge=0)
    window_end_at: float
