"""Tests for the RateLimit decision record and StoredWindow."""

import dataclasses
from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from slidegate.app.exceptions import RateLimitExceededError
from slidegate.app.rate_limit.models import RateLimit, StoredWindow


def _rate_limit(clock, accepted=True, remaining=5, offset=30.0):
    return RateLimit(
        limit=10,
        remaining_tokens=remaining,
        accepted=accepted,
        retry_after=datetime.fromtimestamp(clock.now() + offset, tz=timezone.utc),
    )


class TestRateLimit:
    """Tests for RateLimit dataclass."""

    def test_result_is_immutable(self, clock):
        result = _rate_limit(clock)
        with pytest.raises(dataclasses.FrozenInstanceError):
            result.accepted = False

    def test_ensure_accepted_returns_self(self, clock):
        result = _rate_limit(clock)
        assert result.ensure_accepted() is result

    def test_ensure_accepted_raises_when_rejected(self, clock):
        result = _rate_limit(clock, accepted=False, remaining=0)
        with pytest.raises(RateLimitExceededError) as exc_info:
            result.ensure_accepted()

        error = exc_info.value
        assert error.status_code == 429
        assert error.rate_limit is result
        assert error.limit == 10
        assert error.remaining_tokens == 0
        assert error.retry_after == result.retry_after

    def test_retry_after_seconds_rounds_up(self, clock):
        result = _rate_limit(clock, offset=29.2)
        assert result.retry_after_seconds(clock.now()) == 30

    def test_retry_after_seconds_never_negative(self, clock):
        result = _rate_limit(clock, offset=-10)
        assert result.retry_after_seconds(clock.now()) == 0

    def test_wait_sleeps_until_retry_after(self, clock):
        result = _rate_limit(clock, offset=30.0)
        start = clock.now()
        result.wait(clock)
        assert clock.now() == pytest.approx(start + 30.0, abs=1e-6)

    def test_wait_returns_immediately_when_past(self, clock):
        result = _rate_limit(clock, offset=-1.0)
        start = clock.now()
        result.wait(clock)
        assert clock.now() == start


class TestStoredWindow:
    """Tests for the persisted projection."""

    def test_rejects_negative_counts(self):
        with pytest.raises(ValidationError):
            StoredWindow(
                id="user",
                hit_count=-1,
                interval_seconds=60,
                hit_count_for_last_window=0,
                window_end_at=0.0,
            )

    def test_rejects_zero_interval(self):
        with pytest.raises(ValidationError):
            StoredWindow(
                id="user",
                hit_count=0,
                interval_seconds=0,
                hit_count_for_last_window=0,
                window_end_at=0.0,
            )

    def test_ignores_unknown_fields(self):
        stored = StoredWindow.model_validate(
            {
                "id": "user",
                "hit_count": 1,
                "interval_seconds": 60,
                "hit_count_for_last_window": 0,
                "window_end_at": 10.5,
                "cached": False,
            }
        )
        assert not hasattr(stored, "cached")
