"""Utility functions for the rate limiter."""

import math
from datetime import datetime, timedelta, timezone
from typing import Union

from slidegate.app.exceptions import InvalidIntervalError


def interval_to_seconds(interval: Union[int, timedelta]) -> int:
    """Reduce an interval to whole seconds.

    Args:
        interval: Seconds as an int, or a timedelta (fractions are dropped).

    Returns:
        The interval in seconds.

    Raises:
        InvalidIntervalError: If the result is below one second.

    Examples:
        >>> interval_to_seconds(timedelta(minutes=1))
        60
        >>> interval_to_seconds(15)
        15
    """
    if isinstance(interval, timedelta):
        seconds = int(interval.total_seconds())
    elif isinstance(interval, bool) or not isinstance(interval, int):
        raise TypeError(
            f"interval must be int seconds or timedelta, got {type(interval).__name__}"
        )
    else:
        seconds = interval

    if seconds < 1:
        raise InvalidIntervalError(seconds)
    return seconds


def timestamp_to_datetime(timestamp: float) -> datetime:
    """Convert epoch seconds to an aware UTC datetime (microsecond precision)."""
    return datetime.fromtimestamp(timestamp, tz=timezone.utc)


def seconds_until(target: datetime, now: float) -> int:
    """Whole seconds from `now` until `target`, rounded up and never negative."""
    return max(0, math.ceil(target.timestamp() - now))
