"""Core utilities for the rate limiter."""

from slidegate.app.core.clock import Clock, MockClock, SystemClock, get_clock
from slidegate.app.core.config import settings
from slidegate.app.core.logging import get_logger, setup_logging
from slidegate.app.core.utils import interval_to_seconds

__all__ = [
    "Clock",
    "MockClock",
    "SystemClock",
    "get_clock",
    "settings",
    "get_logger",
    "setup_logging",
    "interval_to_seconds",
]
