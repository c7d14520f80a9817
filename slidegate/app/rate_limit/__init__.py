"""Sliding window rate limiting.

Window state, decision record, storage backends, per-identity locks and
the limiter that ties them together.
"""

from slidegate.app.rate_limit.limiter import SlidingWindowLimiter, create_limiter
from slidegate.app.rate_limit.lock import (
    LocalLockFactory,
    LockFactory,
    NoLock,
    RedisLockFactory,
)
from slidegate.app.rate_limit.models import RateLimit, StoredWindow
from slidegate.app.rate_limit.storage import InMemoryStorage, RedisStorage, StorageBackend
from slidegate.app.rate_limit.window import SlidingWindow

__all__ = [
    # Models
    "RateLimit",
    "StoredWindow",
    "SlidingWindow",
    # Storage
    "StorageBackend",
    "InMemoryStorage",
    "RedisStorage",
    # Locks
    "LockFactory",
    "NoLock",
    "LocalLockFactory",
    "RedisLockFactory",
    # Main classes
    "SlidingWindowLimiter",
    "create_limiter",
]
