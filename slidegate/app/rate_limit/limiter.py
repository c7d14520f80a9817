"""Sliding window limiter.

The limiter owns no state between calls. Each consume() fetches the
identity's window from storage, rolls it over if expired, records the hits,
decides against the configured limit and saves the window back.
"""

from datetime import timedelta
from typing import Optional, Union

import redis

from slidegate.app.core.clock import Clock, get_clock
from slidegate.app.core.config import Settings, settings as default_settings
from slidegate.app.core.logging import get_log_context, get_logger
from slidegate.app.core.utils import interval_to_seconds
from slidegate.app.rate_limit.lock import (
    LocalLockFactory,
    LockFactory,
    NoLock,
    RedisLockFactory,
)
from slidegate.app.rate_limit.models import RateLimit
from slidegate.app.rate_limit.storage import InMemoryStorage, RedisStorage, StorageBackend
from slidegate.app.rate_limit.window import SlidingWindow

logger = get_logger(__name__)


class SlidingWindowLimiter:
    """Consume-then-report limiter over a sliding window.

    Hits are always recorded, even when they push the identity over the
    limit; the decision only reports whether the load fits.

    Example:
        >>> limiter = SlidingWindowLimiter(10, 60, InMemoryStorage())
        >>> limiter.consume("user-1").accepted
        True
    """

    def __init__(
        self,
        limit: int,
        interval: Union[int, timedelta],
        storage: StorageBackend,
        lock_factory: Optional[LockFactory] = None,
        clock: Optional[Clock] = None,
    ):
        """Initialize the limiter.

        Args:
            limit: Hits allowed per sliding interval
            interval: Window length, int seconds or timedelta
            storage: Backend holding the window state
            lock_factory: Per-identity locks (defaults to NoLock)
            clock: Time source (defaults to the system clock)

        Raises:
            InvalidIntervalError: If interval is below one second.
            ValueError: If limit is below one.
        """
        if limit < 1:
            raise ValueError(f"limit must be at least 1, got {limit}")
        self.limit = limit
        self.interval_seconds = interval_to_seconds(interval)
        self._storage = storage
        self._lock_factory = lock_factory or NoLock()
        self._clock = clock or get_clock()

    @property
    def storage(self) -> StorageBackend:
        return self._storage

    def consume(self, identity: str, hits: int = 1) -> RateLimit:
        """Record hits for identity and decide against the limit.

        Args:
            identity: Rate limited subject
            hits: Hits to record; 0 only reports the current status

        Returns:
            RateLimit decision record.

        Raises:
            ValueError: If hits is negative.
            StorageError: If the backend or the lock fails.
        """
        if hits < 0:
            raise ValueError(f"hits must be non-negative, got {hits}")

        with self._lock_factory.create(f"ratelimiter-{identity}"):
            window = self._storage.fetch(identity)
            if not isinstance(window, SlidingWindow):
                window = SlidingWindow(identity, self.interval_seconds, clock=self._clock)
            elif window.is_expired():
                window = SlidingWindow.create_from_previous_window(
                    window, self.interval_seconds, clock=self._clock
                )

            window.add(hits)
            hit_count = window.get_hit_count()
            accepted = hit_count <= self.limit
            rate_limit = RateLimit(
                limit=self.limit,
                remaining_tokens=max(self.limit - hit_count, 0),
                accepted=accepted,
                retry_after=window.get_retry_after(),
            )

            self._storage.save(window, window.get_expiration_time())

        context = get_log_context(
            identity=identity,
            limit=self.limit,
            storage=self._storage.name,
            hits=hits,
            hit_count=hit_count,
            accepted=accepted,
            remaining=rate_limit.remaining_tokens,
        )
        if accepted:
            logger.debug(f"Consumed {hits} hit(s) for {identity}", extra=context)
        else:
            logger.info(
                f"Rate limit exceeded for {identity}: {hit_count}/{self.limit}",
                extra=context,
            )
        return rate_limit

    def reset(self, identity: str) -> None:
        """Forget all recorded hits for identity."""
        with self._lock_factory.create(f"ratelimiter-{identity}"):
            self._storage.delete(identity)
        logger.info(
            f"Rate limit reset for {identity}",
            extra=get_log_context(identity=identity, storage=self._storage.name),
        )


def create_limiter(
    settings: Optional[Settings] = None,
    redis_client: Optional[redis.Redis] = None,
    clock: Optional[Clock] = None,
) -> SlidingWindowLimiter:
    """Build a limiter with storage and locking selected from settings.

    Args:
        settings: Settings to read (defaults to the global settings)
        redis_client: Client to use instead of one built from redis_url
        clock: Time source shared by limiter and storage

    Returns:
        Configured SlidingWindowLimiter
    """
    settings = settings or default_settings
    clock = clock or get_clock()

    if settings.rate_limit_storage == "redis":
        client = redis_client or redis.Redis.from_url(settings.redis_url)
        storage: StorageBackend = RedisStorage(
            client, key_prefix=settings.redis_key_prefix, clock=clock
        )
        lock_factory: LockFactory = RedisLockFactory(
            client,
            timeout=settings.redis_lock_timeout_seconds,
            blocking_timeout=settings.redis_lock_blocking_timeout_seconds,
            key_prefix=f"{settings.redis_key_prefix}:lock",
        )
        logger.info("Using Redis rate limit storage")
    else:
        storage = InMemoryStorage(clock=clock)
        lock_factory = LocalLockFactory()
        logger.debug("Using in-memory rate limit storage")

    if not settings.rate_limit_lock_enabled:
        lock_factory = NoLock()

    return SlidingWindowLimiter(
        limit=settings.rate_limit_limit,
        interval=settings.rate_limit_interval_seconds,
        storage=storage,
        lock_factory=lock_factory,
        clock=clock,
    )
