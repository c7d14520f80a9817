"""Storage backends for sliding window state.

The limiter needs only fetch/save/delete from a backend. Backends persist
the StoredWindow projection of a window, never the live object, so every
window handed back by fetch() is a fresh instance marked as cached.
"""

import threading
from abc import ABC, abstractmethod
from collections import OrderedDict
from dataclasses import dataclass
from typing import Optional

import redis
from pydantic import ValidationError

from slidegate.app.core.clock import Clock, get_clock
from slidegate.app.core.logging import get_log_context, get_logger
from slidegate.app.exceptions import StorageError
from slidegate.app.rate_limit.models import StoredWindow
from slidegate.app.rate_limit.window import SlidingWindow

logger = get_logger(__name__)


class StorageBackend(ABC):
    """Abstract base class for window storage backends.

    Implementations must be safe to fetch from before anything was saved.
    Per-identity atomicity across fetch and save is provided by the
    limiter's lock factory, not by the backend.
    """

    name: str = "abstract"

    @abstractmethod
    def fetch(self, limiter_state_id: str) -> Optional[SlidingWindow]:
        """Retrieve the most recently saved window.

        Args:
            limiter_state_id: Identity the window belongs to.

        Returns:
            The stored window, or None if nothing (readable) is stored.
        """
        pass

    @abstractmethod
    def save(self, window: SlidingWindow, expiration: Optional[int] = None) -> None:
        """Persist a window, overwriting any previous state for window.id.

        Args:
            window: Window to store.
            expiration: Time-to-live in seconds. None keeps whatever
                expiry the backend already tracks for this id.
        """
        pass

    @abstractmethod
    def delete(self, limiter_state_id: str) -> None:
        """Remove stored state for an identity. Missing ids are ignored."""
        pass


@dataclass
class _StorageEntry:
    """Internal storage entry with TTL tracking."""

    window: StoredWindow
    expires_at: float | None = None

    def is_expired(self, now: float) -> bool:
        if self.expires_at is None:
            return False
        return now > self.expires_at


class InMemoryStorage(StorageBackend):
    """Process-local storage with TTL support.

    Suitable for single-instance deployments and tests. Data is lost when
    the process exits.

    Memory optimization:
    - Uses OrderedDict for LRU cache behavior
    - Expired entries are swept on save at most once per sweep interval
    - Limits max entries; the least recently used 20% are evicted when full
    """

    name = "memory"

    DEFAULT_MAX_ENTRIES = 10000
    DEFAULT_SWEEP_INTERVAL_SECONDS = 60.0

    def __init__(
        self,
        clock: Optional[Clock] = None,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        sweep_interval_seconds: float = DEFAULT_SWEEP_INTERVAL_SECONDS,
    ) -> None:
        """Initialize in-memory storage.

        Args:
            clock: Time source for TTL tracking
            max_entries: Maximum number of windows to keep (LRU eviction)
            sweep_interval_seconds: Minimum time between expired-entry sweeps
        """
        if max_entries < 1:
            raise ValueError(f"max_entries must be at least 1, got {max_entries}")
        self._clock = clock or get_clock()
        self._max_entries = max_entries
        self._sweep_interval = sweep_interval_seconds
        self._next_sweep_at = self._clock.now() + sweep_interval_seconds
        self._data: OrderedDict[str, _StorageEntry] = OrderedDict()
        self._lock = threading.Lock()

    def fetch(self, limiter_state_id: str) -> Optional[SlidingWindow]:
        with self._lock:
            entry = self._data.get(limiter_state_id)
            if entry is None:
                return None
            if entry.is_expired(self._clock.now()):
                del self._data[limiter_state_id]
                return None
            self._data.move_to_end(limiter_state_id)
            return SlidingWindow.from_stored(entry.window, clock=self._clock)

    def save(self, window: SlidingWindow, expiration: Optional[int] = None) -> None:
        with self._lock:
            now = self._clock.now()
            if expiration is not None:
                expires_at = now + expiration
            else:
                existing = self._data.get(window.id)
                expires_at = existing.expires_at if existing is not None else None
            self._data[window.id] = _StorageEntry(
                window=window.to_stored(), expires_at=expires_at
            )
            self._data.move_to_end(window.id)

            if now >= self._next_sweep_at:
                self._remove_expired(now)
                self._next_sweep_at = now + self._sweep_interval
            self._enforce_lru_limit()

    def delete(self, limiter_state_id: str) -> None:
        with self._lock:
            self._data.pop(limiter_state_id, None)

    def _remove_expired(self, now: float) -> int:
        expired_keys = [
            key for key, entry in self._data.items() if entry.is_expired(now)
        ]
        for key in expired_keys:
            del self._data[key]
        return len(expired_keys)

    def _enforce_lru_limit(self) -> None:
        """Enforce max entries limit using LRU eviction."""
        if len(self._data) <= self._max_entries:
            return
        if self._remove_expired(self._clock.now()) and len(self._data) <= self._max_entries:
            return
        # Remove oldest 20% of entries
        remove_count = max(1, int(self._max_entries * 0.2))
        remove_count = max(remove_count, len(self._data) - self._max_entries)
        for _ in range(remove_count):
            key, _entry = self._data.popitem(last=False)
            logger.debug(
                f"Evicted window {key} from in-memory storage",
                extra=get_log_context(identity=key, storage=self.name),
            )

    def cleanup_expired(self) -> int:
        """Remove all expired entries.

        Returns:
            Number of entries removed.
        """
        with self._lock:
            return self._remove_expired(self._clock.now())

    def __len__(self) -> int:
        return len(self._data)


class RedisStorage(StorageBackend):
    """Redis-based storage for multi-instance deployments.

    Each window is a JSON string under "<key_prefix>:<id>". A save without
    expiration uses SET ... KEEPTTL so the key keeps its remaining TTL.

    Example:
        >>> storage = RedisStorage(redis.Redis.from_url("redis://localhost:6379/0"))
    """

    name = "redis"

    def __init__(
        self,
        client: redis.Redis,
        key_prefix: str = "ratelimit",
        clock: Optional[Clock] = None,
    ) -> None:
        """Initialize Redis storage.

        Args:
            client: Synchronous redis-py client
            key_prefix: Namespace prepended to every key
            clock: Time source for windows rebuilt from Redis
        """
        self._client = client
        self._key_prefix = key_prefix
        self._clock = clock or get_clock()

    def _key(self, limiter_state_id: str) -> str:
        return f"{self._key_prefix}:{limiter_state_id}"

    def fetch(self, limiter_state_id: str) -> Optional[SlidingWindow]:
        key = self._key(limiter_state_id)
        try:
            payload = self._client.get(key)
        except redis.RedisError as e:
            logger.error(
                f"Redis fetch failed for {key}: {e}",
                extra=get_log_context(identity=limiter_state_id, storage=self.name),
            )
            raise StorageError("fetch", str(e)) from e

        if payload is None:
            return None

        try:
            stored = StoredWindow.model_validate_json(payload)
        except ValidationError as e:
            # Unreadable state is dropped; the limiter starts a new window
            logger.warning(
                f"Ignoring unreadable window state at {key}: {e.error_count()} error(s)",
                extra=get_log_context(identity=limiter_state_id, storage=self.name),
            )
            return None

        return SlidingWindow.from_stored(stored, clock=self._clock)

    def save(self, window: SlidingWindow, expiration: Optional[int] = None) -> None:
        key = self._key(window.id)
        payload = window.to_stored().model_dump_json()
        try:
            if expiration is not None:
                self._client.set(key, payload, ex=expiration)
            else:
                self._client.set(key, payload, keepttl=True)
        except redis.RedisError as e:
            logger.error(
                f"Redis save failed for {key}: {e}",
                extra=get_log_context(identity=window.id, storage=self.name),
            )
            raise StorageError("save", str(e)) from e

    def delete(self, limiter_state_id: str) -> None:
        key = self._key(limiter_state_id)
        try:
            self._client.delete(key)
        except redis.RedisError as e:
            logger.error(
                f"Redis delete failed for {key}: {e}",
                extra=get_log_context(identity=limiter_state_id, storage=self.name),
            )
            raise StorageError("delete", str(e)) from e
