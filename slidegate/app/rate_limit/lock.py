"""Per-identity locks held across fetch, modify and save.

Storage backends do not make fetch and save atomic. A lock factory hands
the limiter one lock per identity so concurrent consume calls for the same
identity cannot lose each other's hits.
"""

import threading
import weakref
from abc import ABC, abstractmethod
from contextlib import AbstractContextManager, contextmanager, nullcontext
from typing import Iterator

import redis
from redis.exceptions import LockError
from redis.lock import Lock

from slidegate.app.core.logging import get_log_context, get_logger
from slidegate.app.exceptions import StorageError

logger = get_logger(__name__)


class LockFactory(ABC):
    """Abstract base class for lock factories."""

    @abstractmethod
    def create(self, key: str) -> AbstractContextManager:
        """Return a context manager holding the lock for `key`."""
        pass


class NoLock(LockFactory):
    """No mutual exclusion.

    Only correct when a single caller consumes per identity at a time.
    """

    def create(self, key: str) -> AbstractContextManager:
        return nullcontext()


class LocalLockFactory(LockFactory):
    """Thread locks shared within one process, one per key.

    Locks are held weakly: a key's lock is dropped once no caller holds or
    waits on it, so the table only contains keys currently in use.
    """

    def __init__(self) -> None:
        self._locks: "weakref.WeakValueDictionary[str, threading.Lock]" = (
            weakref.WeakValueDictionary()
        )
        self._guard = threading.Lock()

    def _get(self, key: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._locks[key] = lock
            return lock

    def create(self, key: str) -> AbstractContextManager:
        return self._get(key)

    def __len__(self) -> int:
        return len(self._locks)


class RedisLockFactory(LockFactory):
    """Distributed locks built on redis-py's Lock.

    Lock acquisition failures and Redis errors surface as StorageError.
    """

    def __init__(
        self,
        client: redis.Redis,
        timeout: float = 10.0,
        blocking_timeout: float = 5.0,
        key_prefix: str = "lock",
    ) -> None:
        """Initialize the lock factory.

        Args:
            client: Synchronous redis-py client
            timeout: Seconds after which a held lock is released automatically
            blocking_timeout: Max seconds to wait while acquiring
            key_prefix: Namespace prepended to lock names
        """
        self._client = client
        self._timeout = timeout
        self._blocking_timeout = blocking_timeout
        self._key_prefix = key_prefix

    def _release(self, lock: Lock, name: str, raise_errors: bool) -> None:
        """Release a held lock.

        Args:
            lock: The redis-py lock to release
            name: Lock name, for logging
            raise_errors: Raise StorageError on Redis failures. False while
                another exception is already propagating out of the lock.
        """
        try:
            lock.release()
        except LockError as e:
            # Lock expired while held; the next holder already owns it
            logger.warning(f"Lock {name} expired before release: {e}")
        except redis.RedisError as e:
            logger.error(f"Failed to release lock {name}: {e}", extra=get_log_context(storage="redis"))
            if raise_errors:
                raise StorageError("lock", str(e)) from e

    @contextmanager
    def _hold(self, key: str) -> Iterator[None]:
        name = f"{self._key_prefix}:{key}"
        lock = self._client.lock(
            name, timeout=self._timeout, blocking_timeout=self._blocking_timeout
        )
        try:
            acquired = lock.acquire()
        except redis.RedisError as e:
            logger.error(f"Failed to acquire lock {name}: {e}", extra=get_log_context(storage="redis"))
            raise StorageError("lock", str(e)) from e
        if not acquired:
            logger.warning(
                f"Timed out acquiring lock {name} after {self._blocking_timeout}s",
                extra=get_log_context(storage="redis"),
            )
            raise StorageError("lock", f"timed out acquiring {name}")
        try:
            yield
        except BaseException:
            self._release(lock, name, raise_errors=False)
            raise
        self._release(lock, name, raise_errors=True)

    def create(self, key: str) -> AbstractContextManager:
        return self._hold(key)
