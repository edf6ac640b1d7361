"""Per-key serialization and short-lived result caching for lifecycle steps.

Repeated setup calls within the TTL reuse the earlier result instead of
re-running installation; concurrent calls for the same key run once.
"""

import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, TypeVar

from managed_ai.logging import get_logger

_logger = get_logger("TaskCache")

T = TypeVar("T")

DEFAULT_TTL = 60.0
DEFAULT_MAX_AGE = 300.0


@dataclass
class _CacheEntry:
    result: Any
    timestamp: float

    def is_expired(self, max_age: float, now: float) -> bool:
        return now - self.timestamp > max_age


@dataclass(frozen=True)
class CacheStats:
    """Snapshot of cache occupancy."""

    total_entries: int
    active_entries: int
    expired_entries: int
    tracked_locks: int = 0


class TaskCache:
    """Keyed task runner with a TTL result cache.

    Each key has its own lock. After acquiring it the cache is checked again,
    so callers that waited on a running task receive its result.
    """

    def __init__(self, default_ttl: float = DEFAULT_TTL) -> None:
        self._default_ttl = default_ttl
        self._entries: dict[str, _CacheEntry] = {}
        self._locks: dict[str, threading.Lock] = {}
        self._guard = threading.Lock()

    def _lock_for(self, key: str) -> threading.Lock:
        with self._guard:
            return self._locks.setdefault(key, threading.Lock())

    def _cached(self, key: str, ttl: float) -> tuple[bool, Any]:
        with self._guard:
            entry = self._entries.get(key)
        if entry is not None and not entry.is_expired(ttl, time.monotonic()):
            return True, entry.result
        return False, None

    def execute(
        self,
        key: str,
        operation: Callable[[], T],
        ttl: float | None = None,
        allow_concurrent: bool = False,
        should_cache: Callable[[T], bool] | None = None,
    ) -> T:
        """Run operation under key, reusing a cached result younger than ttl.

        Args:
            key: Task identity used for locking and caching.
            operation: Work to run on a cache miss.
            ttl: Cache lifetime in seconds. Defaults to the cache default.
            allow_concurrent: Skip the per-key lock.
            should_cache: Predicate deciding whether a result is stored.
                Exceptions are never cached.
        """
        ttl = self._default_ttl if ttl is None else ttl
        hit, result = self._cached(key, ttl)
        if hit:
            _logger.debug("Using cached result for task: {}", key)
            return result

        if allow_concurrent:
            return self._run_and_cache(key, operation, should_cache)

        with self._lock_for(key):
            hit, result = self._cached(key, ttl)
            if hit:
                _logger.debug("Using cached result after lock acquisition for task: {}", key)
                return result
            return self._run_and_cache(key, operation, should_cache)

    def _run_and_cache(
        self,
        key: str,
        operation: Callable[[], T],
        should_cache: Callable[[T], bool] | None,
    ) -> T:
        start = time.monotonic()
        try:
            result = operation()
        except Exception as e:
            _logger.debug("Task '{}' failed after {:.0f}ms: {}", key, (time.monotonic() - start) * 1000, e)
            raise
        _logger.debug("Task '{}' completed in {:.0f}ms", key, (time.monotonic() - start) * 1000)
        if should_cache is None or should_cache(result):
            with self._guard:
                self._entries[key] = _CacheEntry(result, time.monotonic())
        return result

    def clear(self, key: str) -> None:
        """Drop the cached result for one key."""
        with self._guard:
            self._entries.pop(key, None)
        _logger.debug("Cleared cache for task: {}", key)

    def clear_all(self) -> None:
        """Drop every cached result and the locks no task currently holds."""
        with self._guard:
            self._entries.clear()
            self._locks = {key: lock for key, lock in self._locks.items() if lock.locked()}
        _logger.debug("Cleared all cached results")

    def stats(self, max_age: float | None = None) -> CacheStats:
        """Count entries, treating those older than max_age (default TTL) as expired."""
        max_age = self._default_ttl if max_age is None else max_age
        now = time.monotonic()
        with self._guard:
            total = len(self._entries)
            expired = sum(1 for e in self._entries.values() if e.is_expired(max_age, now))
            locks = len(self._locks)
        return CacheStats(
            total_entries=total,
            active_entries=total - expired,
            expired_entries=expired,
            tracked_locks=locks,
        )

    def cleanup_expired(self, max_age: float = DEFAULT_MAX_AGE) -> int:
        """Remove entries older than max_age and locks no entry or task uses.

        Returns:
            Number of entries removed.
        """
        now = time.monotonic()
        with self._guard:
            expired = [k for k, e in self._entries.items() if e.is_expired(max_age, now)]
            for key in expired:
                del self._entries[key]
            # Keys whose task failed never got an entry but still hold a lock
            idle = [k for k, lock in self._locks.items() if k not in self._entries and not lock.locked()]
            for key in idle:
                del self._locks[key]
        if expired:
            _logger.debug("Cleaned up {} expired cache entries", len(expired))
        return len(expired)
