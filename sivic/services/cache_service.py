"""
Response cache for Sivic.

This module provides an in-memory TTL cache used in front of slow or
rate-limited upstream APIs. Concurrent misses for the same key share a
single upstream fetch, and an expired entry is served when a refresh fails.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Generic, Optional, TypeVar

from cachetools import LRUCache

T = TypeVar('T')

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


@dataclass
class CacheEntry(Generic[T]):
    """Cache entry with value and expiration time."""

    value: T
    stored_at: float
    expires_at: float

    def is_fresh(self, now: float) -> bool:
        """Check if the cache entry is still within its TTL."""
        return now < self.expires_at


class ResponseCache:
    """
    Keyed TTL cache with request coalescing and stale-on-failure.

    Features:
    - Per-call TTL with a configurable default
    - One in-flight fetch per key, shared by concurrent callers
    - Expired entries are kept and served if a refresh fails
    - Bounded size, least recently used entries evicted first
    """

    def __init__(
        self,
        default_ttl: float = 300.0,
        max_size: int = 1000,
        clock: Optional[Clock] = None
    ):
        """
        Initialize the response cache.

        Args:
            default_ttl: Default time-to-live for entries in seconds
            max_size: Maximum number of entries kept
            clock: Monotonic time source in seconds, injectable for tests
        """
        self.default_ttl = default_ttl
        self.max_size = max_size
        self._clock = clock or time.monotonic
        self._store: LRUCache = LRUCache(maxsize=max_size)
        self._pending: Dict[str, asyncio.Task] = {}
        self.hits = 0
        self.misses = 0
        self.coalesced = 0
        self.stale_served = 0

    async def get_or_fetch(
        self,
        key: str,
        fetcher: Callable[[], Awaitable[T]],
        ttl: Optional[float] = None
    ) -> T:
        """
        Return the cached value for ``key`` or fetch and store it.

        Args:
            key: Cache key
            fetcher: Zero-argument coroutine function producing the value
            ttl: Optional TTL override in seconds

        Returns:
            The cached, freshly fetched or stale value

        Raises:
            Exception: Whatever the fetcher raised, when no previous entry exists
        """
        entry = self._store.get(key)
        if entry is not None and entry.is_fresh(self._clock()):
            self.hits += 1
            return entry.value

        task = self._pending.get(key)
        if task is not None:
            self.coalesced += 1
            logger.debug(f"Joining in-flight fetch for {key}")
            return await asyncio.shield(task)

        self.misses += 1
        task = asyncio.ensure_future(self._fetch(key, fetcher, ttl, entry))
        self._pending[key] = task
        task.add_done_callback(lambda done: self._release(key, done))
        # Shielded so a cancelled caller does not cancel the shared fetch
        return await asyncio.shield(task)

    async def _fetch(
        self,
        key: str,
        fetcher: Callable[[], Awaitable[T]],
        ttl: Optional[float],
        previous: Optional[CacheEntry]
    ) -> T:
        try:
            value = await fetcher()
        except Exception as e:
            stale = self._store.get(key) or previous
            if stale is None:
                logger.warning(f"Fetch for {key} failed with nothing cached: {str(e)}")
                raise
            self.stale_served += 1
            logger.warning(f"Fetch for {key} failed, serving stale value: {str(e)}")
            return stale.value

        self.set(key, value, ttl)
        return value

    def _release(self, key: str, task: asyncio.Task) -> None:
        if self._pending.get(key) is task:
            del self._pending[key]
        if not task.cancelled():
            # Mark the exception as retrieved when every waiter has gone away
            task.exception()

    def get(self, key: str) -> Optional[Any]:
        """
        Get a fresh value from the cache without fetching.

        Returns:
            The cached value, or None if missing or expired
        """
        entry = self._store.get(key)
        if entry is None or not entry.is_fresh(self._clock()):
            return None
        return entry.value

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        """
        Store a value, replacing any previous entry.

        Args:
            key: Cache key
            value: Value to cache
            ttl: Time-to-live in seconds (uses default_ttl if None)
        """
        now = self._clock()
        ttl_value = self.default_ttl if ttl is None else ttl
        self._store[key] = CacheEntry(value=value, stored_at=now, expires_at=now + ttl_value)

    def invalidate(self, key: str) -> bool:
        """
        Remove a key from the cache.

        Returns:
            True if the key was present
        """
        return self._store.pop(key, None) is not None

    def clear(self) -> None:
        """Remove every entry. In-flight fetches still complete and store."""
        self._store.clear()

    def stats(self) -> Dict[str, Any]:
        """
        Get cache statistics.

        Returns:
            Dictionary with cache statistics
        """
        return {
            "size": len(self._store),
            "max_size": self.max_size,
            "keys": list(self._store.keys()),
            "pending": len(self._pending),
            "hits": self.hits,
            "misses": self.misses,
            "coalesced": self.coalesced,
            "stale_served": self.stale_served,
        }
