"""
Cache backend implementations.

The registry and the spam guardrail treat the cache as advisory: any
backend may be slow or unavailable and callers degrade to running without
it.
"""

from __future__ import annotations

import asyncio
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Callable


@dataclass
class CacheEntry:
    """A cache entry with metadata.

    Attributes:
        value: Cached value
        created_at: Creation timestamp
        ttl: Time-to-live in seconds
        hits: Number of cache hits
    """

    value: Any
    created_at: float
    ttl: float | None = None
    hits: int = 0

    def is_expired(self, now: float) -> bool:
        """Check if entry is expired at ``now``."""
        if self.ttl is None:
            return False
        return now > self.created_at + self.ttl


class CacheBackend(ABC):
    """Abstract base class for cache backends."""

    @abstractmethod
    async def get(self, key: str) -> Any | None:
        """Get a value from the cache.

        Args:
            key: Cache key

        Returns:
            Cached value or None
        """
        raise NotImplementedError

    @abstractmethod
    async def set(
        self, key: str, value: Any, ttl: float | None = None
    ) -> None:
        """Set a value in the cache.

        Args:
            key: Cache key
            value: Value to cache
            ttl: Time-to-live in seconds
        """
        raise NotImplementedError

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Delete a value from the cache."""
        raise NotImplementedError

    @abstractmethod
    async def clear(self, namespace: str | None = None) -> None:
        """Clear entries, optionally only those under ``namespace:``."""
        raise NotImplementedError

    @abstractmethod
    async def exists(self, key: str) -> bool:
        """Check if a key exists in the cache."""
        raise NotImplementedError

    async def close(self) -> None:
        """Close the backend (cleanup)."""
        pass


class MemoryCache(CacheBackend):
    """In-memory cache backend with TTL support.

    Suitable for single-process deployments and tests. Multi-instance
    deployments should plug in a shared backend so spam counters are
    visible across processes.

    Example:
        >>> cache = MemoryCache(max_size=10000, default_ttl=3600)
        >>> await cache.set("guardrail:default:ab12", {"allowed": True}, ttl=60)
        >>> value = await cache.get("guardrail:default:ab12")
    """

    def __init__(
        self,
        max_size: int = 10000,
        default_ttl: float | None = 3600.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize memory cache.

        Args:
            max_size: Maximum number of entries
            default_ttl: Default TTL in seconds
            clock: Time source, monotonic seconds
        """
        self._cache: dict[str, CacheEntry] = {}
        self._max_size = max_size
        self._default_ttl = default_ttl
        self._clock = clock
        self._lock = asyncio.Lock()

    async def get(self, key: str) -> Any | None:
        """Get a value from the cache."""
        async with self._lock:
            entry = self._cache.get(key)
            if entry is None:
                return None

            if entry.is_expired(self._clock()):
                del self._cache[key]
                return None

            entry.hits += 1
            return entry.value

    async def set(
        self, key: str, value: Any, ttl: float | None = None
    ) -> None:
        """Set a value in the cache."""
        async with self._lock:
            if len(self._cache) >= self._max_size and key not in self._cache:
                self._evict_one()

            self._cache[key] = CacheEntry(
                value=value,
                created_at=self._clock(),
                ttl=ttl if ttl is not None else self._default_ttl,
            )

    async def delete(self, key: str) -> bool:
        """Delete a value from the cache."""
        async with self._lock:
            if key in self._cache:
                del self._cache[key]
                return True
            return False

    async def clear(self, namespace: str | None = None) -> None:
        """Clear all entries, or only keys prefixed with ``namespace:``."""
        async with self._lock:
            if namespace is None:
                self._cache.clear()
                return
            prefix = f"{namespace}:"
            for key in [k for k in self._cache if k.startswith(prefix)]:
                del self._cache[key]

    async def exists(self, key: str) -> bool:
        """Check if a key exists."""
        async with self._lock:
            entry = self._cache.get(key)
            if entry is None:
                return False
            if entry.is_expired(self._clock()):
                del self._cache[key]
                return False
            return True

    def _evict_one(self) -> None:
        """Evict one entry, preferring expired ones, then the least hit."""
        if not self._cache:
            return

        now = self._clock()
        expired = [k for k, v in self._cache.items() if v.is_expired(now)]
        if expired:
            del self._cache[expired[0]]
            return

        min_hits_key = min(self._cache.keys(), key=lambda k: self._cache[k].hits)
        del self._cache[min_hits_key]

    @property
    def size(self) -> int:
        """Get current cache size."""
        return len(self._cache)


class NullCache(CacheBackend):
    """Cache backend that stores nothing.

    Useful for tests or to disable result caching.
    """

    async def get(self, key: str) -> Any | None:  # noqa: ARG002
        """Always returns None."""
        return None

    async def set(
        self, key: str, value: Any, ttl: float | None = None
    ) -> None:
        """Does nothing."""
        pass

    async def delete(self, key: str) -> bool:  # noqa: ARG002
        """Always returns False."""
        return False

    async def clear(self, namespace: str | None = None) -> None:
        """Does nothing."""
        pass

    async def exists(self, key: str) -> bool:  # noqa: ARG002
        """Always returns False."""
        return False
