"""Request-keyed result cache with fresh and retained lifetimes."""
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from visualizer.core.config import settings

logger = logging.getLogger(__name__)


@dataclass
class CacheEntry:
    """A cached value with its creation time (clock seconds)."""
    value: Any
    created_at: float

    def age(self, now: float) -> float:
        return now - self.created_at


@dataclass(frozen=True)
class CacheHit:
    """Result of a lookup: the value, and whether it is past its fresh window."""
    value: Any
    is_stale: bool
    age_seconds: float


class QueryResultCache:
    """
    In-memory cache keyed by serialized request.

    An entry is fresh for ``fresh_seconds`` (served as-is), then stale but
    retained until ``retain_seconds`` (served, but the caller should
    re-execute), then dropped.
    """

    def __init__(
        self,
        fresh_seconds: Optional[float] = None,
        retain_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.fresh_seconds = fresh_seconds if fresh_seconds is not None else settings.QUERY_CACHE_FRESH_SECONDS
        self.retain_seconds = retain_seconds if retain_seconds is not None else settings.QUERY_CACHE_RETAIN_SECONDS
        if self.retain_seconds < self.fresh_seconds:
            raise ValueError("retain_seconds must not be shorter than fresh_seconds")
        self._clock = clock
        self._cache: Dict[str, CacheEntry] = {}
        self._hits = 0
        self._stale_hits = 0
        self._misses = 0

    def get(self, key: str) -> Optional[CacheHit]:
        """Look up a key. Expired entries are evicted and count as misses."""
        entry = self._cache.get(key)

        if entry is None:
            self._misses += 1
            return None

        age = entry.age(self._clock())
        if age > self.retain_seconds:
            logger.debug(f"Cache entry expired (age: {age:.1f}s)")
            del self._cache[key]
            self._misses += 1
            return None

        is_stale = age > self.fresh_seconds
        if is_stale:
            self._stale_hits += 1
        else:
            self._hits += 1
        logger.debug(f"Cache {'stale ' if is_stale else ''}hit (age: {age:.1f}s)")
        return CacheHit(value=entry.value, is_stale=is_stale, age_seconds=age)

    def set(self, key: str, value: Any) -> None:
        """Store a value. Entries past their retention window are dropped first."""
        self.cleanup_expired()
        self._cache[key] = CacheEntry(value=value, created_at=self._clock())

    def delete(self, key: str) -> None:
        self._cache.pop(key, None)

    def clear(self) -> None:
        """Clear all cache entries and statistics."""
        self._cache.clear()
        self._hits = 0
        self._stale_hits = 0
        self._misses = 0

    def __len__(self) -> int:
        return len(self._cache)

    def __contains__(self, key: str) -> bool:
        return key in self._cache

    def get_stats(self) -> Dict[str, Any]:
        """Get cache statistics."""
        total_requests = self._hits + self._stale_hits + self._misses
        hit_rate = ((self._hits + self._stale_hits) / total_requests * 100) if total_requests > 0 else 0

        now = self._clock()
        expired_count = sum(1 for entry in self._cache.values() if entry.age(now) > self.retain_seconds)

        return {
            "hits": self._hits,
            "stale_hits": self._stale_hits,
            "misses": self._misses,
            "hit_rate": hit_rate,
            "size": len(self._cache),
            "expired_entries": expired_count,
        }

    def cleanup_expired(self) -> int:
        """Remove expired entries and return count removed."""
        now = self._clock()
        expired_keys = [key for key, entry in self._cache.items() if entry.age(now) > self.retain_seconds]
        for key in expired_keys:
            del self._cache[key]

        if expired_keys:
            logger.debug(f"Cleaned up {len(expired_keys)} expired cache entries")

        return len(expired_keys)
