"""
In-memory tiered TTL cache.

Every entry carries its own TTL, chosen by the caller from the entry's data
category. Expiry is enforced lazily: an expired entry is dropped the moment a
read finds it, and is never returned.
"""
import threading
import time
import logging
from typing import Dict, Optional, Callable, Any

from .core import CacheEntry, DataCategory

logger = logging.getLogger("cache.manager")


class TieredCache:
    """
    Key/value store with per-entry expiration.

    - ``get`` never raises; absent and expired both come back as ``None``
    - ``set`` overwrites unconditionally (last write wins)
    - Optional ``max_entries`` bound drops the oldest-stored entry on overflow
    """

    def __init__(
        self,
        clock: Callable[[], float] = time.monotonic,
        max_entries: Optional[int] = None,
    ):
        """
        Args:
            clock: Returns the current time in seconds; injectable for tests
            max_entries: Upper bound on stored entries, ``None`` for unbounded
        """
        self._entries: Dict[str, CacheEntry] = {}
        self._lock = threading.RLock()
        self._clock = clock
        self._max_entries = max_entries

        self._stats = {
            "hits": 0,
            "misses": 0,
            "expired": 0,
            "evicted": 0,
        }

    def get(self, key: str) -> Optional[Any]:
        """Return the live value for ``key``, or ``None``."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._stats["misses"] += 1
                logger.debug(f"CACHE MISS: {key}")
                return None

            now = self._clock()
            if not entry.is_live(now):
                del self._entries[key]
                self._stats["misses"] += 1
                self._stats["expired"] += 1
                logger.debug(f"CACHE EXPIRED: {key} [age={entry.age_ms(now):.0f}ms]")
                return None

            self._stats["hits"] += 1
            logger.debug(f"CACHE HIT: {key} [age={entry.age_ms(now):.0f}ms]")
            return entry.value

    def set(
        self,
        key: str,
        value: Any,
        ttl_ms: int,
        category: Optional[DataCategory] = None,
    ) -> None:
        """Store ``value`` under ``key``, live for ``ttl_ms`` from now."""
        with self._lock:
            self._entries.pop(key, None)
            self._entries[key] = CacheEntry(
                value=value,
                stored_at=self._clock(),
                ttl_ms=ttl_ms,
                category=category,
            )
            if self._max_entries is not None:
                self._enforce_bound()

    def _enforce_bound(self) -> None:
        # dicts keep insertion order and set() re-inserts, so the first key is the oldest write
        while len(self._entries) > self._max_entries:
            oldest = next(iter(self._entries))
            del self._entries[oldest]
            self._stats["evicted"] += 1
            logger.debug(f"CACHE EVICTED: {oldest}")

    def peek(self, key: str) -> Optional[Any]:
        """Live value for ``key`` without touching stats or evicting."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None or not entry.is_live(self._clock()):
                return None
            return entry.value

    def get_entry(self, key: str) -> Optional[CacheEntry]:
        """Inspect the raw entry for ``key`` without expiring it."""
        with self._lock:
            return self._entries.get(key)

    def invalidate(self, key: str) -> bool:
        """
        Invalidate a specific cache entry.

        Returns:
            True if entry was found and removed
        """
        with self._lock:
            if key in self._entries:
                del self._entries[key]
                logger.info(f"Invalidated cache: {key}")
                return True
            return False

    def invalidate_pattern(self, pattern: str) -> int:
        """
        Invalidate all cache entries whose key contains ``pattern``.

        Returns:
            Number of entries invalidated
        """
        with self._lock:
            to_delete = [k for k in self._entries if pattern in k]
            for key in to_delete:
                del self._entries[key]
            if to_delete:
                logger.info(f"Invalidated {len(to_delete)} entries matching '{pattern}'")
            return len(to_delete)

    def purge_expired(self) -> int:
        """
        Drop every expired entry in one pass.

        Returns:
            Number of entries removed
        """
        with self._lock:
            now = self._clock()
            expired = [k for k, e in self._entries.items() if not e.is_live(now)]
            for key in expired:
                del self._entries[key]
            self._stats["expired"] += len(expired)
            return len(expired)

    def clear(self) -> int:
        """
        Clear all cache entries.

        Returns:
            Number of entries cleared
        """
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
            logger.info(f"Cleared {count} cache entries")
            return count

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def get_stats(self) -> Dict[str, Any]:
        """Get cache statistics."""
        with self._lock:
            total = self._stats["hits"] + self._stats["misses"]
            hit_rate = (self._stats["hits"] / total * 100) if total > 0 else 0

            by_category: Dict[str, int] = {}
            for entry in self._entries.values():
                name = entry.category.value if entry.category else "uncategorized"
                by_category[name] = by_category.get(name, 0) + 1

            return {
                "entries": len(self._entries),
                "entries_by_category": by_category,
                "hits": self._stats["hits"],
                "misses": self._stats["misses"],
                "expired": self._stats["expired"],
                "evicted": self._stats["evicted"],
                "hit_rate_percent": round(hit_rate, 1),
                "max_entries": self._max_entries,
            }
