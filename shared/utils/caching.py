"""
In-process caching for the ride query service.

MemoryCache is a bounded key/value store with least-recently-used eviction.
The column matcher memoises ranked matches in one instance per published
schema snapshot; replacing the snapshot replaces the cache.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional


@dataclass
class CacheStats:
    """Cache performance statistics."""
    hits: int = 0
    misses: int = 0
    sets: int = 0
    evictions: int = 0

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total > 0 else 0.0


class MemoryCache:
    """In-memory cache with LRU eviction."""

    def __init__(self, max_size: int = 1000):
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        self.max_size = max_size
        self.stats = CacheStats()
        self.logger = logging.getLogger(self.__class__.__name__)
        self._cache: Dict[str, Any] = {}
        # Monotonic access sequence; datetime resolution can tie under load.
        self._clock = 0
        self._last_used: Dict[str, int] = {}

    def __len__(self) -> int:
        return len(self._cache)

    def get(self, key: str) -> Optional[Any]:
        """Return the cached value or None."""
        if key not in self._cache:
            self.stats.misses += 1
            return None

        self._mark_used(key)
        self.stats.hits += 1
        return self._cache[key]

    def set(self, key: str, value: Any) -> None:
        if len(self._cache) >= self.max_size and key not in self._cache:
            self._evict_lru()

        self._cache[key] = value
        self._mark_used(key)
        self.stats.sets += 1

    def _mark_used(self, key: str) -> None:
        self._clock += 1
        self._last_used[key] = self._clock

    def _evict_lru(self) -> None:
        lru_key = min(self._last_used, key=self._last_used.__getitem__)
        self.logger.debug(f"Evicting least recently used entry: {lru_key}")
        del self._cache[lru_key]
        del self._last_used[lru_key]
        self.stats.evictions += 1

    def get_cache_info(self) -> Dict[str, Any]:
        """Size and hit statistics."""
        return {
            'size': len(self._cache),
            'max_size': self.max_size,
            'stats': {
                'hits': self.stats.hits,
                'misses': self.stats.misses,
                'hit_rate': self.stats.hit_rate,
                'sets': self.stats.sets,
                'evictions': self.stats.evictions
            }
        }
