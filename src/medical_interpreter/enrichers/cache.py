# ============================================================================
# src/medical_interpreter/enrichers/cache.py
# ============================================================================
"""
Memoization cache for enrichment lookups.

Shared across concurrent drug lookups within the process:
- Append-only: set_once() never overwrites a live entry
- Distinguishes a cached None (negative lookup) from a miss
- LRU eviction past max_size, optional TTL
- Thread-safe (RLock) with hit/miss/write/eviction statistics

The cache is injected into the enrichers that use it; there is no
module-level instance.
"""

import logging
import threading
from collections import OrderedDict
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional, Tuple

from ..config import enrichment_settings


@dataclass
class CacheEntry:
    """
    Single cache entry with metadata.

    Attributes:
        key: Normalized cache key
        value: Cached lookup result (None is a valid cached value)
        created_at: When the entry was written
        ttl_seconds: Time-to-live (None = process lifetime)
    """
    key: str
    value: Any
    created_at: datetime
    access_count: int = 0
    ttl_seconds: Optional[int] = None

    def is_expired(self) -> bool:
        if self.ttl_seconds is None:
            return False
        return (datetime.now() - self.created_at).total_seconds() > self.ttl_seconds


class CacheStatistics:
    """Track cache performance metrics"""

    def __init__(self):
        self.hits = 0
        self.misses = 0
        self.writes = 0
        self.evictions = 0
        self.expirations = 0

    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total > 0 else 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "hits": self.hits,
            "misses": self.misses,
            "writes": self.writes,
            "evictions": self.evictions,
            "expirations": self.expirations,
            "hit_rate": self.hit_rate(),
        }


_MISSING = object()


class MemoCache:
    """
    Bounded append-only memo cache.

    Example:
        cache = MemoCache(max_size=1000)
        key = MemoCache.make_key("rxnorm", "Metformin ")   # "rxnorm:metformin"
        found, value = cache.lookup(key)
        if not found:
            value = await fetch(...)
            cache.set_once(key, value)
    """

    def __init__(self, max_size: Optional[int] = None, default_ttl: Optional[int] = None):
        self.max_size = max_size or enrichment_settings.MEMO_CACHE_MAX_SIZE
        self.default_ttl = default_ttl if default_ttl is not None else enrichment_settings.MEMO_CACHE_TTL

        self._cache: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._lock = threading.RLock()
        self._stats = CacheStatistics()
        self.logger = logging.getLogger(__name__)

    @staticmethod
    def make_key(prefix: str, identifier: str) -> str:
        return f"{prefix}:{(identifier or '').strip().lower()}"

    def lookup(self, key: str) -> Tuple[bool, Any]:
        """Return (found, value); a cached None comes back as (True, None)."""
        with self._lock:
            entry = self._cache.get(key)
            if entry is None:
                self._stats.misses += 1
                return False, None

            if entry.is_expired():
                del self._cache[key]
                self._stats.misses += 1
                self._stats.expirations += 1
                return False, None

            entry.access_count += 1
            self._cache.move_to_end(key)
            self._stats.hits += 1
            return True, entry.value

    def get(self, key: str, default: Any = None) -> Any:
        found, value = self.lookup(key)
        return value if found else default

    def __contains__(self, key: str) -> bool:
        with self._lock:
            entry = self._cache.get(key)
            return entry is not None and not entry.is_expired()

    def set_once(self, key: str, value: Any) -> bool:
        """
        Store ``value`` unless a live entry already exists.

        Returns True when the value was written.
        """
        with self._lock:
            existing = self._cache.get(key)
            if existing is not None and not existing.is_expired():
                return False

            while len(self._cache) >= self.max_size:
                oldest_key = next(iter(self._cache))
                del self._cache[oldest_key]
                self._stats.evictions += 1
                self.logger.debug(f"Evicted entry: {oldest_key}")

            self._cache[key] = CacheEntry(
                key=key,
                value=value,
                created_at=datetime.now(),
                ttl_seconds=self.default_ttl,
            )
            self._cache.move_to_end(key)
            self._stats.writes += 1
            return True

    def __len__(self) -> int:
        with self._lock:
            return len(self._cache)

    def get_statistics(self) -> Dict[str, Any]:
        with self._lock:
            stats = self._stats.to_dict()
            stats["entry_count"] = len(self._cache)
            stats["max_size"] = self.max_size
            stats["default_ttl"] = self.default_ttl
            return stats
