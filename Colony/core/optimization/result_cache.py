"""
Result Cache
============

Time-boxed memo of task results, keyed by caller-supplied strings. Each
entry remembers what producing it cost so a hit can be credited back into
the spend ledger.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from Colony.core.foundation.config_defaults import DEFAULTS
from Colony.core.utils.clock import Clock, SystemClock

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CacheEntry:
    """Cached result together with the cost of producing it."""
    result: Any
    cost: float
    timestamp: float
    ttl: float

    def is_expired(self, now: float) -> bool:
        return now - self.timestamp > self.ttl


class ResultCache:
    """
    TTL memo driven by an injected clock.

    Usage:
        cache = ResultCache(ttl_seconds=3600)
        cache.set("summary:readme", result, cost=0.02)
        entry = cache.get("summary:readme")   # CacheEntry or None
    """

    def __init__(self, ttl_seconds: float = DEFAULTS.CACHE_TTL_SECONDS, clock: Optional[Clock] = None):
        self.ttl_seconds = ttl_seconds
        self.clock = clock or SystemClock()
        self._entries: Dict[str, CacheEntry] = {}
        self.hits = 0
        self.misses = 0
        self.evictions = 0

    def get(self, key: str) -> Optional[CacheEntry]:
        """Return the live entry for ``key``; expired entries are dropped on read."""
        entry = self._entries.get(key)
        if entry is None:
            self.misses += 1
            return None
        if entry.is_expired(self.clock.now()):
            self._entries.pop(key, None)
            self.evictions += 1
            self.misses += 1
            return None
        self.hits += 1
        return entry

    def set(self, key: str, result: Any, cost: float) -> CacheEntry:
        entry = CacheEntry(result=result, cost=cost, timestamp=self.clock.now(), ttl=self.ttl_seconds)
        self._entries[key] = entry
        logger.debug(f"Cached result for '{key}' (TTL: {self.ttl_seconds}s, cost ${cost:.4f})")
        return entry

    def evict_expired(self) -> int:
        """Remove every expired entry; returns how many were removed."""
        now = self.clock.now()
        expired = [key for key, entry in list(self._entries.items()) if entry.is_expired(now)]
        for key in expired:
            self._entries.pop(key, None)
        self.evictions += len(expired)
        if expired:
            logger.debug(f"Evicted {len(expired)} expired cache entries")
        return len(expired)

    def clear(self) -> None:
        self._entries.clear()

    def __contains__(self, key: str) -> bool:
        entry = self._entries.get(key)
        return entry is not None and not entry.is_expired(self.clock.now())

    def __len__(self) -> int:
        return len(self._entries)

    def get_stats(self) -> Dict[str, Any]:
        total = self.hits + self.misses
        return {
            'entries': len(self._entries),
            'hits': self.hits,
            'misses': self.misses,
            'hit_rate': self.hits / total if total else 0.0,
            'evictions': self.evictions,
            'ttl_seconds': self.ttl_seconds,
        }


__all__ = [
    'CacheEntry',
    'ResultCache',
]
