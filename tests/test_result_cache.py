"""
Tests for the TTL result cache.
"""

import pytest

from Colony.core.optimization.result_cache import CacheEntry, ResultCache


@pytest.mark.unit
class TestResultCache:

    def test_set_and_get(self, clock):
        cache = ResultCache(ttl_seconds=60, clock=clock)
        cache.set("k", {"answer": 42}, cost=0.5)
        entry = cache.get("k")
        assert isinstance(entry, CacheEntry)
        assert entry.result == {"answer": 42}
        assert entry.cost == 0.5
        assert "k" in cache

    def test_miss(self, clock):
        cache = ResultCache(clock=clock)
        assert cache.get("missing") is None
        assert cache.get_stats()['misses'] == 1

    def test_entry_alive_until_ttl(self, clock):
        cache = ResultCache(ttl_seconds=60, clock=clock)
        cache.set("k", "v", cost=0.1)
        clock.advance(60)
        assert cache.get("k") is not None

    def test_expired_entry_dropped_on_read(self, clock):
        cache = ResultCache(ttl_seconds=60, clock=clock)
        cache.set("k", "v", cost=0.1)
        clock.advance(61)
        assert "k" not in cache
        assert cache.get("k") is None
        assert len(cache) == 0
        assert cache.evictions == 1

    def test_evict_expired(self, clock):
        cache = ResultCache(ttl_seconds=10, clock=clock)
        cache.set("old", "v", cost=0.1)
        clock.advance(5)
        cache.set("new", "v", cost=0.1)
        clock.advance(6)
        assert cache.evict_expired() == 1
        assert "new" in cache
        assert "old" not in cache

    def test_hit_rate(self, clock):
        cache = ResultCache(clock=clock)
        cache.set("k", "v", cost=0.0)
        cache.get("k")
        cache.get("other")
        assert cache.get_stats()['hit_rate'] == 0.5

    def test_clear(self, clock):
        cache = ResultCache(clock=clock)
        cache.set("k", "v", cost=0.0)
        cache.clear()
        assert len(cache) == 0
