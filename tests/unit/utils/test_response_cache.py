"""Tests for the in-memory TTL response cache."""

import pytest

from mgnrega_ingest.utils.cache import ResponseCache


pytestmark = pytest.mark.fast


@pytest.fixture
def cache(fake_clock):
    return ResponseCache(default_ttl_seconds=900, clock=fake_clock)


class TestResponseCache:
    def test_get_before_ttl(self, cache, fake_clock):
        cache.put("k", "v")
        fake_clock.advance(899.9)
        assert cache.get("k") == "v"

    def test_get_after_ttl(self, cache, fake_clock):
        cache.put("k", "v")
        fake_clock.advance(900.1)

        assert cache.get("k") is None
        assert "k" not in cache

    def test_boundary_is_consistent(self, cache, fake_clock):
        cache.put("k", "v")
        fake_clock.advance(900)

        first = cache.get("k")
        assert cache.get("k") == first

    def test_explicit_ttl(self, cache, fake_clock):
        cache.put("k", "v", ttl=10)
        fake_clock.advance(11)
        assert cache.get("k") is None

    def test_put_replaces_wholesale(self, cache, fake_clock):
        cache.put("k", "old", ttl=10)
        fake_clock.advance(5)
        cache.put("k", "new")
        fake_clock.advance(10)

        assert cache.get("k") == "new"

    def test_invalidate(self, cache):
        cache.put("k", "v")

        assert cache.invalidate("k") is True
        assert cache.invalidate("k") is False
        assert cache.get("k") is None

    def test_purge_expired(self, cache, fake_clock):
        cache.put("short", 1, ttl=5)
        cache.put("long", 2, ttl=500)
        fake_clock.advance(10)

        assert cache.purge_expired() == 1
        assert len(cache) == 1

    def test_clear(self, cache):
        cache.put("a", 1)
        cache.put("b", 2)
        cache.clear()
        assert len(cache) == 0

    def test_disabled_cache_never_stores(self, fake_clock):
        cache = ResponseCache(enabled=False, clock=fake_clock)
        cache.put("k", "v")

        assert cache.get("k") is None
        assert len(cache) == 0

    def test_stats(self, cache):
        cache.put("k", "v")
        cache.get("k")
        cache.get("missing")

        stats = cache.stats()
        assert stats["entries"] == 1
        assert stats["hits"] == 1
        assert stats["misses"] == 1


class TestConcurrencyBookkeeping:
    def test_locks_do_not_accumulate(self, cache, fake_clock):
        for i in range(1000):
            cache.put(f"k{i}", i)
            cache.invalidate(f"k{i}")
        cache.put("stale", 1, ttl=1)
        fake_clock.advance(2)
        cache.purge_expired()

        assert len(cache) == 0
        assert len(cache._locks) == 0

    def test_clear_during_expired_read(self, fake_clock):
        cache = ResponseCache(default_ttl_seconds=1, clock=fake_clock)
        cache.put("k", "v")

        def clearing_clock():
            # Another caller clears the cache between lookup and eviction.
            cache.clear()
            return fake_clock() + 10

        cache._clock = clearing_clock

        assert cache.get("k") is None
        assert len(cache) == 0
