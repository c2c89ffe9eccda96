"""
Unit tests for the response cache.

A fake millisecond clock drives TTL and age-based eviction.
"""

import pytest

from genstudio.core.cache import ResponseCache
from genstudio.core.models import GenerationResult


class FakeClock:
    def __init__(self, start=0.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, ms):
        self.now += ms


def result(text):
    return GenerationResult(text=text)


class TestResponseCache:
    """Test cache behavior."""

    def setup_method(self):
        self.clock = FakeClock(1000.0)
        self.cache = ResponseCache(max_size=3, ttl_ms=10_000, clock=self.clock)

    def test_invalid_construction(self):
        with pytest.raises(ValueError, match="max_size"):
            ResponseCache(max_size=0)
        with pytest.raises(ValueError, match="ttl_ms"):
            ResponseCache(ttl_ms=0)

    def test_miss_then_hit(self):
        assert self.cache.get("k") is None

        self.cache.set("k", result("v"))

        assert self.cache.get("k") == result("v")
        stats = self.cache.get_stats()
        assert stats.hits == 1
        assert stats.misses == 1
        assert stats.hit_rate == 0.5

    def test_evicts_oldest_when_full(self):
        for key in ("a", "b", "c"):
            self.cache.set(key, result(key))
            self.clock.advance(1)

        self.cache.set("d", result("d"))

        assert len(self.cache) == 3
        assert "a" not in self.cache
        assert all(key in self.cache for key in ("b", "c", "d"))

    def test_eviction_ignores_reads(self):
        for key in ("a", "b", "c"):
            self.cache.set(key, result(key))
            self.clock.advance(1)
        self.cache.get("a")

        self.cache.set("d", result("d"))

        assert "a" not in self.cache

    def test_overwrite_does_not_evict(self):
        for key in ("a", "b", "c"):
            self.cache.set(key, result(key))

        self.cache.set("b", result("b2"))

        assert len(self.cache) == 3
        assert self.cache.get("b") == result("b2")

    def test_overwrite_resets_age(self):
        for key in ("a", "b", "c"):
            self.cache.set(key, result(key))
            self.clock.advance(1)
        self.cache.set("a", result("a2"))

        self.cache.set("d", result("d"))

        assert "a" in self.cache
        assert "b" not in self.cache

    def test_hit_count_increments_per_hit(self):
        self.cache.set("k", result("v"))
        assert self.cache.peek("k").hit_count == 0

        self.cache.get("k")
        self.cache.get("k")
        self.cache.get("k")

        assert self.cache.peek("k").hit_count == 3

    def test_miss_does_not_touch_other_hit_counts(self):
        self.cache.set("k", result("v"))
        self.cache.get("k")

        self.cache.get("other")

        assert self.cache.peek("k").hit_count == 1

    def test_overwrite_resets_hit_count(self):
        self.cache.set("k", result("v"))
        self.cache.get("k")
        self.cache.get("k")

        self.cache.set("k", result("v2"))

        entry = self.cache.peek("k")
        assert entry.hit_count == 0
        assert entry.response == result("v2")

    def test_peek_leaves_stats_alone(self):
        self.cache.set("k", result("v"))

        self.cache.peek("k")
        self.cache.peek("missing")

        stats = self.cache.get_stats()
        assert stats.hits == 0
        assert stats.misses == 0

    def test_expired_entry_is_a_miss(self):
        self.cache.set("k", result("v"))
        self.clock.advance(10_001)

        assert self.cache.get("k") is None
        assert "k" not in self.cache
        assert self.cache.get_stats().misses == 1

    def test_entry_at_ttl_boundary_still_valid(self):
        self.cache.set("k", result("v"))
        self.clock.advance(10_000)

        assert self.cache.get("k") == result("v")

    def test_clear_expired(self):
        self.cache.set("old", result("old"))
        self.clock.advance(6_000)
        self.cache.set("new", result("new"))
        self.clock.advance(5_000)

        removed = self.cache.clear_expired()

        assert removed == 1
        assert "new" in self.cache

    def test_clear(self):
        self.cache.set("a", result("a"))
        self.cache.set("b", result("b"))

        assert self.cache.clear() == 2
        assert len(self.cache) == 0

    def test_reset_stats(self):
        self.cache.get("missing")
        self.cache.reset_stats()

        stats = self.cache.get_stats()
        assert stats.hits == 0
        assert stats.misses == 0
        assert stats.hit_rate == 0.0
