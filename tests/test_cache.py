"""Tests for Cache class.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

import pytest

from roadkeys_core.cache.cache import Cache, CacheConfig, CacheStats


@pytest.fixture
def cache(store, metrics):
    return Cache(store, metrics=metrics)


class TestGetOrSet:
    """Tests for cache-aside loading."""

    def test_loader_called_once(self, cache):
        """Test the loader only runs on a miss."""
        calls = []

        def loader():
            calls.append(1)
            return {"name": "alice"}

        first = cache.get_or_set("user:1", loader, ttl=300)
        second = cache.get_or_set("user:1", loader, ttl=300)

        assert first == second == {"name": "alice"}
        assert len(calls) == 1

    def test_hit_rate(self, cache):
        """Test one miss plus one hit gives 50%."""
        cache.get_or_set("k", lambda: 1)
        cache.get_or_set("k", lambda: 1)

        stats = cache.get_stats()
        assert stats.hits == 1
        assert stats.misses == 1
        assert stats.hit_rate == 50

    def test_loader_error_not_cached(self, cache):
        """Test loader failures propagate and cache nothing."""
        def loader():
            raise RuntimeError("db down")

        with pytest.raises(RuntimeError, match="db down"):
            cache.get_or_set("k", loader)

        assert not cache.has("k")
        assert cache.get_or_set("k", lambda: "ok") == "ok"

    def test_ttl_applied(self, cache, clock):
        """Test loaded values expire with their TTL."""
        cache.get_or_set("k", lambda: "v", ttl=10)
        assert cache.ttl("k") == 10

        clock.advance(10)
        assert cache.get_or_set("k", lambda: "fresh", ttl=10) == "fresh"

    def test_default_ttl(self, store):
        """Test the configured default TTL."""
        cache = Cache(store, CacheConfig(default_ttl=42))
        cache.get_or_set("k", lambda: "v")
        assert cache.ttl("k") == 42

    def test_cached_none_is_a_hit(self, cache):
        """Test a stored null is returned without reloading."""
        calls = []
        cache.get_or_set("k", lambda: calls.append(1))
        cache.get_or_set("k", lambda: calls.append(1))

        assert len(calls) == 1

    def test_decode_error_counts_as_miss(self, cache, store, metrics):
        """Test undecodable values are reloaded and counted."""
        store.set("cache:k", "{broken")

        assert cache.get_or_set("k", lambda: "repaired") == "repaired"
        stats = cache.get_stats()
        assert stats.misses == 1
        assert stats.decode_errors == 1
        assert metrics.get_metrics().decode_errors == 1
        assert cache.get("k") == "repaired"


class TestCacheOperations:
    """Tests for direct cache operations."""

    def test_basic_operations(self, cache):
        """Test get/set/delete."""
        cache.set("key1", "value1")
        assert cache.get("key1") == "value1"

        assert cache.delete("key1")
        assert cache.get("key1") is None
        assert not cache.delete("key1")

    def test_default_value(self, cache):
        """Test default value on miss."""
        assert cache.get("missing", default="default") == "default"

    def test_get_counts(self, cache):
        """Test get records hits and misses."""
        cache.set("k", "v")
        cache.get("k")
        cache.get("missing")

        stats = cache.get_stats()
        assert (stats.hits, stats.misses) == (1, 1)

    def test_invalid_ttl(self, cache):
        """Test non-positive TTLs are rejected."""
        with pytest.raises(ValueError):
            cache.set("k", "v", ttl=0)

    def test_update_ttl(self, cache):
        """Test TTL updates."""
        cache.set("k", "v", ttl=10)
        assert cache.update_ttl("k", 100)
        assert cache.ttl("k") == 100
        assert not cache.update_ttl("missing", 100)
        assert cache.ttl("missing") == -2

    def test_keys_pattern(self, cache):
        """Test keys with pattern."""
        cache.set("user:1", "alice")
        cache.set("user:2", "bob")
        cache.set("session:1", "xyz")

        user_keys = cache.keys("user:*")
        assert sorted(user_keys) == ["user:1", "user:2"]

    def test_delete_pattern(self, cache):
        """Test pattern deletion."""
        cache.set("user:1", "alice")
        cache.set("user:2", "bob")
        cache.set("session:1", "xyz")

        assert cache.delete_pattern("user:*") == 2
        assert cache.keys() == ["session:1"]
        assert cache.delete_pattern("none:*") == 0

    def test_stats_not_in_keys(self, cache):
        """Test counters live outside the cache namespace."""
        cache.get_or_set("k", lambda: 1)
        cache.get_or_set("k", lambda: 1)

        assert cache.keys() == ["k"]
        assert cache.size() == 1
        assert cache.get_stats().total_keys == 1

    def test_clear_keeps_stats(self, cache):
        """Test clear removes entries but not counters."""
        cache.set("key1", "value1")
        cache.set("key2", "value2")
        cache.get("key1")

        assert cache.clear() == 2
        assert cache.size() == 0
        assert cache.get_stats().hits == 1

    def test_reset_stats(self, cache):
        """Test counters reset."""
        cache.get("missing")
        cache.reset_stats()

        stats = cache.get_stats()
        assert stats.misses == 0
        assert stats.hit_rate == 0

    def test_warm(self, cache):
        """Test pre-population with optional TTLs."""
        count = cache.warm([("a", 1), ("b", 2, 60)])

        assert count == 2
        assert cache.ttl("a") == 300
        assert cache.ttl("b") == 60

    def test_namespaces_isolated(self, store):
        """Test two caches do not share entries or counters."""
        users = Cache(store, CacheConfig(namespace="users"))
        posts = Cache(store, CacheConfig(namespace="posts"))

        users.set("1", "alice")
        assert posts.get("1") is None
        assert users.get_stats().hits == 0
        assert posts.get_stats().misses == 1

    def test_contains(self, cache):
        """Test membership."""
        cache.set("k", "v")
        assert "k" in cache
        assert len(cache) == 1


class TestCachedDecorator:
    """Tests for the cached decorator."""

    def test_results_cached(self, cache):
        """Test repeated calls hit the cache."""
        calls = []

        @cache.cached(ttl=60)
        def square(n):
            calls.append(n)
            return n * n

        assert square(3) == 9
        assert square(3) == 9
        assert square(4) == 16
        assert calls == [3, 4]
        assert sorted(cache.keys()) == ["square:3", "square:4"]

    def test_key_builder(self, cache):
        """Test custom cache keys."""
        @cache.cached(key_builder=lambda user_id: f"user:{user_id}")
        def load_user(user_id):
            return {"id": user_id}

        load_user(7)
        assert cache.get("user:7") == {"id": 7}

    def test_cache_clear(self, cache):
        """Test clearing a function's results."""
        @cache.cached()
        def value(n=0):
            return n

        value()
        value(1)
        cache.set("other", "kept")

        assert value.cache_clear() == 2
        assert cache.keys() == ["other"]


class TestCacheStats:
    """Tests for CacheStats."""

    def test_hit_rate_rounding(self):
        """Test hit rate is a rounded percentage."""
        stats = CacheStats(hits=1, misses=2)
        assert stats.hit_rate == 33.33
        assert CacheStats().hit_rate == 0.0
        assert stats.to_dict()["hit_rate"] == 33.33
