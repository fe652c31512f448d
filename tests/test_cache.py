"""Unit tests for ResponseCache.

Test Coverage:
- Get/set within and after TTL
- Default TTL for None and zero
- Delete and flush
- LRU bound and expired-first eviction
- Background sweep
- Cache key determinism
"""

import asyncio

import pytest

from rpc_gateway.cache import ResponseCache, make_cache_key
from rpc_gateway.errors import InvalidRpcRequestError


class TestResponseCache:
    """Test suite for ResponseCache."""

    @pytest.fixture
    def cache(self, clock):
        return ResponseCache(default_ttl_seconds=60, clock=clock)

    # ========================================================================
    # TTL behaviour
    # ========================================================================

    def test_value_returned_before_ttl(self, cache, clock):
        cache.set("k", {"block": 1}, ttl=10)
        clock.advance(9.999)
        assert cache.get("k") == {"block": 1}

    def test_value_absent_after_ttl(self, cache, clock):
        cache.set("k", "v", ttl=10)
        clock.advance(10)
        assert cache.get("k") is None
        assert len(cache) == 0
        assert cache.expirations == 1

    def test_never_set_key_is_absent(self, cache):
        assert cache.get("missing") is None
        assert cache.get("missing", "fallback") == "fallback"

    @pytest.mark.parametrize("ttl", [None, 0])
    def test_default_ttl_used(self, cache, clock, ttl):
        cache.set("k", "v", ttl=ttl)
        clock.advance(59)
        assert cache.get("k") == "v"
        clock.advance(1)
        assert cache.get("k") is None

    def test_negative_ttl_rejected(self, cache):
        with pytest.raises(ValueError):
            cache.set("k", "v", ttl=-1)

    def test_overwrite_resets_expiry(self, cache, clock):
        cache.set("k", "old", ttl=10)
        clock.advance(8)
        cache.set("k", "new", ttl=10)
        clock.advance(8)
        assert cache.get("k") == "new"

    def test_none_value_distinguishable_from_absent(self, cache):
        sentinel = object()
        cache.set("k", None)
        assert cache.get("k", sentinel) is None
        assert cache.get("other", sentinel) is sentinel

    # ========================================================================
    # Delete / flush
    # ========================================================================

    def test_delete(self, cache):
        cache.set("k", "v")
        assert cache.delete("k") is True
        assert cache.delete("k") is False
        assert cache.get("k") is None

    def test_flush(self, cache):
        for i in range(5):
            cache.set(f"k{i}", i)
        cache.flush()
        assert len(cache) == 0

    def test_contains_respects_expiry(self, cache, clock):
        cache.set("k", "v", ttl=5)
        assert "k" in cache
        clock.advance(5)
        assert "k" not in cache

    # ========================================================================
    # Bounded size
    # ========================================================================

    def test_lru_eviction(self, clock):
        cache = ResponseCache(max_entries=2, clock=clock)
        cache.set("a", 1)
        cache.set("b", 2)
        cache.get("a")
        cache.set("c", 3)
        assert cache.get("b") is None
        assert cache.get("a") == 1
        assert cache.get("c") == 3
        assert cache.evictions == 1

    def test_expired_entries_evicted_first(self, clock):
        cache = ResponseCache(max_entries=2, clock=clock)
        cache.set("short", 1, ttl=1)
        cache.set("long", 2, ttl=100)
        clock.advance(2)
        cache.set("new", 3)
        assert cache.get("long") == 2
        assert cache.get("new") == 3
        assert cache.evictions == 0

    def test_purge_expired(self, cache, clock):
        cache.set("a", 1, ttl=1)
        cache.set("b", 2, ttl=10)
        clock.advance(5)
        assert cache.purge_expired() == 1
        assert len(cache) == 1

    # ========================================================================
    # Sweep task
    # ========================================================================

    @pytest.mark.asyncio
    async def test_sweep_removes_expired(self):
        cache = ResponseCache(sweep_interval_seconds=0.01)
        cache.set("k", "v", ttl=0.005)
        await cache.start()
        try:
            await asyncio.sleep(0.05)
            assert len(cache) == 0
        finally:
            await cache.close()

    @pytest.mark.asyncio
    async def test_no_sweep_by_default(self):
        cache = ResponseCache()
        await cache.start()
        assert cache._sweep_task is None
        await cache.close()

    def test_stats(self, cache):
        cache.set("k", "v")
        cache.get("k")
        cache.get("x")
        stats = cache.get_stats()
        assert stats['hits'] == 1
        assert stats['misses'] == 1
        assert stats['hit_rate'] == 0.5
        assert stats['size'] == 1


class TestCacheKey:
    """Tests for make_cache_key."""

    def test_identical_inputs_identical_key(self):
        assert make_cache_key("getBlock", [1]) == make_cache_key("getBlock", [1])

    def test_dict_key_order_ignored(self):
        a = make_cache_key("m", [{"a": 1, "b": 2}])
        b = make_cache_key("m", [{"b": 2, "a": 1}])
        assert a == b

    def test_method_and_params_distinguish(self):
        assert make_cache_key("getBlock", [1]) != make_cache_key("getBlock", [2])
        assert make_cache_key("getBlock", [1]) != make_cache_key("getSlot", [1])
        assert make_cache_key("getBlock", [1]).startswith("getBlock:")

    def test_unserializable_params_rejected(self):
        with pytest.raises(InvalidRpcRequestError):
            make_cache_key("m", [object()])

    def test_integers_beyond_64_bits_rejected(self):
        with pytest.raises(InvalidRpcRequestError, match="64-bit"):
            make_cache_key("eth_call", [2 ** 64])
        make_cache_key("eth_call", [2 ** 63 - 1])
