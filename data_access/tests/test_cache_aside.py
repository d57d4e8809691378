"""
Unit tests for cache-aside fetching.
"""

import asyncio

import pytest
from unittest.mock import AsyncMock
from prometheus_client import CollectorRegistry

from data_access.caching import CacheAside, CacheStore
from shared.metrics import MetricsCollector
from shared.test_helpers import FakeClock, deferred_producer


class TestCacheAside:
    """Test cases for CacheAside."""

    @pytest.fixture
    def clock(self):
        return FakeClock()

    @pytest.fixture
    def store(self, clock):
        return CacheStore(clock=clock)

    @pytest.fixture
    def cache(self, store):
        """Create CacheAside instance."""
        return CacheAside(store)

    @pytest.mark.asyncio
    async def test_cache_hit_skips_producer(self, cache, store):
        store.set("x", {"price": 52.5})
        producer = AsyncMock(return_value={"price": 99.0})

        result = await cache.cached_fetch("x", producer)

        assert result == {"price": 52.5}
        producer.assert_not_called()

    @pytest.mark.asyncio
    async def test_cache_miss_invokes_producer_once_and_stores(self, cache, store):
        producer = AsyncMock(return_value=[1, 2, 3])

        result = await cache.cached_fetch("x", producer)

        assert result == [1, 2, 3]
        producer.assert_awaited_once()
        assert store.get("x") == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_failure_propagates_unmodified_and_caches_nothing(self, cache, store):
        error = ConnectionError("network down")
        producer = AsyncMock(side_effect=error)

        with pytest.raises(ConnectionError) as exc_info:
            await cache.cached_fetch("x", producer)

        assert exc_info.value is error
        producer.assert_awaited_once()
        assert store.get("x") is None
        assert cache.in_flight("x") is False

    @pytest.mark.asyncio
    async def test_ttl_passed_to_store(self, cache, store, clock):
        producer = AsyncMock(side_effect=["first", "second"])

        assert await cache.cached_fetch("x", producer, ttl=5) == "first"
        clock.advance(6)
        assert await cache.cached_fetch("x", producer, ttl=5) == "second"

        assert producer.await_count == 2

    @pytest.mark.asyncio
    async def test_concurrent_misses_are_coalesced(self, cache, store):
        producer, future = deferred_producer()
        calls = []

        async def counting_producer():
            calls.append(1)
            return await producer()

        first = asyncio.ensure_future(cache.cached_fetch("x", counting_producer))
        second = asyncio.ensure_future(cache.cached_fetch("x", counting_producer))
        await asyncio.sleep(0)
        assert cache.in_flight("x") is True

        future.set_result("shared")
        results = await asyncio.gather(first, second)

        assert results == ["shared", "shared"]
        assert len(calls) == 1
        assert store.get("x") == "shared"
        assert cache.in_flight("x") is False

    @pytest.mark.asyncio
    async def test_coalesced_waiters_share_failure(self, cache, store):
        producer, future = deferred_producer()

        first = asyncio.ensure_future(cache.cached_fetch("x", producer))
        second = asyncio.ensure_future(cache.cached_fetch("x", producer))
        await asyncio.sleep(0)

        future.set_exception(TimeoutError("upstream timeout"))
        results = await asyncio.gather(first, second, return_exceptions=True)

        assert all(isinstance(r, TimeoutError) for r in results)
        assert store.get("x") is None

    @pytest.mark.asyncio
    async def test_cancelled_waiter_does_not_cancel_shared_load(self, cache, store):
        producer, future = deferred_producer()

        first = asyncio.ensure_future(cache.cached_fetch("x", producer))
        second = asyncio.ensure_future(cache.cached_fetch("x", producer))
        await asyncio.sleep(0)

        first.cancel()
        future.set_result("value")

        assert await second == "value"
        assert first.cancelled()
        assert store.get("x") == "value"

    @pytest.mark.asyncio
    async def test_different_keys_are_independent(self, cache):
        producer_a = AsyncMock(return_value="a")
        producer_b = AsyncMock(return_value="b")

        results = await asyncio.gather(
            cache.cached_fetch("a", producer_a),
            cache.cached_fetch("b", producer_b),
        )

        assert results == ["a", "b"]
        producer_a.assert_awaited_once()
        producer_b.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_hit_and_miss_metrics(self, store):
        registry = CollectorRegistry()
        cache = CacheAside(store, metrics=MetricsCollector(registry=registry))
        producer = AsyncMock(return_value="v")

        await cache.cached_fetch("x", producer)
        await cache.cached_fetch("x", producer)

        assert registry.get_sample_value("data_access_cache_misses_total") == 1
        assert registry.get_sample_value("data_access_cache_hits_total") == 1
