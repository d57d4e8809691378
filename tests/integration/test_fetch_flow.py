"""
Integration tests for the data-access layer: config, cache, orchestrator,
reporter and cleanup wired together the way a consumer composes them.
"""

import asyncio

import pytest
from prometheus_client import CollectorRegistry

from data_access.caching import CacheAside, CacheStore
from data_access.fetching import FetchOptions, ResilientFetch, use_resilient_fetch
from data_access.lifecycle import cleanup_interval, cleanup_subscription, cleanup_timeout, set_interval, set_timeout
from data_access.reporting import LoggingErrorReporter
from shared.config import DataAccessConfig
from shared.metrics import MetricsCollector
from shared.test_helpers import FakeClock, RecordingSleep, ScriptedProducer


@pytest.fixture
def config():
    return DataAccessConfig(cache_max_size=2, cache_default_ttl=30, retry_attempts=2, retry_delay=0.5)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def registry():
    return CollectorRegistry()


@pytest.fixture
def metrics(registry):
    return MetricsCollector(registry=registry)


@pytest.fixture
def cache(config, clock, metrics):
    return CacheAside(CacheStore.from_config(config, clock=clock, metrics=metrics), metrics=metrics)


@pytest.mark.asyncio
async def test_consumer_lifecycle(config, cache, clock, metrics, registry):
    """A consumer fetches, re-renders from cache, and tears everything down."""
    sent = []
    reporter = LoggingErrorReporter(production=True, transport=sent.append, metrics=metrics)
    sleep = RecordingSleep()
    producer = ScriptedProducer([ConnectionError("blip"), {"curve": "USD", "points": 12}])

    options = FetchOptions.from_config(config, cache_key="curves:USD")
    fetch = ResilientFetch(producer, options, store=cache, reporter=reporter, sleep=sleep, metrics=metrics)
    states = []
    subscription = fetch.subscribe(states.append)

    fetch.start()
    await fetch.settle()

    assert fetch.data == {"curve": "USD", "points": 12}
    assert sleep.delays == [0.5]
    assert sent == []

    # A second consumer of the same key is served from cache
    again = use_resilient_fetch(producer, cache_key="curves:USD", store=cache, reporter=reporter, sleep=sleep)
    await again.settle()
    assert again.data == fetch.data
    assert producer.calls == 2

    subscription = cleanup_subscription(subscription)
    fetch.dispose()
    again.dispose()

    assert subscription is None
    assert [s.loading for s in states] == [True, False]
    assert registry.get_sample_value("data_access_cache_hits_total") == 1


@pytest.mark.asyncio
async def test_exhausted_fetch_reports_through_transport(config, cache, metrics):
    sent = []
    reporter = LoggingErrorReporter(production=True, transport=sent.append, metrics=metrics)
    producer = ScriptedProducer([ConnectionError("network down")])

    fetch = use_resilient_fetch(
        producer, cache_key="instruments", retry_attempts=config.retry_attempts,
        retry_delay=config.retry_delay, store=cache, reporter=reporter, sleep=RecordingSleep()
    )
    await fetch.settle()

    assert producer.calls == 3
    assert fetch.error == "network down"
    assert len(sent) == 1
    assert sent[0].code == "RETRY_EXHAUSTED"
    assert sent[0].context == {"source": "fetch-orchestrator", "cache_key": "instruments"}
    assert cache.store.get("instruments") is None


@pytest.mark.asyncio
async def test_cache_bound_and_expiry_across_fetches(cache, clock):
    for key in ("a", "b", "c"):
        fetch = use_resilient_fetch(
            ScriptedProducer([key.upper()]), cache_key=key, store=cache, sleep=RecordingSleep()
        )
        await fetch.settle()
        fetch.dispose()

    assert cache.store.stats()["keys"] == ["b", "c"]

    clock.advance(31)
    assert cache.store.get("b") is None
    assert cache.store.get("c") is None


@pytest.mark.asyncio
async def test_timers_torn_down_with_consumer():
    ticks = []
    poller = set_interval(lambda: ticks.append("tick"), 0.01)
    banner = set_timeout(lambda: ticks.append("banner"), 0.5)

    await asyncio.sleep(0.05)
    poller = cleanup_interval(poller)
    banner = cleanup_timeout(banner)
    count = len(ticks)
    await asyncio.sleep(0.05)

    assert poller is None and banner is None
    assert "banner" not in ticks
    assert len(ticks) == count
