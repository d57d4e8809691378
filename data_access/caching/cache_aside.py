"""
Cache-aside fetching on top of a CacheStore.
"""

import asyncio
from typing import Any, Awaitable, Callable, Dict, Optional, TypeVar, TYPE_CHECKING

from shared.logging import get_logger
from .cache_store import CacheStore

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


T = TypeVar("T")


class CacheAside:
    """Turns async producers into cached producers keyed by a string.

    Concurrent misses for the same key share one in-flight load: the first
    caller starts it and later callers await the same task.
    """

    def __init__(self, store: CacheStore, *, metrics: Optional["MetricsCollector"] = None):
        self.store = store
        self.metrics = metrics
        self.logger = get_logger("data_access.cache_aside")
        self._pending: Dict[str, "asyncio.Future[Any]"] = {}

    async def cached_fetch(self, key: str, producer: Callable[[], Awaitable[T]],
                           ttl: Optional[float] = None) -> T:
        """Return the cached value for ``key`` or load it with ``producer``.

        A failing producer propagates its exception unchanged and leaves the
        cache untouched.
        """
        cached = self.store.get(key)
        if cached is not None:
            self.logger.debug("Cache hit", key=key)
            if self.metrics:
                self.metrics.record_cache_hit()
            return cached

        if self.metrics:
            self.metrics.record_cache_miss()

        pending = self._pending.get(key)
        if pending is not None:
            self.logger.debug("Joining in-flight load", key=key)
            if self.metrics:
                self.metrics.record_coalesced()
            return await asyncio.shield(pending)

        self.logger.debug("Cache miss", key=key)
        task = asyncio.ensure_future(self._load(key, producer, ttl))
        self._pending[key] = task
        task.add_done_callback(lambda done: self._release(key, done))
        return await asyncio.shield(task)

    def in_flight(self, key: str) -> bool:
        """True while a load for ``key`` is running."""
        return key in self._pending

    async def _load(self, key: str, producer: Callable[[], Awaitable[T]], ttl: Optional[float]) -> T:
        data = await producer()
        self.store.set(key, data, ttl)
        return data

    def _release(self, key: str, task: "asyncio.Future[Any]") -> None:
        if self._pending.get(key) is task:
            del self._pending[key]
        # Mark the outcome as retrieved when every waiter has gone away
        if not task.cancelled():
            task.exception()
