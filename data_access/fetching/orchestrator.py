"""
Resilient fetch orchestrator.

One ``ResilientFetch`` owns the observable state of one logical data need.
It runs a producer under a retry policy, optionally through the cache-aside
layer, re-runs it when its dependencies change, and stops touching state
once its owner disposes it.
"""

import asyncio
import time
import uuid
from dataclasses import dataclass, field, replace
from typing import Any, Awaitable, Callable, Generic, List, Optional, Sequence, Set, TypeVar, Union, TYPE_CHECKING

from shared.errors import ConfigurationError, error_message
from shared.logging import get_logger
from shared.retry import RetryConfig, SleepFn, execute_with_retry
from ..caching import CacheAside, CacheStore
from ..lifecycle import Interval, cleanup_interval, cleanup_subscription, set_interval
from ..reporting import ErrorReporter, LoggingErrorReporter

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.config import DataAccessConfig
    from shared.metrics import MetricsCollector


T = TypeVar("T")

Producer = Callable[[], Awaitable[T]]
StateListener = Callable[["FetchState[Any]"], None]

ERROR_SOURCE = "fetch-orchestrator"


@dataclass(frozen=True)
class FetchState(Generic[T]):
    """Observable state of one orchestrator."""
    data: Optional[T] = None
    loading: bool = True
    error: Optional[str] = None


@dataclass
class FetchOptions:
    """Options for a ResilientFetch."""
    cache_key: Optional[str] = None
    cache_ttl: Optional[float] = None  # None uses the store's default_ttl
    retry_attempts: int = 3
    retry_delay: float = 1.0  # seconds, doubled on each retry
    dependencies: List[Any] = field(default_factory=list)
    poll_interval: Optional[float] = None

    def __post_init__(self):
        if self.retry_attempts < 0:
            raise ConfigurationError("retry_attempts must be >= 0", details={"retry_attempts": self.retry_attempts})
        if self.retry_delay < 0:
            raise ConfigurationError("retry_delay must be >= 0", details={"retry_delay": self.retry_delay})
        if self.cache_ttl is not None and self.cache_ttl <= 0:
            raise ConfigurationError("cache_ttl must be > 0", details={"cache_ttl": self.cache_ttl})
        if self.poll_interval is not None and self.poll_interval <= 0:
            raise ConfigurationError("poll_interval must be > 0", details={"poll_interval": self.poll_interval})
        self.dependencies = list(self.dependencies)

    @classmethod
    def from_config(cls, config: "DataAccessConfig", **overrides) -> "FetchOptions":
        """Options seeded from settings, with explicit overrides applied."""
        values = {
            "cache_ttl": config.cache_default_ttl,
            "retry_attempts": config.retry_attempts,
            "retry_delay": config.retry_delay,
        }
        values.update(overrides)
        return cls(**values)


def dependencies_changed(previous: Sequence[Any], current: Sequence[Any]) -> bool:
    """True unless both sequences hold the same (identical or equal) values."""
    if len(previous) != len(current):
        return True
    for old, new in zip(previous, current):
        if old is new:
            continue
        try:
            if old == new:
                continue
        except Exception:
            # Values without a usable __eq__ only match by identity
            pass
        return True
    return False


class StateSubscription:
    """Handle returned by ``ResilientFetch.subscribe``."""

    def __init__(self, owner: "ResilientFetch[Any]", listener: StateListener):
        self._owner = owner
        self.listener = listener
        self.active = True

    def unsubscribe(self) -> None:
        if not self.active:
            return
        self.active = False
        self._owner._remove_subscription(self)


class ResilientFetch(Generic[T]):
    """Retrying, cache-aware, disposal-safe fetch of one piece of data.

    Executions are numbered; only the latest execution may write state, so a
    slow earlier run can never overwrite a newer result. After ``dispose``
    no execution writes state at all.
    """

    def __init__(
        self,
        producer: Producer[T],
        options: Optional[FetchOptions] = None,
        *,
        store: Optional[Union[CacheAside, CacheStore]] = None,
        reporter: Optional[ErrorReporter] = None,
        sleep: SleepFn = asyncio.sleep,
        metrics: Optional["MetricsCollector"] = None,
        name: Optional[str] = None,
    ):
        self.producer = producer
        self.options = options or FetchOptions()
        self.metrics = metrics
        self.name = name or getattr(producer, "__name__", "fetch")
        self.fetch_id = uuid.uuid4().hex[:12]

        if isinstance(store, CacheStore):
            store = CacheAside(store, metrics=metrics)
        if self.options.cache_key is not None and store is None:
            raise ConfigurationError(
                "cache_key requires a store",
                details={"cache_key": self.options.cache_key}
            )
        self.cache = store
        self.reporter = reporter or LoggingErrorReporter(metrics=metrics)

        self.logger = get_logger("data_access.orchestrator").bind(
            fetch=self.name,
            fetch_id=self.fetch_id,
            cache_key=self.options.cache_key
        )

        self._sleep = sleep
        self._state: FetchState[T] = FetchState()
        self._generation = 0
        self._retry_count = 0
        self._active = True
        self._started = False
        self._tasks: Set[asyncio.Task] = set()
        self._subscriptions: List[StateSubscription] = []
        self._poller: Optional[Interval] = None

    # Observable state

    @property
    def state(self) -> FetchState[T]:
        return self._state

    @property
    def data(self) -> Optional[T]:
        return self._state.data

    @property
    def loading(self) -> bool:
        return self._state.loading

    @property
    def error(self) -> Optional[str]:
        return self._state.error

    @property
    def retry_count(self) -> int:
        """Retries spent since the last ``refetch``."""
        return self._retry_count

    @property
    def is_active(self) -> bool:
        return self._active

    @property
    def generation(self) -> int:
        return self._generation

    # Lifecycle

    def start(self) -> Optional[asyncio.Task]:
        """Schedule the first execution and start polling, once."""
        if self._started or not self._active:
            return None
        self._started = True

        task = self._schedule()
        if self.options.poll_interval:
            self._poller = set_interval(self._poll, self.options.poll_interval, name=f"poll.{self.name}")
        self.logger.info("Fetch started", poll_interval=self.options.poll_interval)
        return task

    def dispose(self) -> None:
        """Signal owner teardown. In-flight executions keep running but can no longer write state."""
        if not self._active:
            return
        self._active = False
        self._poller = cleanup_interval(self._poller, metrics=self.metrics)
        for subscription in list(self._subscriptions):
            cleanup_subscription(subscription, metrics=self.metrics)
        self.logger.info("Fetch disposed", in_flight=len(self._tasks))

    async def __aenter__(self) -> "ResilientFetch[T]":
        self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.dispose()

    # Triggers

    async def refetch(self) -> None:
        """Reset the retry counter and run the pipeline again."""
        self._retry_count = 0
        await self._schedule()

    def set_dependencies(self, dependencies: Sequence[Any]) -> Optional[asyncio.Task]:
        """Replace the dependency values; re-run the pipeline when any changed."""
        dependencies = list(dependencies)
        if not dependencies_changed(self.options.dependencies, dependencies):
            return None

        self.options.dependencies = dependencies
        if not (self._active and self._started):
            return None

        self.logger.debug("Dependencies changed, re-executing")
        return self._schedule()

    def subscribe(self, listener: StateListener) -> StateSubscription:
        """Call ``listener`` with every new state until unsubscribed."""
        subscription = StateSubscription(self, listener)
        self._subscriptions.append(subscription)
        return subscription

    async def settle(self) -> FetchState[T]:
        """Wait for every scheduled execution to finish; returns the state."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
        return self._state

    # Pipeline

    def _poll(self) -> None:
        # Own task: cancelling the interval leaves an in-flight run alone
        if self._active:
            self._schedule()

    def _schedule(self) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(self._execute())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _execute(self) -> None:
        if not self._active:
            return

        self._generation += 1
        generation = self._generation
        self._apply(generation, replace(self._state, loading=True, error=None))

        started_at = time.perf_counter()
        try:
            data = await self._resolve()
        except Exception as exc:
            self._report(exc)
            applied = self._apply(generation, FetchState(data=None, loading=False, error=error_message(exc)))
            self._record_outcome("failure" if applied else "stale", started_at)
            return

        applied = self._apply(generation, FetchState(data=data, loading=False, error=None))
        self._record_outcome("success" if applied else "stale", started_at)

    async def _resolve(self) -> T:
        retry_config = RetryConfig(
            retry_attempts=self.options.retry_attempts,
            base_delay=self.options.retry_delay
        )

        async def run_with_retry() -> T:
            return await execute_with_retry(
                self.producer,
                retry_config,
                name=self.name,
                sleep=self._sleep,
                on_retry=self._on_retry,
                metrics=self.metrics
            )

        if self.options.cache_key is not None:
            return await self.cache.cached_fetch(self.options.cache_key, run_with_retry, self.options.cache_ttl)
        return await run_with_retry()

    def _on_retry(self, retry_index: int, error: BaseException, delay: float) -> None:
        self._retry_count += 1

    def _apply(self, generation: int, state: FetchState[T]) -> bool:
        """Write ``state`` if the owner is alive and ``generation`` is the latest."""
        if not self._active:
            return False
        if generation != self._generation:
            self.logger.debug("Discarding stale result", generation=generation, latest=self._generation)
            return False

        self._state = state
        for subscription in list(self._subscriptions):
            try:
                subscription.listener(state)
            except Exception as e:
                self.logger.warning("State listener failed", error=str(e))
        return True

    def _report(self, exc: Exception) -> None:
        context = {"source": ERROR_SOURCE, "cache_key": self.options.cache_key}
        try:
            self.reporter.report_error(exc, context)
        except Exception as e:
            self.logger.warning("Error reporter raised", error=str(e))

    def _record_outcome(self, outcome: str, started_at: float) -> None:
        if self.metrics:
            self.metrics.record_fetch_outcome(outcome, time.perf_counter() - started_at)

    def _remove_subscription(self, subscription: StateSubscription) -> None:
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)


def use_resilient_fetch(
    producer: Producer[T],
    *,
    cache_key: Optional[str] = None,
    cache_ttl: Optional[float] = None,
    retry_attempts: int = 3,
    retry_delay: float = 1.0,
    dependencies: Optional[Sequence[Any]] = None,
    poll_interval: Optional[float] = None,
    store: Optional[Union[CacheAside, CacheStore]] = None,
    reporter: Optional[ErrorReporter] = None,
    sleep: SleepFn = asyncio.sleep,
    metrics: Optional["MetricsCollector"] = None,
) -> ResilientFetch[T]:
    """Create and start a ResilientFetch. Must be called from a running event loop."""
    options = FetchOptions(
        cache_key=cache_key,
        cache_ttl=cache_ttl,
        retry_attempts=retry_attempts,
        retry_delay=retry_delay,
        dependencies=list(dependencies or []),
        poll_interval=poll_interval,
    )
    fetch = ResilientFetch(producer, options, store=store, reporter=reporter, sleep=sleep, metrics=metrics)
    fetch.start()
    return fetch
