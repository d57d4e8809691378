"""
Retry mechanism for resilient operations.
"""

import asyncio
import random
from typing import Any, Optional, Callable, Awaitable, Tuple, Type, TypeVar, TYPE_CHECKING

from shared.errors import ConfigurationError, RetryExhaustedError
from shared.logging import get_logger

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.config import DataAccessConfig
    from shared.metrics import MetricsCollector


T = TypeVar("T")

SleepFn = Callable[[float], Awaitable[Any]]
RetryCallback = Callable[[int, BaseException, float], None]


class RetryConfig:
    """Configuration for retry behavior.

    ``retry_attempts`` counts retries, not attempts: an operation that keeps
    failing is invoked ``retry_attempts + 1`` times.
    """

    def __init__(self,
                 retry_attempts: int = 3,
                 base_delay: float = 1.0,
                 max_delay: Optional[float] = None,
                 exponential_base: float = 2.0,
                 jitter: bool = False,
                 backoff_strategy: str = "exponential"):
        if retry_attempts < 0:
            raise ConfigurationError(
                "retry_attempts must be >= 0",
                details={"retry_attempts": retry_attempts}
            )
        if base_delay < 0:
            raise ConfigurationError(
                "base_delay must be >= 0",
                details={"base_delay": base_delay}
            )
        self.retry_attempts = retry_attempts
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.exponential_base = exponential_base
        self.jitter = jitter
        self.backoff_strategy = backoff_strategy

    @property
    def total_attempts(self) -> int:
        return self.retry_attempts + 1

    @classmethod
    def from_config(cls, config: "DataAccessConfig") -> "RetryConfig":
        """Build a retry config from settings."""
        return cls(
            retry_attempts=config.retry_attempts,
            base_delay=config.retry_delay,
            max_delay=config.retry_max_delay,
            jitter=config.retry_jitter,
        )


def calculate_delay(retry_index: int, config: RetryConfig) -> float:
    """Delay to wait before retry ``retry_index`` (0-indexed)."""
    if config.backoff_strategy == "exponential":
        delay = config.base_delay * (config.exponential_base ** retry_index)
    elif config.backoff_strategy == "linear":
        delay = config.base_delay * (retry_index + 1)
    elif config.backoff_strategy == "fixed":
        delay = config.base_delay
    else:
        delay = config.base_delay

    if config.max_delay is not None:
        delay = min(delay, config.max_delay)

    if config.jitter:
        jitter_amount = delay * 0.1  # 10% jitter
        delay += random.uniform(-jitter_amount, jitter_amount)

    return max(0.0, delay)


async def execute_with_retry(
    func: Callable[[], Awaitable[T]],
    config: Optional[RetryConfig] = None,
    *,
    name: str = "operation",
    exceptions: Tuple[Type[BaseException], ...] = (Exception,),
    sleep: SleepFn = asyncio.sleep,
    on_retry: Optional[RetryCallback] = None,
    metrics: Optional["MetricsCollector"] = None,
) -> T:
    """Invoke ``func`` until it succeeds or the retry budget is spent.

    Raises ``RetryExhaustedError`` wrapping the last failure once
    ``config.total_attempts`` invocations have failed.
    """
    if config is None:
        config = RetryConfig()

    logger = get_logger(f"data_access.retry.{name}")

    for attempt in range(config.total_attempts):
        if metrics:
            metrics.record_fetch_attempt()
        try:
            result = await func()
        except exceptions as e:
            if attempt >= config.retry_attempts:
                logger.error(
                    "All retry attempts exhausted",
                    attempts=attempt + 1,
                    operation=name,
                    error=str(e)
                )
                raise RetryExhaustedError(
                    f"{name} failed after {attempt + 1} attempts",
                    last_exception=e,
                    attempts=attempt + 1
                ) from e

            delay = calculate_delay(attempt, config)

            logger.warning(
                "Attempt failed, waiting before next attempt",
                attempt=attempt + 1,
                delay=delay,
                operation=name,
                error=str(e)
            )
            if metrics:
                metrics.record_retry()
            if on_retry:
                on_retry(attempt, e, delay)

            await sleep(delay)
            continue

        if attempt > 0:
            logger.info(
                "Retry succeeded",
                attempt=attempt + 1,
                operation=name
            )
        return result

    # This should never be reached, total_attempts is always >= 1
    raise RetryExhaustedError(
        f"Unexpected exit from retry loop for {name}",
        last_exception=RuntimeError("no attempt was made"),
        attempts=0
    )
