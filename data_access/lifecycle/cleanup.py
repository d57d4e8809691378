"""
Idempotent teardown helpers for long-lived handles.

Each ``cleanup_*`` helper returns ``None`` so callers can overwrite their
reference in the same statement::

    self._poller = cleanup_interval(self._poller)
"""

import asyncio
import inspect
from dataclasses import dataclass
from typing import Any, Callable, Optional, Set, TYPE_CHECKING

from shared.logging import get_logger

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


logger = get_logger("data_access.cleanup")

# Coroutines started by fired timeouts, held until they finish
_callback_tasks: Set[asyncio.Task] = set()

# handle kind -> teardown method
TEARDOWN_METHODS = {
    "subscription": "unsubscribe",
    "interval": "cancel",
    "timeout": "cancel",
}


@dataclass(frozen=True)
class CleanupResult:
    """Outcome of a teardown attempt. Never raised, only returned."""
    kind: str
    succeeded: bool
    skipped: bool = False
    error: Optional[str] = None


def teardown(handle: Any, kind: str, *, metrics: Optional["MetricsCollector"] = None) -> CleanupResult:
    """Tear down ``handle`` and report what happened.

    A ``None`` handle is skipped. Exceptions raised by the handle are logged
    as warnings and captured in the result.
    """
    if handle is None:
        return CleanupResult(kind=kind, succeeded=True, skipped=True)

    method_name = TEARDOWN_METHODS[kind]
    try:
        getattr(handle, method_name)()
    except Exception as e:
        logger.warning(
            "Error cleaning up handle",
            kind=kind,
            handle_type=type(handle).__name__,
            error=str(e)
        )
        if metrics:
            metrics.record_cleanup_failure(kind)
        return CleanupResult(kind=kind, succeeded=False, error=str(e))

    return CleanupResult(kind=kind, succeeded=True)


def cleanup_subscription(subscription: Any, *, metrics: Optional["MetricsCollector"] = None) -> None:
    """Unsubscribe ``subscription`` if set; always returns ``None``."""
    teardown(subscription, "subscription", metrics=metrics)
    return None


def cleanup_interval(interval: Any, *, metrics: Optional["MetricsCollector"] = None) -> None:
    """Cancel ``interval`` if set; always returns ``None``."""
    teardown(interval, "interval", metrics=metrics)
    return None


def cleanup_timeout(timeout: Any, *, metrics: Optional["MetricsCollector"] = None) -> None:
    """Cancel ``timeout`` if set; always returns ``None``."""
    teardown(timeout, "timeout", metrics=metrics)
    return None


class Interval:
    """Runs ``callback`` every ``seconds`` on the running event loop.

    Coroutine callbacks are awaited before the next wait starts, so runs
    never overlap. A failing callback is logged and the interval keeps going.
    """

    def __init__(self, callback: Callable[[], Any], seconds: float, *, name: Optional[str] = None):
        self.callback = callback
        self.seconds = seconds
        self.name = name or getattr(callback, "__name__", "interval")
        self._cancelled = False
        self._task: asyncio.Task = asyncio.get_running_loop().create_task(self._run())

    async def _run(self):
        while not self._cancelled:
            await asyncio.sleep(self.seconds)
            try:
                result = self.callback()
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.warning("Interval callback failed", interval=self.name, error=str(e))

    def cancel(self) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        self._task.cancel()

    def cancelled(self) -> bool:
        return self._cancelled


def set_interval(callback: Callable[[], Any], seconds: float, *, name: Optional[str] = None) -> Interval:
    """Start an interval; dispose it with ``cleanup_interval``."""
    return Interval(callback, seconds, name=name)


def set_timeout(callback: Callable[[], Any], seconds: float) -> asyncio.TimerHandle:
    """Run ``callback`` once after ``seconds``; dispose it with ``cleanup_timeout``."""
    loop = asyncio.get_running_loop()

    def _fire():
        try:
            result = callback()
        except Exception as e:
            logger.warning("Timeout callback failed", error=str(e))
            return
        if inspect.isawaitable(result):
            task = asyncio.ensure_future(result)
            _callback_tasks.add(task)
            task.add_done_callback(_finish_callback)

    return loop.call_later(seconds, _fire)


def _finish_callback(task: asyncio.Task) -> None:
    _callback_tasks.discard(task)
    if task.cancelled():
        return
    error = task.exception()
    if error is not None:
        logger.warning("Timeout callback failed", error=str(error))
