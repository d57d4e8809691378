"""
Lifecycle helpers: interval/timeout primitives and their teardown.
"""

from .cleanup import (
    CleanupResult,
    Interval,
    cleanup_interval,
    cleanup_subscription,
    cleanup_timeout,
    set_interval,
    set_timeout,
    teardown,
)

__all__ = [
    "CleanupResult",
    "Interval",
    "cleanup_interval",
    "cleanup_subscription",
    "cleanup_timeout",
    "set_interval",
    "set_timeout",
    "teardown",
]
