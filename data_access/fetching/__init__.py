"""
Fetch orchestration package.
"""

from .orchestrator import (
    ERROR_SOURCE,
    FetchOptions,
    FetchState,
    ResilientFetch,
    StateSubscription,
    dependencies_changed,
    use_resilient_fetch,
)

__all__ = [
    "ERROR_SOURCE",
    "FetchOptions",
    "FetchState",
    "ResilientFetch",
    "StateSubscription",
    "dependencies_changed",
    "use_resilient_fetch",
]
