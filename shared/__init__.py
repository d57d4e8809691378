"""
Shared utilities for the data-access layer.

This package aggregates common building blocks consumed by every component:

- config: Settings via pydantic-settings
- logging: Structured logging with correlation context
- metrics: Prometheus metrics helpers
- errors: Canonical error types and responses
- retry: Backoff schedule and retry executor
- test_helpers: Fakes for clocks, sleeps, reporters and handles

Component logic lives in ``data_access``. Do not import from
``data_access`` into shared/.
"""
