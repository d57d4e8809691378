"""
Client-side data-access resilience layer.

- caching: bounded TTL cache store and cache-aside fetch
- fetching: retrying, disposal-safe fetch orchestrator
- lifecycle: interval/timeout primitives and idempotent teardown helpers
- reporting: injectable error reporter

Ambient concerns (logging, errors, config, retry, metrics) live in the
``shared`` package.
"""
