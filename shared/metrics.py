"""
Shared metrics configuration for the data-access layer.
"""

from typing import Dict, Any, Optional

from prometheus_client import CollectorRegistry, Counter, Histogram


class MetricsCollector:
    """Centralized metrics collector for the cache and fetch components.

    Metrics are only exported when a ``registry`` is given; without one they
    still count, which keeps several collectors usable in one process.
    """

    def __init__(self, namespace: str = "data_access", registry: Optional[CollectorRegistry] = None):
        self.namespace = namespace
        self.registry = registry
        self._metrics: Dict[str, Any] = {}
        self._setup_metrics()

    def _setup_metrics(self):
        """Set up cache, fetch, cleanup and reporting metrics."""

        # Cache metrics
        self._metrics["cache_hits_total"] = Counter(
            "cache_hits_total",
            "Total cache hits",
            namespace=self.namespace,
            registry=self.registry
        )

        self._metrics["cache_misses_total"] = Counter(
            "cache_misses_total",
            "Total cache misses",
            namespace=self.namespace,
            registry=self.registry
        )

        self._metrics["cache_evictions_total"] = Counter(
            "cache_evictions_total",
            "Total cache entries removed by eviction or expiry",
            ["reason"],
            namespace=self.namespace,
            registry=self.registry
        )

        self._metrics["cache_coalesced_total"] = Counter(
            "cache_coalesced_total",
            "Total cache misses attached to an in-flight load",
            namespace=self.namespace,
            registry=self.registry
        )

        # Fetch metrics
        self._metrics["fetch_attempts_total"] = Counter(
            "fetch_attempts_total",
            "Total producer invocations",
            namespace=self.namespace,
            registry=self.registry
        )

        self._metrics["fetch_retries_total"] = Counter(
            "fetch_retries_total",
            "Total retries scheduled after a failed attempt",
            namespace=self.namespace,
            registry=self.registry
        )

        self._metrics["fetch_outcomes_total"] = Counter(
            "fetch_outcomes_total",
            "Total fetch pipeline outcomes",
            ["outcome"],
            namespace=self.namespace,
            registry=self.registry
        )

        self._metrics["fetch_duration_seconds"] = Histogram(
            "fetch_duration_seconds",
            "Fetch pipeline duration in seconds",
            namespace=self.namespace,
            registry=self.registry
        )

        # Cleanup and reporting metrics
        self._metrics["cleanup_failures_total"] = Counter(
            "cleanup_failures_total",
            "Total handle teardown failures",
            ["kind"],
            namespace=self.namespace,
            registry=self.registry
        )

        self._metrics["errors_reported_total"] = Counter(
            "errors_reported_total",
            "Total reports sent to the error reporter",
            ["level"],
            namespace=self.namespace,
            registry=self.registry
        )

    def get_metric(self, name: str):
        """Get a metric by name."""
        return self._metrics.get(name)

    def record_cache_hit(self):
        self._metrics["cache_hits_total"].inc()

    def record_cache_miss(self):
        self._metrics["cache_misses_total"].inc()

    def record_eviction(self, reason: str):
        """Record an entry removed for ``capacity`` or ``expired``."""
        self._metrics["cache_evictions_total"].labels(reason=reason).inc()

    def record_coalesced(self):
        self._metrics["cache_coalesced_total"].inc()

    def record_fetch_attempt(self):
        self._metrics["fetch_attempts_total"].inc()

    def record_retry(self):
        self._metrics["fetch_retries_total"].inc()

    def record_fetch_outcome(self, outcome: str, duration: Optional[float] = None):
        """Record a pipeline outcome (``success``, ``failure`` or ``stale``)."""
        self._metrics["fetch_outcomes_total"].labels(outcome=outcome).inc()
        if duration is not None:
            self._metrics["fetch_duration_seconds"].observe(duration)

    def record_cleanup_failure(self, kind: str):
        self._metrics["cleanup_failures_total"].labels(kind=kind).inc()

    def record_error_report(self, level: str):
        self._metrics["errors_reported_total"].labels(level=level).inc()


def get_metrics_collector(namespace: str = "data_access",
                          registry: Optional[CollectorRegistry] = None) -> MetricsCollector:
    """Get a metrics collector for a namespace."""
    return MetricsCollector(namespace, registry)
