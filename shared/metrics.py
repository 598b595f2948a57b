"""
Shared metrics configuration for the worker cache layer.
"""

from typing import Dict, Any, Optional

from prometheus_client import Counter, Histogram, CollectorRegistry


class MetricsCollector:
    """Centralized metrics collector.

    Metrics are only registered when a registry is given, so several
    collectors (one per test, say) can coexist in one process.
    """

    def __init__(self, service_name: str, registry: Optional[CollectorRegistry] = None):
        self.service_name = service_name
        self.registry = registry
        self._metrics: Dict[str, Any] = {}
        self._setup_metrics()

    def _setup_metrics(self):
        """Set up cache and revalidation metrics."""
        self._metrics["cache_hits_total"] = Counter(
            "cache_hits_total",
            "Total cache hits",
            ["cache_type"],
            registry=self.registry
        )

        self._metrics["cache_misses_total"] = Counter(
            "cache_misses_total",
            "Total cache misses",
            ["cache_type"],
            registry=self.registry
        )

        self._metrics["swr_revalidations_total"] = Counter(
            "swr_revalidations_total",
            "Total revalidation triggers by outcome",
            ["result"],
            registry=self.registry
        )

        self._metrics["swr_fetch_duration_seconds"] = Histogram(
            "swr_fetch_duration_seconds",
            "Fetch function duration in seconds",
            registry=self.registry
        )

    def record_cache_access(self, cache_type: str, hit: bool):
        """Record a cache hit or miss."""
        name = "cache_hits_total" if hit else "cache_misses_total"
        self._metrics[name].labels(cache_type=cache_type).inc()

    def record_revalidation(self, result: str):
        """Record the outcome of a revalidation trigger."""
        self._metrics["swr_revalidations_total"].labels(result=result).inc()

    def observe_histogram(self, metric_name: str, value: float, **labels):
        """Observe a histogram metric."""
        if metric_name in self._metrics:
            metric = self._metrics[metric_name]
            if labels:
                metric = metric.labels(**labels)
            metric.observe(value)


def get_metrics_collector(service_name: str, registry: Optional[CollectorRegistry] = None) -> MetricsCollector:
    """Get a metrics collector for a service."""
    return MetricsCollector(service_name, registry)
