"""
Shared fixtures for unit and integration tests.
"""

import pytest
from prometheus_client import CollectorRegistry

from shared.metrics import MetricsCollector
from service_worker_cache.app.caching.cache_store import CacheStore


class FakeClock:
    """Manually advanced epoch-millisecond clock."""

    def __init__(self, start: float = 1_700_000_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms


@pytest.fixture
def clock():
    """Frozen clock starting at a fixed instant."""
    return FakeClock()


@pytest.fixture
def registry():
    """Isolated Prometheus registry."""
    return CollectorRegistry()


@pytest.fixture
def metrics(registry):
    """Metrics collector bound to the isolated registry."""
    return MetricsCollector("worker_cache", registry)


@pytest.fixture
def store(clock):
    """Cache store driven by the fake clock."""
    return CacheStore(now=clock)
