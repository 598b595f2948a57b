"""
Per-branch cache for heavy payloads (payments, worker lists) and the host timezone.

Payment and worker lists are the queries that get repeated most often while
paging through a branch; caching them avoids refetching the same rows.
"""

from typing import Any, Callable, Dict, List, Optional, TYPE_CHECKING

from tzlocal import get_localzone_name

from shared.logging import get_logger
from .ttl_cache import TTLCache, now_ms

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.config import WorkerCacheConfig
    from shared.metrics import MetricsCollector


TIMEZONE_CACHE_TTL_MS = 24 * 60 * 60 * 1000
PAYMENT_CACHE_TTL_MS = 5 * 60 * 1000
WORKER_CACHE_TTL_MS = 10 * 60 * 1000


def _local_timezone_name() -> str:
    """IANA name of the host zone, e.g. ``Europe/Madrid``."""
    return get_localzone_name() or "UTC"


class BranchDataCache:
    """TTL cache keyed by branch for payments and workers."""

    def __init__(
        self,
        *,
        payment_ttl_ms: float = PAYMENT_CACHE_TTL_MS,
        worker_ttl_ms: float = WORKER_CACHE_TTL_MS,
        timezone_ttl_ms: float = TIMEZONE_CACHE_TTL_MS,
        now: Optional[Callable[[], float]] = None,
        timezone_resolver: Callable[[], str] = _local_timezone_name,
        metrics: Optional["MetricsCollector"] = None,
    ):
        self.payment_ttl_ms = payment_ttl_ms
        self.worker_ttl_ms = worker_ttl_ms
        self.timezone_ttl_ms = timezone_ttl_ms
        self._now = now or now_ms
        self._resolve_timezone = timezone_resolver
        self._cache = TTLCache(self._now, cache_type="branch_data", metrics=metrics)
        self._timezone: Optional[str] = None
        self._timezone_cached_at = 0.0
        self.logger = get_logger("worker_cache.branch_data")

    @classmethod
    def from_config(cls, config: "WorkerCacheConfig", **kwargs) -> "BranchDataCache":
        return cls(
            payment_ttl_ms=config.payment_cache_ttl_ms,
            worker_ttl_ms=config.worker_cache_ttl_ms,
            timezone_ttl_ms=config.timezone_cache_ttl_ms,
            **kwargs,
        )

    @staticmethod
    def payments_key(branch_id: str, worker_id: Optional[str] = None) -> str:
        return f"payments:{branch_id}:{worker_id or 'all'}"

    @staticmethod
    def workers_key(branch_id: str) -> str:
        return f"workers:{branch_id}"

    def get_timezone(self) -> str:
        """Host timezone name, resolved at most once per timezone TTL."""
        now = self._now()
        if self._timezone and now - self._timezone_cached_at < self.timezone_ttl_ms:
            return self._timezone

        try:
            timezone = self._resolve_timezone() or "UTC"
        except Exception as exc:
            self.logger.warning("Timezone lookup failed, using UTC", error=str(exc))
            return "UTC"

        self._timezone = timezone
        self._timezone_cached_at = now
        return timezone

    def get(self, key: str, max_age_ms: float) -> Optional[Any]:
        return self._cache.get(key, max_age_ms)

    def set(self, key: str, data: Any, etag: Optional[str] = None) -> None:
        self._cache.set(key, data, etag)

    def get_payments(self, branch_id: str, worker_id: Optional[str] = None) -> Optional[List[Any]]:
        return self._cache.get(self.payments_key(branch_id, worker_id), self.payment_ttl_ms)

    def set_payments(
        self,
        branch_id: str,
        payments: List[Any],
        worker_id: Optional[str] = None,
        etag: Optional[str] = None,
    ) -> None:
        self._cache.set(self.payments_key(branch_id, worker_id), payments, etag)

    def get_workers(self, branch_id: str) -> Optional[List[Any]]:
        return self._cache.get(self.workers_key(branch_id), self.worker_ttl_ms)

    def set_workers(self, branch_id: str, workers: List[Any], etag: Optional[str] = None) -> None:
        self._cache.set(self.workers_key(branch_id), workers, etag)

    def etag_for(self, key: str, max_age_ms: float) -> Optional[str]:
        """Etag stored with a still-fresh entry, for conditional requests."""
        entry = self._cache.get_entry(key, max_age_ms)
        return entry.etag if entry is not None else None

    def invalidate_payments(self, branch_id: str) -> int:
        """Drop every payment list cached for ``branch_id``."""
        return self._cache.invalidate_prefix(f"payments:{branch_id}:")

    def invalidate_workers(self, branch_id: str) -> bool:
        return self._cache.invalidate(self.workers_key(branch_id))

    def clear(self) -> None:
        self._cache.clear()
        self._timezone = None
        self._timezone_cached_at = 0.0

    def stats(self) -> Dict[str, Any]:
        return self._cache.stats()
