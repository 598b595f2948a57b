"""
Ready-made cached resources for the attendance API's read endpoints.
"""

from typing import Dict, List, Optional, TYPE_CHECKING

from shared.logging import get_logger
from .adapters.attendance_client import AttendanceApiClient
from .caching.cache_store import CacheStore
from .caching.focus import FocusMonitor
from .caching.swr import SWRConfig, SWRResource
from .domain.models import Worker

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


BRANCHES_KEY = "branches"
ALL_WORKERS_KEY = "workers:all"


def branch_workers_key(branch_id: str, page: int = 1, page_size: int = 50) -> str:
    return f"workers:{branch_id}:page:{page}:{page_size}"


def worker_key(worker_id: str) -> str:
    return f"worker:{worker_id}"


class WorkerDirectory:
    """Builds ``SWRResource`` instances sharing one store, client and focus monitor."""

    def __init__(
        self,
        client: AttendanceApiClient,
        store: CacheStore,
        config: Optional[SWRConfig] = None,
        *,
        focus: Optional[FocusMonitor] = None,
        metrics: Optional["MetricsCollector"] = None,
    ):
        self.client = client
        self.store = store
        self.config = config or SWRConfig()
        self.focus = focus
        self.metrics = metrics
        self.last_sync_timestamp: Optional[str] = None
        self.logger = get_logger("worker_cache.directory")

    def _resource(self, key: Optional[str], fetcher) -> SWRResource:
        return SWRResource(
            key,
            fetcher,
            self.store,
            self.config,
            focus=self.focus,
            metrics=self.metrics,
        )

    def branches(self) -> SWRResource:
        return self._resource(BRANCHES_KEY, self.client.list_branches)

    def all_workers(self) -> SWRResource:
        return self._resource(ALL_WORKERS_KEY, self.client.list_workers)

    def branch_workers(self, branch_id: Optional[str], page: int = 1, page_size: int = 50) -> SWRResource:
        """Paged workers of ``branch_id``. No branch selected yields an idle resource."""
        if not branch_id:
            return self._resource(None, self.client.list_workers)

        async def _fetch():
            return await self.client.get_branch_workers(branch_id, page=page, page_size=page_size)

        return self._resource(branch_workers_key(branch_id, page, page_size), _fetch)

    def worker(self, worker_id: str) -> SWRResource:
        async def _fetch():
            return await self.client.get_worker(worker_id)

        return self._resource(worker_key(worker_id), _fetch)

    async def sync_workers_delta(self) -> int:
        """Merge workers changed since the last sync into the all-workers entry.

        Returns the number of changed workers. Raises whatever the client raises;
        the previous sync timestamp is kept in that case. When the entry has
        expired the full list is fetched instead of a delta.
        """
        current = self.store.get(ALL_WORKERS_KEY, self.config.max_age_ms)
        since = self.last_sync_timestamp if current is not None else None
        delta = await self.client.list_workers_delta(since)

        merged: Dict[str, Worker] = {worker.id: worker for worker in current or []}
        for worker in delta.workers:
            merged[worker.id] = worker

        workers: List[Worker] = sorted(merged.values(), key=lambda worker: worker.name)
        self.store.set(ALL_WORKERS_KEY, workers)
        self.last_sync_timestamp = delta.new_sync_timestamp

        self.logger.info(
            "Worker delta synced",
            changed=len(delta.workers),
            total=len(workers),
            sync_timestamp=delta.new_sync_timestamp,
        )
        return len(delta.workers)

    def invalidate_branch(self, branch_id: str) -> int:
        """Drop every cached page of ``branch_id``."""
        return self.store.invalidate_prefix(f"workers:{branch_id}:")
