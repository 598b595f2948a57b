"""
Unit tests for the worker directory resources.
"""

import pytest
from unittest.mock import AsyncMock, MagicMock

from service_worker_cache.app.caching.swr import SWRConfig
from service_worker_cache.app.directory import (
    ALL_WORKERS_KEY,
    BRANCHES_KEY,
    WorkerDirectory,
    branch_workers_key,
    worker_key,
)
from service_worker_cache.app.domain.models import Branch, Worker, WorkerPage, WorkersDelta


def make_worker(worker_id, name, **fields):
    return Worker(id=worker_id, name=name, **fields)


class TestWorkerDirectory:
    """Test cases for WorkerDirectory."""

    @pytest.fixture
    def client(self):
        """Attendance client stub."""
        client = MagicMock()
        client.list_branches = AsyncMock(return_value=[Branch(id="b1", name="Centro")])
        client.list_workers = AsyncMock(return_value=[make_worker("w1", "Ana")])
        client.get_branch_workers = AsyncMock(return_value=WorkerPage(workers=[make_worker("w1", "Ana")], total=1))
        client.get_worker = AsyncMock(return_value=make_worker("w1", "Ana"))
        client.list_workers_delta = AsyncMock()
        return client

    @pytest.fixture
    def directory(self, client, store):
        """Create WorkerDirectory without timers."""
        config = SWRConfig(revalidate_interval_ms=0, revalidate_on_focus=False)
        return WorkerDirectory(client, store, config)

    def test_keys(self):
        """Keys are stable per argument set."""
        assert branch_workers_key("b1") == "workers:b1:page:1:50"
        assert branch_workers_key("b1", 3, 20) == "workers:b1:page:3:20"
        assert worker_key("w1") == "worker:w1"

    @pytest.mark.asyncio
    async def test_branches(self, directory, client, store):
        """The branches resource reads through the client."""
        resource = directory.branches()

        await resource.revalidate()

        assert resource.key == BRANCHES_KEY
        assert resource.data == [Branch(id="b1", name="Centro")]
        assert store.get(BRANCHES_KEY) == resource.data
        client.list_branches.assert_awaited_once_with()

    @pytest.mark.asyncio
    async def test_branch_workers_passes_paging(self, directory, client):
        """Paging arguments reach the client and the key."""
        resource = directory.branch_workers("b1", page=2, page_size=25)

        await resource.revalidate()

        assert resource.key == "workers:b1:page:2:25"
        assert resource.data.total == 1
        client.get_branch_workers.assert_awaited_once_with("b1", page=2, page_size=25)

    @pytest.mark.asyncio
    async def test_branch_workers_without_branch_is_idle(self, directory, client):
        """No branch selected means no key and no fetch."""
        resource = directory.branch_workers(None)

        assert resource.key is None
        assert await resource.revalidate() is False
        assert resource.is_loading is False
        client.get_branch_workers.assert_not_awaited()
        client.list_workers.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_resources_share_cached_pages(self, directory, client, clock):
        """Two resources for the same page share one fetch within the dedup window."""
        first = directory.branch_workers("b1")
        await first.revalidate()

        second = directory.branch_workers("b1")
        assert second.data == first.data
        assert second.is_loading is False
        assert await second.revalidate() is False
        assert client.get_branch_workers.await_count == 1

    @pytest.mark.asyncio
    async def test_worker(self, directory, client):
        """Single-worker resources fetch by id."""
        resource = directory.worker("w1")

        await resource.revalidate()

        assert resource.key == "worker:w1"
        assert resource.data.name == "Ana"
        client.get_worker.assert_awaited_once_with("w1")

    @pytest.mark.asyncio
    async def test_sync_without_cache_fetches_everything(self, directory, client, store):
        """Without a cached list the first sync asks for all workers."""
        client.list_workers_delta.return_value = WorkersDelta(
            workers=[make_worker("w2", "Bruno"), make_worker("w1", "Ana")],
            new_sync_timestamp="2024-05-01T10:00:00Z",
        )

        changed = await directory.sync_workers_delta()

        assert changed == 2
        client.list_workers_delta.assert_awaited_once_with(None)
        assert [worker.name for worker in store.get(ALL_WORKERS_KEY)] == ["Ana", "Bruno"]
        assert directory.last_sync_timestamp == "2024-05-01T10:00:00Z"

    @pytest.mark.asyncio
    async def test_sync_merges_delta(self, directory, client, store):
        """Changed workers replace cached rows and new ones are added in name order."""
        resource = directory.all_workers()
        client.list_workers.return_value = [make_worker("w1", "Ana"), make_worker("w3", "Carla")]
        await resource.revalidate()
        directory.last_sync_timestamp = "2024-05-01T00:00:00Z"

        client.list_workers_delta.return_value = WorkersDelta(
            workers=[make_worker("w3", "Carla", status="inactive"), make_worker("w2", "Bruno")],
            new_sync_timestamp="2024-05-02T00:00:00Z",
        )

        changed = await directory.sync_workers_delta()

        assert changed == 2
        client.list_workers_delta.assert_awaited_once_with("2024-05-01T00:00:00Z")
        workers = store.get(ALL_WORKERS_KEY)
        assert [worker.id for worker in workers] == ["w1", "w2", "w3"]
        assert workers[2].status == "inactive"
        assert directory.last_sync_timestamp == "2024-05-02T00:00:00Z"

    @pytest.mark.asyncio
    async def test_sync_failure_keeps_timestamp(self, directory, client):
        """A failed delta leaves the previous sync point."""
        directory.last_sync_timestamp = "2024-05-01T00:00:00Z"
        client.list_workers_delta.side_effect = RuntimeError("down")

        with pytest.raises(RuntimeError):
            await directory.sync_workers_delta()

        assert directory.last_sync_timestamp == "2024-05-01T00:00:00Z"

    @pytest.mark.asyncio
    async def test_invalidate_branch(self, directory, store):
        """Every page of the branch is dropped."""
        await directory.branch_workers("b1", page=1).revalidate()
        await directory.branch_workers("b1", page=2).revalidate()
        await directory.branch_workers("b10", page=1).revalidate()

        assert directory.invalidate_branch("b1") == 2
        assert store.keys() == ["workers:b10:page:1:50"]

    @pytest.mark.asyncio
    async def test_page_reloads_after_invalidate_branch(self, directory, client, clock):
        """A page opened right after invalidating its branch fetches again."""
        await directory.branch_workers("b1").revalidate()
        directory.invalidate_branch("b1")
        clock.advance(100)

        page = directory.branch_workers("b1")
        with page.watching_scope():
            await page.wait_for_revalidation()

        assert client.get_branch_workers.await_count == 2
        assert page.data is not None
        assert page.is_loading is False

    @pytest.mark.asyncio
    async def test_missing_worker_is_shared_without_refetch(self, directory, client, clock):
        """A worker the API reports missing is cached as None for the next view."""
        client.get_worker.return_value = None
        await directory.worker("w404").revalidate()
        clock.advance(100)

        detail = directory.worker("w404")
        with detail.watching_scope():
            await detail.wait_for_revalidation()

        assert detail.data is None
        assert detail.is_loading is False
        assert client.get_worker.await_count == 1

    @pytest.mark.asyncio
    async def test_sync_uses_directory_max_age(self, client, store, clock):
        """The cached list counts as expired under the directory's max age."""
        config = SWRConfig(revalidate_interval_ms=0, revalidate_on_focus=False, max_age_ms=1000)
        directory = WorkerDirectory(client, store, config)
        await directory.all_workers().revalidate()
        directory.last_sync_timestamp = "2024-05-01T00:00:00Z"
        client.list_workers_delta.return_value = WorkersDelta(
            workers=[make_worker("w2", "Bruno")],
            new_sync_timestamp="2024-05-02T00:00:00Z",
        )

        clock.advance(2000)
        await directory.sync_workers_delta()

        client.list_workers_delta.assert_awaited_once_with(None)
        assert [worker.id for worker in store.get(ALL_WORKERS_KEY)] == ["w2"]
