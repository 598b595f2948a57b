"""
Unit tests for the page refresh coordinator.
"""

import asyncio

import pytest
from unittest.mock import AsyncMock, MagicMock

from service_worker_cache.app.caching.refresh import PageRefreshCoordinator
from service_worker_cache.app.caching.swr import SWRConfig, SWRResource


class TestPageRefreshCoordinator:
    """Test cases for PageRefreshCoordinator."""

    @pytest.mark.asyncio
    async def test_refresh_without_handler_is_noop(self):
        """Nothing happens without a registered handler."""
        coordinator = PageRefreshCoordinator()

        await coordinator.refresh()

        assert coordinator.has_handler is False
        assert coordinator.is_refreshing is False

    @pytest.mark.asyncio
    async def test_is_refreshing_while_handler_runs(self):
        """The flag is set for the duration of the handler."""
        coordinator = PageRefreshCoordinator()
        seen = []

        async def handler():
            seen.append(coordinator.is_refreshing)

        coordinator.register(handler)
        await coordinator.refresh()

        assert seen == [True]
        assert coordinator.is_refreshing is False

    @pytest.mark.asyncio
    async def test_flag_reset_when_handler_fails(self):
        """A failing handler propagates and still clears the flag."""
        coordinator = PageRefreshCoordinator()
        coordinator.register(AsyncMock(side_effect=RuntimeError("refresh failed")))

        with pytest.raises(RuntimeError):
            await coordinator.refresh()

        assert coordinator.is_refreshing is False

    @pytest.mark.asyncio
    async def test_register_replaces_and_unregister_clears(self):
        """Only the latest handler runs."""
        coordinator = PageRefreshCoordinator()
        first = AsyncMock()
        second = AsyncMock()

        coordinator.register(first)
        coordinator.register(second)
        await coordinator.refresh()

        first.assert_not_awaited()
        second.assert_awaited_once()

        coordinator.unregister()
        await coordinator.refresh()
        assert second.await_count == 1

    @pytest.mark.asyncio
    async def test_register_resources_invalidates_each(self):
        """The resource handler invalidates every resource."""
        coordinator = PageRefreshCoordinator()
        resources = [MagicMock(invalidate=AsyncMock(return_value=True)) for _ in range(3)]

        coordinator.register_resources(*resources)
        await coordinator.refresh()

        for resource in resources:
            resource.invalidate.assert_awaited_once_with()

    @pytest.mark.asyncio
    async def test_refresh_refetches_resources(self, store):
        """Refreshing bypasses the dedup window of real resources."""
        config = SWRConfig(revalidate_interval_ms=0, revalidate_on_focus=False)
        fetcher = AsyncMock(side_effect=[{"v": 1}, {"v": 2}])
        resource = SWRResource("k", fetcher, store, config)
        coordinator = PageRefreshCoordinator()
        coordinator.register_resources(resource)

        await resource.revalidate()
        await coordinator.refresh()
        await asyncio.sleep(0)

        assert fetcher.await_count == 2
        assert resource.data == {"v": 2}
