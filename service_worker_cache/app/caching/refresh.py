"""
Page-level refresh: one registered handler that a "pull to refresh" style
control can trigger.
"""

import asyncio
from typing import Awaitable, Callable, Optional, TYPE_CHECKING

from shared.logging import get_logger

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from .swr import SWRResource


RefreshHandler = Callable[[], Awaitable[None]]


class PageRefreshCoordinator:
    """Holds at most one refresh handler and reports whether it is running."""

    def __init__(self):
        self._handler: Optional[RefreshHandler] = None
        self._is_refreshing = False
        self.logger = get_logger("worker_cache.refresh")

    @property
    def is_refreshing(self) -> bool:
        return self._is_refreshing

    @property
    def has_handler(self) -> bool:
        return self._handler is not None

    def register(self, handler: RefreshHandler) -> None:
        self._handler = handler

    def unregister(self) -> None:
        self._handler = None

    def register_resources(self, *resources: "SWRResource") -> None:
        """Install a handler that invalidates ``resources`` concurrently."""

        async def _invalidate_all() -> None:
            await asyncio.gather(*(resource.invalidate() for resource in resources))

        self.register(_invalidate_all)

    async def refresh(self) -> None:
        """Run the registered handler; a no-op without one."""
        handler = self._handler
        if handler is None:
            self.logger.debug("Refresh requested without a handler")
            return

        self._is_refreshing = True
        try:
            await handler()
        finally:
            self._is_refreshing = False
