"""
Stale-while-revalidate resource.

``SWRResource`` binds a cache key to an async fetch function. It serves the
best value currently known for the key straight away and keeps it fresh in
the background: on start, on a fixed interval, when the host regains focus,
and on explicit ``invalidate``/``mutate`` calls.

Consumers sharing a ``CacheStore`` coordinate through it:

- at most one revalidation per key is in flight; triggers arriving while one
  runs, or within ``deduping_interval_ms`` of the last successful fetch, are
  skipped rather than queued;
- a successful fetch is written once and fanned out to every watching
  resource of the key;
- a fetch result is only applied if the key's generation has not moved
  since the fetch started (``mutate`` and ``invalidate`` bump it), so a slow
  fetch never overwrites a newer value.

Fetch failures are captured as ``FetchError`` on ``error``; cached ``data``
is never cleared by a failure and nothing is re-raised to the caller.
"""

import asyncio
import inspect
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Iterator, Optional, Set, TYPE_CHECKING, Union

from pydantic import BaseModel, ConfigDict, Field

from shared.errors import FetchError
from shared.logging import get_logger
from .cache_store import (
    CacheEvent,
    CacheStore,
    EVENT_FAILED,
    EVENT_SETTLED,
    EVENT_UPDATED,
    EVENT_VALIDATING,
)
from .focus import FocusMonitor

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.config import WorkerCacheConfig
    from shared.metrics import MetricsCollector


Fetcher = Callable[[], Awaitable[Any]]


class SWRConfig(BaseModel):
    """Revalidation policy. All durations are in milliseconds."""

    model_config = ConfigDict(frozen=True)

    revalidate_interval_ms: int = Field(default=5 * 60 * 1000, ge=0)
    revalidate_on_focus: bool = True
    deduping_interval_ms: int = Field(default=2000, ge=0)
    max_age_ms: int = Field(default=5 * 60 * 1000, ge=0)

    @classmethod
    def from_config(cls, config: "WorkerCacheConfig") -> "SWRConfig":
        return cls(
            revalidate_interval_ms=config.revalidate_interval_ms,
            revalidate_on_focus=config.revalidate_on_focus,
            deduping_interval_ms=config.deduping_interval_ms,
            max_age_ms=config.max_age_ms,
        )


@dataclass(frozen=True)
class SWRSnapshot:
    """Read-only view of a resource's state."""
    data: Any
    is_loading: bool
    is_validating: bool
    error: Optional[FetchError]


class WatchHandle:
    """Releases the timer, focus listener and subscription of a watching resource."""

    def __init__(self, resource: "SWRResource"):
        self._resource: Optional[SWRResource] = resource

    @property
    def active(self) -> bool:
        return self._resource is not None

    def stop(self) -> None:
        resource, self._resource = self._resource, None
        if resource is not None:
            resource._release(self)

    def __enter__(self) -> "WatchHandle":
        return self

    def __exit__(self, *exc_info) -> None:
        self.stop()


class SWRResource:
    """A cache key kept fresh by re-running its fetch function."""

    def __init__(
        self,
        key: Optional[str],
        fetcher: Fetcher,
        store: CacheStore,
        config: Optional[SWRConfig] = None,
        *,
        focus: Optional[FocusMonitor] = None,
        metrics: Optional["MetricsCollector"] = None,
    ):
        self.key = key
        self.fetcher = fetcher
        self.store = store
        self.config = config or SWRConfig()
        self.focus = focus
        self.metrics = metrics if metrics is not None else store.metrics
        self.logger = get_logger("worker_cache.swr")

        entry = store.get_entry(key, self.config.max_age_ms) if key is not None else None
        self._data: Any = entry.data if entry is not None else None
        self._is_loading = key is not None and entry is None
        self._is_validating = False
        self._error: Optional[FetchError] = None

        self._handle: Optional[WatchHandle] = None
        self._unsubscribe: Optional[Callable[[], None]] = None
        self._focus_registered = False
        self._interval_task: Optional["asyncio.Task[None]"] = None
        self._tasks: Set["asyncio.Task[Any]"] = set()
        self._watch_started: Optional[float] = None
        self._last_interval_trigger: Optional[float] = None

    # --------------- State ---------------
    @property
    def data(self) -> Any:
        return self._data

    @property
    def is_loading(self) -> bool:
        return self._is_loading

    @property
    def is_validating(self) -> bool:
        return self._is_validating

    @property
    def error(self) -> Optional[FetchError]:
        return self._error

    @property
    def watching(self) -> bool:
        return self._handle is not None

    def snapshot(self) -> SWRSnapshot:
        return SWRSnapshot(
            data=self._data,
            is_loading=self._is_loading,
            is_validating=self._is_validating,
            error=self._error,
        )

    # --------------- Operations ---------------
    async def revalidate(self, force: bool = False) -> bool:
        """Re-run the fetch function unless a recent or running fetch makes it redundant.

        Returns True only when this call fetched and its result was applied.
        ``force`` ignores both the in-flight check and the dedup window.
        """
        return await self._trigger(check_inflight=not force, check_window=not force)

    async def _trigger(self, *, check_inflight: bool, check_window: bool) -> bool:
        if self.key is None:
            return False
        key = self.key

        if check_inflight and self.store.inflight(key) is not None:
            self.logger.debug("Revalidation already in flight", key=key)
            self._record("deduped")
            return False

        if check_window:
            last_fetched = self.store.last_fetched_at(key)
            if last_fetched is not None:
                elapsed = self.store.now() - last_fetched
                if elapsed < self.config.deduping_interval_ms:
                    self.logger.debug("Deduping revalidation", key=key, fetched_ms_ago=elapsed)
                    self._record("deduped")
                    return False

        task = asyncio.create_task(self._fetch(key, self.store.generation(key)))
        self.store.track_inflight(key, task)
        return await asyncio.shield(task)

    async def mutate(self, new_data: Union[Any, Awaitable[Any]]) -> None:
        """Replace the key's value with ``new_data`` (a value or an awaitable).

        Supersedes any revalidation currently in flight for the key.
        """
        if self.key is None:
            return

        try:
            data = await new_data if inspect.isawaitable(new_data) else new_data
        except Exception as exc:
            self.logger.error("Mutation failed", key=self.key, error=str(exc))
            return

        self.store.set(self.key, data)
        self._sync_self(CacheEvent(EVENT_UPDATED, self.key, self.store.generation(self.key), data=data))
        self.logger.info("Mutated", key=self.key)

    async def invalidate(self) -> bool:
        """Drop the cached entry and fetch again, ignoring the dedup window."""
        if self.key is None:
            return False

        self.logger.info("Invalidating", key=self.key)
        self.store.invalidate(self.key)
        return await self.revalidate(force=True)

    async def wait_for_revalidation(self) -> None:
        """Wait for triggers started by this resource and the key's in-flight fetch."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
        if self.key is None:
            return
        task = self.store.inflight(self.key)
        if task is not None:
            await asyncio.shield(task)

    # --------------- Lifecycle ---------------
    def start_watching(self) -> WatchHandle:
        """Subscribe to the key, start timers/listeners and load.

        Must be called from a running event loop. Calling it again while
        watching returns the existing handle.
        """
        if self._handle is not None:
            return self._handle

        # Raises before any listener or subscription is registered
        asyncio.get_running_loop()

        handle = WatchHandle(self)
        self._handle = handle
        if self.key is None:
            return handle

        self._unsubscribe = self.store.subscribe(self.key, self._apply)
        self._watch_started = self.store.now()

        if self.focus is not None and self.config.revalidate_on_focus:
            self.focus.add_listener(self._on_focus)
            self._focus_registered = True

        if self.config.revalidate_interval_ms > 0:
            self._interval_task = asyncio.create_task(self._interval_loop())

        entry = self.store.get_entry(self.key, self.config.max_age_ms)
        if entry is not None:
            self.logger.debug("Serving cached data", key=self.key)
            self._data = entry.data
            self._is_loading = False
        else:
            self.logger.debug("No cached data, fetching", key=self.key)
            self._is_loading = self._data is None

        # Nothing cached: load even inside the dedup window, still sharing an in-flight fetch
        self._spawn(self._trigger(check_inflight=True, check_window=entry is not None))
        return handle

    @contextmanager
    def watching_scope(self) -> Iterator["SWRResource"]:
        """Watch for the duration of a ``with`` block."""
        handle = self.start_watching()
        try:
            yield self
        finally:
            handle.stop()

    def _release(self, handle: WatchHandle) -> None:
        if self._handle is not handle:
            return
        self._handle = None

        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

        if self._focus_registered and self.focus is not None:
            self.focus.remove_listener(self._on_focus)
        self._focus_registered = False

        if self._interval_task is not None:
            self._interval_task.cancel()
            self._interval_task = None

        for task in list(self._tasks):
            task.cancel()

        self.logger.debug("Stopped watching", key=self.key)

    # --------------- Internals ---------------
    async def _fetch(self, key: str, generation: int) -> bool:
        self._emit(CacheEvent(EVENT_VALIDATING, key, generation))
        self.logger.debug("Revalidating", key=key, generation=generation)

        started = time.perf_counter()
        try:
            data = await self.fetcher()
        except Exception as exc:
            if self.store.generation(key) != generation:
                self._discard(key, generation)
                return False
            error = FetchError(key, exc)
            error.__cause__ = exc
            self.logger.error("Revalidation failed", key=key, error=str(exc))
            self._record("error")
            self._emit(CacheEvent(EVENT_FAILED, key, generation, error=error))
            return False
        finally:
            if self.metrics is not None:
                self.metrics.observe_histogram("swr_fetch_duration_seconds", time.perf_counter() - started)

        if self.store.generation(key) != generation:
            self._discard(key, generation)
            return False

        self.store.mark_fetched(key)
        self.store.commit(key, data)
        self._sync_self(CacheEvent(EVENT_UPDATED, key, generation, data=data))
        self.logger.info("Revalidated", key=key)
        self._record("success")
        return True

    def _discard(self, key: str, generation: int) -> None:
        self.logger.info(
            "Discarded superseded revalidation result",
            key=key,
            started_generation=generation,
            current_generation=self.store.generation(key),
        )
        self._record("discarded")
        self._emit(CacheEvent(EVENT_SETTLED, key, generation))

    def _emit(self, event: CacheEvent) -> None:
        self.store.publish(event)
        self._sync_self(event)

    def _sync_self(self, event: CacheEvent) -> None:
        # Watching resources already received the event through the store.
        if not self.watching:
            self._apply(event)

    def _apply(self, event: CacheEvent) -> None:
        if event.kind == EVENT_VALIDATING:
            self._is_validating = True
        elif event.kind == EVENT_UPDATED:
            self._data = event.data
            self._is_loading = False
            self._is_validating = False
            self._error = None
        elif event.kind == EVENT_FAILED:
            self._is_loading = False
            self._is_validating = False
            self._error = event.error
        elif event.kind == EVENT_SETTLED:
            self._is_validating = False

    def _on_focus(self) -> None:
        self.logger.debug("Focus regained, revalidating", key=self.key)
        self._spawn(self.revalidate())

    async def _interval_loop(self) -> None:
        interval = self.config.revalidate_interval_ms
        while True:
            markers = [
                marker
                for marker in (
                    self.store.last_fetched_at(self.key),
                    self._last_interval_trigger,
                    self._watch_started,
                )
                if marker is not None
            ]
            reference = max(markers) if markers else self.store.now()
            due_in = interval - (self.store.now() - reference)
            if due_in > 0:
                await asyncio.sleep(due_in / 1000)
                continue

            self._last_interval_trigger = self.store.now()
            await self.revalidate()

    def _spawn(self, coro: Awaitable[Any]) -> None:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _record(self, result: str) -> None:
        if self.metrics is not None:
            self.metrics.record_revalidation(result)
