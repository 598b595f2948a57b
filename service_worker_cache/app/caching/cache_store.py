"""
Shared cache store for stale-while-revalidate consumers.

One ``CacheStore`` is handed to every ``SWRResource`` that should share data.
Besides the TTL cache it keeps per-key bookkeeping the resources coordinate
through: a generation counter, the last successful fetch time, the in-flight
revalidation task and the subscribers to notify when the key changes.
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, TYPE_CHECKING

from shared.logging import get_logger
from .ttl_cache import CacheEntry, TTLCache, now_ms

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


DEFAULT_MAX_AGE_MS = 5 * 60 * 1000

EVENT_VALIDATING = "validating"
EVENT_UPDATED = "updated"
EVENT_FAILED = "failed"
EVENT_SETTLED = "settled"
EVENT_INVALIDATED = "invalidated"


@dataclass(frozen=True)
class CacheEvent:
    """Notification fanned out to every subscriber of a key."""
    kind: str
    key: str
    generation: int
    data: Any = None
    error: Optional[BaseException] = None


Subscriber = Callable[[CacheEvent], None]


class CacheStore:
    """Process-local cache plus revalidation bookkeeping, shared by reference."""

    def __init__(
        self,
        *,
        max_age_ms: float = DEFAULT_MAX_AGE_MS,
        now: Optional[Callable[[], float]] = None,
        metrics: Optional["MetricsCollector"] = None,
    ):
        self._now = now or now_ms
        self.max_age_ms = max_age_ms
        self.metrics = metrics
        self.cache = TTLCache(self._now, cache_type="swr", metrics=metrics)
        self.logger = get_logger("worker_cache.store")

        self._generations: Dict[str, int] = {}
        self._last_fetched: Dict[str, float] = {}
        self._inflight: Dict[str, "asyncio.Future[Any]"] = {}
        self._subscribers: Dict[str, List[Subscriber]] = {}

    def now(self) -> float:
        return self._now()

    # --------------- Entries ---------------
    def get(self, key: str, max_age_ms: Optional[float] = None) -> Optional[Any]:
        """Fresh data for ``key`` or ``None``."""
        return self.cache.get(key, self._max_age(max_age_ms))

    def get_entry(self, key: str, max_age_ms: Optional[float] = None) -> Optional[CacheEntry]:
        return self.cache.get_entry(key, self._max_age(max_age_ms))

    def set(self, key: str, data: Any, etag: Optional[str] = None) -> CacheEntry:
        """Write ``data`` as a new generation and notify subscribers.

        Any revalidation already in flight for ``key`` will have its result
        discarded.
        """
        self.bump_generation(key)
        return self.commit(key, data, etag)

    def commit(self, key: str, data: Any, etag: Optional[str] = None) -> CacheEntry:
        """Write ``data`` under the current generation and notify subscribers."""
        entry = self.cache.set(key, data, etag)
        self.publish(CacheEvent(EVENT_UPDATED, key, self.generation(key), data=data))
        return entry

    def invalidate(self, key: str) -> bool:
        """Drop the entry for ``key``. Idempotent apart from the generation bump.

        Also forgets the last fetch time, so the next revalidation of the key
        is not held back by the dedup window.
        """
        self.bump_generation(key)
        self._last_fetched.pop(key, None)
        removed = self.cache.invalidate(key)
        self.publish(CacheEvent(EVENT_INVALIDATED, key, self.generation(key)))
        return removed

    def invalidate_prefix(self, prefix: str) -> int:
        """Drop every entry whose key starts with ``prefix``."""
        keys = [key for key in self.cache.keys() if key.startswith(prefix)]
        for key in keys:
            self.invalidate(key)
        return len(keys)

    def clear(self) -> None:
        """Drop every entry."""
        for key in self.cache.keys():
            self.invalidate(key)
        self.logger.info("Invalidated all cache entries")

    def keys(self) -> List[str]:
        return self.cache.keys()

    # --------------- Bookkeeping ---------------
    def generation(self, key: str) -> int:
        return self._generations.get(key, 0)

    def bump_generation(self, key: str) -> int:
        generation = self._generations.get(key, 0) + 1
        self._generations[key] = generation
        return generation

    def last_fetched_at(self, key: str) -> Optional[float]:
        return self._last_fetched.get(key)

    def mark_fetched(self, key: str, at: Optional[float] = None) -> None:
        self._last_fetched[key] = self._now() if at is None else at

    def inflight(self, key: str) -> "Optional[asyncio.Future[Any]]":
        task = self._inflight.get(key)
        if task is not None and task.done():
            return None
        return task

    def track_inflight(self, key: str, task: "asyncio.Future[Any]") -> None:
        """Remember ``task`` as the revalidation running for ``key``."""
        self._inflight[key] = task

        def _release(done: "asyncio.Future[Any]") -> None:
            if self._inflight.get(key) is done:
                del self._inflight[key]

        task.add_done_callback(_release)

    # --------------- Fan-out ---------------
    def subscribe(self, key: str, callback: Subscriber) -> Callable[[], None]:
        """Register ``callback`` for events on ``key``; returns an unsubscribe function."""
        self._subscribers.setdefault(key, []).append(callback)

        def _unsubscribe() -> None:
            callbacks = self._subscribers.get(key)
            if not callbacks or callback not in callbacks:
                return
            callbacks.remove(callback)
            if not callbacks:
                del self._subscribers[key]

        return _unsubscribe

    def subscriber_count(self, key: str) -> int:
        return len(self._subscribers.get(key, ()))

    def publish(self, event: CacheEvent) -> None:
        """Deliver ``event`` to every subscriber of its key."""
        for callback in list(self._subscribers.get(event.key, ())):
            try:
                callback(event)
            except Exception as exc:
                self.logger.error(
                    "Cache subscriber failed",
                    key=event.key,
                    kind=event.kind,
                    error=str(exc),
                )

    def stats(self) -> Dict[str, Any]:
        stats = self.cache.stats()
        stats["inflight"] = [key for key in self._inflight if self.inflight(key) is not None]
        stats["subscribed_keys"] = list(self._subscribers)
        return stats

    def _max_age(self, max_age_ms: Optional[float]) -> float:
        return self.max_age_ms if max_age_ms is None else max_age_ms
