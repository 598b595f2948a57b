"""
In-memory TTL cache for worker and branch payloads.
"""

import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, TYPE_CHECKING

from shared.logging import get_logger

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


def now_ms() -> float:
    """Current wall-clock time in epoch milliseconds."""
    return time.time() * 1000


@dataclass(frozen=True)
class CacheEntry:
    """Most recent successful result for one key."""
    data: Any
    timestamp: float
    etag: Optional[str] = None

    def age(self, now: float) -> float:
        return now - self.timestamp


class TTLCache:
    """Key-value cache answering whether an entry is fresh under a caller-given max age.

    Single-threaded and process-local. An entry older than the requested
    max age is treated as absent and evicted on read.
    """

    def __init__(
        self,
        now: Optional[Callable[[], float]] = None,
        *,
        cache_type: str = "swr",
        metrics: Optional["MetricsCollector"] = None,
    ):
        self._now = now or now_ms
        self._entries: Dict[str, CacheEntry] = {}
        self.cache_type = cache_type
        self.metrics = metrics
        self.logger = get_logger("worker_cache.ttl_cache")

    def get_entry(self, key: str, max_age_ms: float) -> Optional[CacheEntry]:
        """Return the entry for ``key`` if it is at most ``max_age_ms`` old."""
        entry = self._entries.get(key)
        if entry is None:
            self._record_access(hit=False)
            return None

        if entry.age(self._now()) > max_age_ms:
            self._entries.pop(key, None)
            self.logger.debug("Evicted stale entry", key=key, cache_type=self.cache_type)
            self._record_access(hit=False)
            return None

        self._record_access(hit=True)
        return entry

    def get(self, key: str, max_age_ms: float) -> Optional[Any]:
        """Return cached data for ``key`` if it is at most ``max_age_ms`` old."""
        entry = self.get_entry(key, max_age_ms)
        return entry.data if entry is not None else None

    def set(self, key: str, data: Any, etag: Optional[str] = None) -> CacheEntry:
        """Overwrite the entry for ``key`` and reset its timestamp."""
        entry = CacheEntry(data=data, timestamp=self._now(), etag=etag)
        self._entries[key] = entry
        self.logger.debug("Cache set", key=key, cache_type=self.cache_type)
        return entry

    def invalidate(self, key: str) -> bool:
        """Remove ``key``. Returns whether an entry was present."""
        removed = self._entries.pop(key, None) is not None
        if removed:
            self.logger.debug("Invalidated cache entry", key=key, cache_type=self.cache_type)
        return removed

    def invalidate_prefix(self, prefix: str) -> int:
        """Remove every key starting with ``prefix``."""
        stale_keys = [key for key in self._entries if key.startswith(prefix)]
        for key in stale_keys:
            self._entries.pop(key, None)
        if stale_keys:
            self.logger.debug("Invalidated cache prefix", prefix=prefix, keys_count=len(stale_keys))
        return len(stale_keys)

    def clear(self) -> None:
        self._entries.clear()
        self.logger.debug("Invalidated all entries", cache_type=self.cache_type)

    def keys(self) -> List[str]:
        return list(self._entries)

    def stats(self) -> Dict[str, Any]:
        """Cache statistics for monitoring."""
        return {
            "size": len(self._entries),
            "entries": list(self._entries),
        }

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def _record_access(self, hit: bool) -> None:
        if self.metrics is not None:
            self.metrics.record_cache_access(self.cache_type, hit)
