"""
Worker cache caching package.

Client-side caches for worker and branch data. Data here is a disposable
copy of the companion API's records, never the system of record: prefer
short TTLs and explicit invalidation.
"""

from .ttl_cache import CacheEntry, TTLCache
from .cache_store import CacheEvent, CacheStore
from .focus import FocusMonitor
from .swr import SWRConfig, SWRResource, SWRSnapshot, WatchHandle
from .branch_data_cache import BranchDataCache
from .refresh import PageRefreshCoordinator

__all__ = [
    "BranchDataCache",
    "CacheEntry",
    "CacheEvent",
    "CacheStore",
    "FocusMonitor",
    "PageRefreshCoordinator",
    "SWRConfig",
    "SWRResource",
    "SWRSnapshot",
    "TTLCache",
    "WatchHandle",
]
