#!/usr/bin/env python3
"""
Watch a branch's workers through the stale-while-revalidate cache.

Developer helper for checking revalidation against a running attendance API:
it starts a watching resource for one branch page, prints every state change
as JSON, and optionally simulates focus events on a fixed period.
"""

import argparse
import asyncio
import json
import os
import sys
from typing import Any, Optional

from prometheus_client import REGISTRY, generate_latest

from shared.config import get_config
from shared.logging import configure_logging, get_logger
from shared.metrics import get_metrics_collector
from service_worker_cache.app.adapters.attendance_client import AttendanceApiClient
from service_worker_cache.app.caching import CacheStore, FocusMonitor, SWRConfig
from service_worker_cache.app.directory import WorkerDirectory


def _render(snapshot: Any) -> str:
    data = snapshot.data
    return json.dumps(
        {
            "is_loading": snapshot.is_loading,
            "is_validating": snapshot.is_validating,
            "error": str(snapshot.error) if snapshot.error else None,
            "total": getattr(data, "total", None),
            "workers": [worker.name for worker in getattr(data, "workers", [])],
        }
    )


async def watch(
    *,
    api_url: str,
    branch_id: str,
    page: int,
    page_size: int,
    interval_ms: int,
    focus_every: Optional[float],
    duration: float,
) -> int:
    """Watch until ``duration`` seconds elapse; returns the number of updates seen."""
    config = get_config(api_base_url=api_url, revalidate_interval_ms=interval_ms)
    metrics = get_metrics_collector("worker_cache", REGISTRY) if config.enable_metrics else None
    store = CacheStore(max_age_ms=config.max_age_ms, metrics=metrics)
    focus = FocusMonitor()
    directory = WorkerDirectory(
        AttendanceApiClient.from_config(config),
        store,
        SWRConfig.from_config(config),
        focus=focus,
        metrics=metrics,
    )
    resource = directory.branch_workers(branch_id, page=page, page_size=page_size)

    updates = 0
    last_line = None

    def _print_if_changed(_event) -> None:
        nonlocal updates, last_line
        line = _render(resource.snapshot())
        if line != last_line:
            updates += 1
            last_line = line
            print(line, flush=True)

    loop = asyncio.get_running_loop()
    deadline = loop.time() + duration
    with resource.watching_scope():
        # Subscribed after the resource so its state is already applied when printing
        unsubscribe = store.subscribe(resource.key, _print_if_changed)
        try:
            while loop.time() < deadline:
                step = min(focus_every or duration, deadline - loop.time())
                await asyncio.sleep(max(step, 0))
                if focus_every:
                    focus.notify_focus()
        finally:
            unsubscribe()

    if metrics is not None:
        sys.stderr.write(generate_latest(REGISTRY).decode())
    return updates


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Watch a branch's workers through the SWR cache.")
    parser.add_argument("--api-url", default=os.getenv("WORKER_CACHE_API_BASE_URL", "http://localhost:8080"), help="Attendance API base URL")
    parser.add_argument("--branch", required=True, help="Branch identifier")
    parser.add_argument("--page", type=int, default=1, help="Page number")
    parser.add_argument("--page-size", type=int, default=50, help="Workers per page")
    parser.add_argument("--interval-ms", type=int, default=30000, help="Revalidation interval in milliseconds (0 disables)")
    parser.add_argument("--focus-every", type=float, default=None, help="Simulate a focus event every N seconds")
    parser.add_argument("--duration", type=float, default=120.0, help="How long to watch, in seconds")
    parser.add_argument("--log-level", default=os.getenv("WORKER_CACHE_LOG_LEVEL", "warning"), help="Log level")
    return parser.parse_args()


def main() -> int:
    args = _parse_args()
    configure_logging("worker_cache", args.log_level)
    logger = get_logger("worker_cache.watch")
    try:
        updates = asyncio.run(
            watch(
                api_url=args.api_url,
                branch_id=args.branch,
                page=args.page,
                page_size=args.page_size,
                interval_ms=args.interval_ms,
                focus_every=args.focus_every,
                duration=args.duration,
            )
        )
    except KeyboardInterrupt:
        return 130
    except Exception as exc:  # pragma: no cover - CLI surface
        logger.error("Watch failed", error=str(exc))
        print(f"[watch] failed: {exc}", file=sys.stderr)
        return 1

    print(f"[watch] {updates} distinct states observed", file=sys.stderr)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
