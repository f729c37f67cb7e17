# src/taskseries/tasks/task_scheduler.py

from __future__ import annotations

"""
Series refresh scheduler.

A small polling loop that, every interval:
- fetches all recurring series roots,
- asks the recurrence engine to top up each root's window, one root at a time,
- logs and skips roots that fail (the next cycle retries them).

The engine is idempotent, so overlapping or repeated passes are harmless.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field

from ..core.ports import TaskRepo
from .recurrence import RecurrenceEngine

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class RefreshReport:
    """Outcome of one scheduler pass."""

    roots_seen: int = 0
    roots_refreshed: int = 0
    instances_created: int = 0
    failed_root_ids: list[int | None] = field(default_factory=list)
    listing_failed: bool = False
    stopped_early: bool = False

    @property
    def ok(self) -> bool:
        return not self.listing_failed and not self.failed_root_ids


async def refresh_all_series(
        task_store: TaskRepo,
        engine: RecurrenceEngine,
        *,
        window_days: int | None = None,
        stop: asyncio.Event | None = None,
) -> RefreshReport:
    """
    Run one refresh pass over every recurring root.

    - a failure on one root is logged and recorded; the pass goes on
    - `stop` is checked between roots: the current root is finished first
    """
    report = RefreshReport()
    started = time.monotonic()

    try:
        roots = await task_store.list_recurring_roots()
    except Exception:
        logger.exception("list_recurring_roots failed")
        report.listing_failed = True
        return report

    report.roots_seen = len(roots)

    for root in roots:
        if stop is not None and stop.is_set():
            logger.info("Refresh pass stopped after %d/%d roots", report.roots_refreshed, len(roots))
            report.stopped_early = True
            break

        try:
            created = await engine.refresh_window(root, window_days)
        except Exception:
            logger.exception("refresh_window failed root_id=%s", root.id)
            report.failed_root_ids.append(root.id)
            continue

        report.roots_refreshed += 1
        report.instances_created += created

    logger.info(
        "Refresh pass done roots=%d refreshed=%d created=%d failed=%d in %.2fs",
        report.roots_seen,
        report.roots_refreshed,
        report.instances_created,
        len(report.failed_root_ids),
        time.monotonic() - started,
    )
    return report


async def run_recurrence_scheduler(
        task_store: TaskRepo,
        engine: RecurrenceEngine,
        *,
        interval_seconds: float = 86400.0,
        initial_delay_seconds: float = 0.0,
        window_days: int | None = None,
        stop: asyncio.Event | None = None,
) -> None:
    """
    Simple polling scheduler.

    After initial_delay_seconds, and then every interval_seconds:
    - run refresh_all_series(...)
    - an unsuccessful pass is simply retried on the next cycle

    To stop the scheduler, cancel the coroutine/task, or set `stop`
    (the running pass finishes its current root, then the loop exits).
    """
    sleep_s = max(0.5, float(interval_seconds))
    delay_s = max(0.0, float(initial_delay_seconds))

    if delay_s and not await _sleep_or_stop(delay_s, stop):
        return

    while True:
        report = await refresh_all_series(task_store, engine, window_days=window_days, stop=stop)
        if not report.ok:
            logger.warning("Refresh pass incomplete; retrying in %.0fs", sleep_s)

        if not await _sleep_or_stop(sleep_s, stop):
            return


async def _sleep_or_stop(seconds: float, stop: asyncio.Event | None) -> bool:
    """Sleep; return False if `stop` got set meanwhile."""
    if stop is None:
        await asyncio.sleep(seconds)
        return True
    if stop.is_set():
        return False
    try:
        await asyncio.wait_for(stop.wait(), timeout=seconds)
    except asyncio.TimeoutError:
        return True
    return False
