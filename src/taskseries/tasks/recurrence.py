# src/taskseries/tasks/recurrence.py

from __future__ import annotations

"""
Recurrence engine.

Owns all series semantics:
- window calculation and instance generation (daily / weekly / monthly),
- window refill when the generated horizon runs low,
- series-wide update and delete,
- series / parent lookup.

Storage is reached only through the TaskRepo port. Generation is idempotent:
re-running it against the same root never inserts a date the series already has.
"""

import logging
import time
from collections.abc import Iterator
from dataclasses import replace
from datetime import date, timedelta

from dateutil.relativedelta import relativedelta

from ..core.ports import Clock, TaskRepo, TaskTransform
from .task_models import (
    RecurrenceType,
    Task,
    TaskDateError,
    format_task_date,
    parse_task_date,
)

logger = logging.getLogger(__name__)

DEFAULT_WINDOW_DAYS = 90
DEFAULT_REFILL_THRESHOLD_DAYS = 30


def resolve_root_id(task: Task) -> int | None:
    """Root of the series `task` belongs to: its parent, or itself."""
    return task.parent_task_id if task.is_child else task.id


def _period(recurrence: RecurrenceType, k: int) -> relativedelta:
    if recurrence == RecurrenceType.DAILY:
        return relativedelta(days=k)
    if recurrence == RecurrenceType.WEEKLY:
        return relativedelta(weeks=k)
    if recurrence == RecurrenceType.MONTHLY:
        return relativedelta(months=k)
    raise ValueError(f"no period for recurrence {recurrence!r}")


def occurrence_at(start: date, recurrence: RecurrenceType, k: int) -> date:
    """
    The k-th occurrence after `start`.

    Always computed from `start` (never from the previous occurrence), so a
    monthly series rooted on the 31st clamps to short months and comes back to
    the 31st afterwards: 01-31, 02-29, 03-31, 04-30, ...
    """
    return start + _period(recurrence, k)


def _first_index_after(start: date, recurrence: RecurrenceType, after: date) -> int:
    """Smallest k >= 1 whose occurrence falls strictly after `after`."""
    if after < start:
        return 1

    if recurrence == RecurrenceType.DAILY:
        return (after - start).days + 1
    if recurrence == RecurrenceType.WEEKLY:
        return (after - start).days // 7 + 1

    # Month lengths vary: jump to the month of `after`, then walk.
    k = max(1, (after.year - start.year) * 12 + after.month - start.month)
    while occurrence_at(start, recurrence, k) <= after:
        k += 1
    return k


def occurrence_dates(
    start: date,
    recurrence: RecurrenceType,
    end: date,
    *,
    after: date | None = None,
) -> Iterator[date]:
    """
    Yield occurrence dates d with start < d <= end (and d > after, if given).

    The root's own date is never yielded.
    """
    if recurrence == RecurrenceType.NONE:
        return

    floor = start if after is None or after < start else after
    k = _first_index_after(start, recurrence, floor)
    while True:
        current = occurrence_at(start, recurrence, k)
        if current > end:
            return
        yield current
        k += 1


def window_end(
    start: date,
    today: date,
    window_days: int,
    recurrence_end: date | None = None,
) -> date:
    """
    Last date (inclusive) that may be materialized.

    The horizon is measured from the root's date, or from today once the root
    lies in the past; an earlier recurrence end date wins.
    """
    horizon = max(start, today) + timedelta(days=window_days)
    if recurrence_end is not None and recurrence_end < horizon:
        return recurrence_end
    return horizon


def build_instance(root: Task, when: date) -> Task:
    """Copy `root` into a fresh, incomplete child scheduled on `when`."""
    return replace(
        root,
        id=None,
        date=format_task_date(when),
        parent_task_id=root.id,
        is_completed=False,
        recurrence_type=RecurrenceType.NONE,
        tags=list(root.tags),
        attachments=list(root.attachments),
        excluded_dates=[],
        created_at=time.time(),
    )


class RecurrenceEngine:
    """
    Materializes and maintains recurring series through a TaskRepo.

    All operations are best-effort:
    - a missing task makes the operation a silent no-op,
    - a malformed stored date abandons generation for that root,
    - store failures propagate to the caller (the periodic trigger retries).
    """

    def __init__(
        self,
        repo: TaskRepo,
        *,
        window_days: int = DEFAULT_WINDOW_DAYS,
        refill_threshold_days: int = DEFAULT_REFILL_THRESHOLD_DAYS,
        today: Clock = date.today,
    ) -> None:
        self._repo = repo
        self._window_days = max(1, int(window_days))
        self._refill_threshold_days = max(0, int(refill_threshold_days))
        self._today = today

    @property
    def window_days(self) -> int:
        return self._window_days

    @property
    def refill_threshold_days(self) -> int:
        return self._refill_threshold_days

    # ---- window maintenance ----

    async def refresh_window(self, root: Task, window_days: int | None = None) -> int:
        """
        Make sure `root`'s series is materialized far enough ahead.

        - no children yet: initial generation over the whole window
        - children exist: extend only if the last one is less than
          refill_threshold_days away from today

        Dates before today are not generated, and neither are the root's
        excluded_dates.

        Returns the number of instances inserted.
        """
        if root.recurrence_type == RecurrenceType.NONE:
            return 0
        if root.id is None or root.parent_task_id is not None:
            logger.debug(
                "refresh_window skipped: not a series root id=%s parent=%s",
                root.id,
                root.parent_task_id,
            )
            return 0

        window = self._window_days if window_days is None else max(1, int(window_days))

        try:
            start = parse_task_date(root.date)
            recurrence_end = (
                parse_task_date(root.recurrence_end_date) if root.recurrence_end_date else None
            )
        except TaskDateError as e:
            logger.warning("Cannot schedule series root_id=%s: %s", root.id, e)
            return 0

        today = self._today()
        children = await self._repo.get_children(root.id)
        last = self._last_child_date(root.id, children)

        if last is not None:
            days_until_last = (last - today).days
            if days_until_last >= self._refill_threshold_days:
                logger.debug(
                    "Series root_id=%s covered until %s (%d days left); nothing to do",
                    root.id,
                    last,
                    days_until_last,
                )
                return 0

        # Past occurrences of a stale root are never backfilled.
        floor = last
        yesterday = today - timedelta(days=1)
        if floor is None or floor < yesterday:
            floor = max(start, yesterday)

        end = window_end(start, today, window, recurrence_end)
        skip = {c.date for c in children}
        skip.update(root.excluded_dates)
        pending = [
            d
            for d in occurrence_dates(start, root.recurrence_type, end, after=floor)
            if format_task_date(d) not in skip
        ]

        # Sequential, non-atomic writes: an interrupted batch leaves a prefix
        # behind and the next refresh continues after it.
        for when in pending:
            await self._repo.insert(build_instance(root, when))

        if pending:
            logger.info(
                "Series root_id=%s (%s): generated %d instances %s..%s",
                root.id,
                root.recurrence_type.value,
                len(pending),
                pending[0],
                pending[-1],
            )
        return len(pending)

    @staticmethod
    def _last_child_date(root_id: int, children: list[Task]) -> date | None:
        last: date | None = None
        for child in children:
            try:
                d = parse_task_date(child.date)
            except TaskDateError:
                logger.warning(
                    "Ignoring child id=%s of root_id=%s with malformed date %r",
                    child.id,
                    root_id,
                    child.date,
                )
                continue
            if last is None or d > last:
                last = d
        return last

    # ---- series operations ----

    async def delete_series(self, task_id: int) -> int:
        """
        Delete the whole series `task_id` belongs to: every child, then the root.

        Returns the number of deleted records (0 if the task does not exist).
        """
        task = await self._repo.get_by_id(task_id)
        if task is None:
            return 0

        root_id = resolve_root_id(task)
        if root_id is None:
            return 0

        deleted = 0
        for child in await self._repo.get_children(root_id):
            await self._repo.delete(child)
            deleted += 1

        root = task if task.id == root_id else await self._repo.get_by_id(root_id)
        if root is not None:
            await self._repo.delete(root)
            deleted += 1

        logger.info("Deleted series root_id=%s (%d records)", root_id, deleted)
        return deleted

    async def update_series(self, task_id: int, transform: TaskTransform) -> int:
        """
        Apply `transform` to the editable part of a series.

        Editable means: children dated today or later that are not completed,
        plus the root unless it is completed. Past and completed occurrences are
        history and stay untouched.

        Returns the number of updated records.
        """
        task = await self._repo.get_by_id(task_id)
        if task is None:
            return 0

        root_id = resolve_root_id(task)
        if root_id is None:
            return 0

        today = self._today()
        updated = 0

        for child in await self._repo.get_children(root_id):
            if child.is_completed:
                continue
            try:
                child_date = parse_task_date(child.date)
            except TaskDateError:
                logger.warning("Skipping child id=%s with malformed date %r", child.id, child.date)
                continue
            if child_date < today:
                continue

            await self._repo.update(self._apply(transform, child))
            updated += 1

        root = task if task.id == root_id else await self._repo.get_by_id(root_id)
        if root is not None and not root.is_completed:
            await self._repo.update(self._apply(transform, root))
            updated += 1

        logger.info("Updated series root_id=%s (%d records)", root_id, updated)
        return updated

    @staticmethod
    def _apply(transform: TaskTransform, task: Task) -> Task:
        # Identity and series membership are not editable through a transform.
        result = replace(
            transform(replace(task)),
            id=task.id,
            parent_task_id=task.parent_task_id,
        )
        if result.parent_task_id is not None:
            result.recurrence_type = RecurrenceType.NONE
        return result

    # ---- lookups ----

    async def is_recurring_task(self, task_id: int) -> bool:
        task = await self._repo.get_by_id(task_id)
        if task is None:
            return False
        return task.recurrence_type != RecurrenceType.NONE or task.parent_task_id is not None

    async def get_parent_task(self, task_id: int) -> Task | None:
        """The root of the task's series (the task itself if it is a root)."""
        task = await self._repo.get_by_id(task_id)
        if task is None:
            return None
        if task.parent_task_id is None:
            return task
        return await self._repo.get_by_id(task.parent_task_id)
