# src/taskseries/tasks/task_api.py

from __future__ import annotations

import logging
from dataclasses import fields, replace
from typing import Any

from ..core.state import AppState
from .task_models import RecurrenceType, Task, parse_task_date

logger = logging.getLogger(__name__)

# Fields a series edit may not touch: identity, series membership, history,
# and the schedule itself (dates are per occurrence and unique per series).
_PROTECTED_FIELDS = frozenset(
    {
        "id",
        "parent_task_id",
        "created_at",
        "is_completed",
        "date",
        "recurrence_type",
        "recurrence_end_date",
        "excluded_dates",
    }
)
_TASK_FIELDS = frozenset(f.name for f in fields(Task))


async def create_task(state: AppState, task: Task) -> Task:
    """
    Persist a new task and, if it recurs, materialize its series right away.

    The task is always stored as a root. Returns the stored task (with id).
    """
    if not task.name or not task.name.strip():
        raise ValueError("name is required")
    # Validates the format up front; TaskDateError is a ValueError.
    parse_task_date(task.date)
    if task.recurrence_end_date:
        parse_task_date(task.recurrence_end_date)

    root = replace(task, id=None, parent_task_id=None, name=task.name.strip())
    root.id = await state.task_store.insert(root)
    logger.info("Task created id=%s date=%s recurrence=%s", root.id, root.date, root.recurrence_type.value)

    if root.recurrence_type != RecurrenceType.NONE:
        await state.engine.refresh_window(root)
    return root


async def delete_task(state: AppState, task_id: int, *, whole_series: bool = False) -> int:
    """
    Delete one occurrence, or the whole series it belongs to.

    A series root always takes its series with it. Returns the number of
    deleted records (0 if the task does not exist).
    """
    task = await state.task_store.get_by_id(task_id)
    if task is None:
        return 0

    if whole_series or task.is_series_root:
        return await state.engine.delete_series(task_id)

    if task.is_child:
        # Record the date on the root so a later refill does not bring it back.
        root = await state.task_store.get_by_id(task.parent_task_id)
        if root is not None and task.date not in root.excluded_dates:
            root.excluded_dates = [*root.excluded_dates, task.date]
            await state.task_store.update(root)

    await state.task_store.delete(task)
    logger.info("Task deleted id=%s", task_id)
    return 1


async def edit_series(state: AppState, task_id: int, **changes: Any) -> int:
    """
    Apply field changes to every editable occurrence of a series.

    E.g. edit_series(state, 12, name="Gym", time="07:30").
    Returns the number of updated records.
    """
    unknown = set(changes) - _TASK_FIELDS
    if unknown:
        raise ValueError(f"unknown task fields: {sorted(unknown)}")
    protected = set(changes) & _PROTECTED_FIELDS
    if protected:
        raise ValueError(f"fields cannot be edited series-wide: {sorted(protected)}")

    return await state.engine.update_series(task_id, lambda t: replace(t, **changes))
