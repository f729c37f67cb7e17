# src/taskseries/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The recurrence engine depends on Protocols instead of concrete implementations.
This keeps storage swappable and makes testing easier.
"""

from datetime import date
from typing import Awaitable, Callable, Protocol

from ..tasks.task_models import Task

Clock = Callable[[], date]
# Wall-clock source: returns "today" as a calendar date.

TaskTransform = Callable[[Task], Task]
# Pure edit applied to every affected occurrence by series updates.


class TaskRepo(Protocol):
    """
    Store-side port: durable collection of task records.

    Every call may suspend (I/O-bound); the engine awaits each one before
    proceeding.
    """

    # Series queries
    def get_children(self, root_id: int) -> Awaitable[list[Task]]: ...
    def get_by_id(self, task_id: int) -> Awaitable[Task | None]: ...

    # Writes
    def insert(self, task: Task) -> Awaitable[int]: ...
    def update(self, task: Task) -> Awaitable[None]: ...
    def delete(self, task: Task) -> Awaitable[None]: ...

    # Scheduler API
    def list_recurring_roots(self) -> Awaitable[list[Task]]: ...
