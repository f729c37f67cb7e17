# src/taskseries/tasks/task_models.py

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import StrEnum

logger = logging.getLogger(__name__)

DATE_FORMAT = "%Y-%m-%d"


class TaskDateError(ValueError):
    """A stored date string is not a valid yyyy-MM-dd calendar date."""


def parse_task_date(raw: str | None) -> date:
    if not raw:
        raise TaskDateError(f"empty date: {raw!r}")
    try:
        return datetime.strptime(raw.strip(), DATE_FORMAT).date()
    except ValueError as e:
        raise TaskDateError(f"malformed date: {raw!r}") from e


def _now() -> float:
    return time.time()


def format_task_date(value: date) -> str:
    return value.strftime(DATE_FORMAT)


class RecurrenceType(StrEnum):
    """
    Recurrence rule of a series root.

    Persisted as the literal token (NONE / DAILY / WEEKLY / MONTHLY).
    Child instances always carry NONE.
    """

    NONE = "NONE"
    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"

    @classmethod
    def from_db(cls, raw: str | None) -> RecurrenceType:
        if not raw:
            return cls.NONE
        try:
            return cls(raw.strip().upper())
        except ValueError:
            logger.warning("Unknown recurrence type %r; treating as NONE", raw)
            return cls.NONE


class TaskPriority(StrEnum):
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"
    NONE = "NONE"

    @classmethod
    def from_db(cls, raw: str | None) -> TaskPriority:
        if not raw:
            return cls.NONE
        try:
            return cls(raw.strip().upper())
        except ValueError:
            logger.warning("Unknown task priority %r; treating as NONE", raw)
            return cls.NONE


@dataclass(slots=True)
class Task:
    name: str
    date: str
    time: str = "00:00"

    id: int | None = None
    description: str | None = None
    user_id: int | None = None

    priority: TaskPriority = TaskPriority.NONE
    tags: list[str] = field(default_factory=list)
    attachments: list[str] = field(default_factory=list)
    image_path: str | None = None
    is_notification_enabled: bool = True

    recurrence_type: RecurrenceType = RecurrenceType.NONE
    recurrence_end_date: str | None = None
    # Occurrence dates removed from a series; refills never re-create them.
    excluded_dates: list[str] = field(default_factory=list)
    parent_task_id: int | None = None

    is_completed: bool = False
    created_at: float = field(default_factory=_now)

    @property
    def is_child(self) -> bool:
        return self.parent_task_id is not None

    @property
    def is_series_root(self) -> bool:
        """A persisted root carrying a recurrence rule."""
        return (
            self.id is not None
            and self.parent_task_id is None
            and self.recurrence_type != RecurrenceType.NONE
        )
