# tests/conftest.py

from __future__ import annotations

from datetime import date
from pathlib import Path
from types import SimpleNamespace

import pytest

from taskseries.core.state import AppState
from taskseries.tasks.recurrence import RecurrenceEngine
from taskseries.tasks.task_models import RecurrenceType, Task
from taskseries.tasks.task_store import TaskStore

from .fakes import FakeTaskRepo, FixedClock

TODAY = date(2024, 1, 1)


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with bootstrap and AppState.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated and deterministic.
    """
    return SimpleNamespace(
        app_name="taskseries-test",
        log_level="DEBUG",
        data_dir=tmp_path / "data",
        tasks_db_path=tmp_path / "data" / "tasks.sqlite3",
        window_days=90,
        refill_threshold_days=30,
        refresh_interval_seconds=1.0,
        initial_delay_seconds=0.0,
    )


@pytest.fixture()
def clock() -> FixedClock:
    return FixedClock(TODAY)


@pytest.fixture()
def repo() -> FakeTaskRepo:
    return FakeTaskRepo()


@pytest.fixture()
def engine(repo: FakeTaskRepo, clock: FixedClock) -> RecurrenceEngine:
    return RecurrenceEngine(repo, today=clock)


@pytest.fixture()
def store(tmp_path: Path) -> TaskStore:
    return TaskStore(tmp_path / "tasks.sqlite3")


@pytest.fixture()
def state(settings: SimpleNamespace, clock: FixedClock) -> AppState:
    """
    AppState wired with a real SQLite store and a fixed clock.

    The store is real because series integrity (unique instance per date)
    is part of what we want to test.
    """
    task_store = TaskStore(settings.tasks_db_path)
    return AppState(
        settings=settings,
        task_store=task_store,
        engine=RecurrenceEngine(task_store, today=clock),
    )


def make_root(
    task_date: str,
    recurrence: RecurrenceType,
    *,
    end: str | None = None,
    task_id: int | None = None,
    **extra,
) -> Task:
    return Task(
        id=task_id,
        name=extra.pop("name", "Water the plants"),
        date=task_date,
        time=extra.pop("time", "08:00"),
        recurrence_type=recurrence,
        recurrence_end_date=end,
        **extra,
    )
