# tests/test_task_store.py

from __future__ import annotations

import sqlite3
from dataclasses import replace
from pathlib import Path

import pytest

from taskseries.tasks.recurrence import RecurrenceEngine
from taskseries.tasks.task_models import RecurrenceType, Task, TaskPriority
from taskseries.tasks.task_store import TaskStore

from .conftest import make_root
from .fakes import FixedClock


@pytest.mark.asyncio
async def test_insert_and_get_roundtrip(store: TaskStore) -> None:
    task = make_root(
        "2024-01-01",
        RecurrenceType.WEEKLY,
        end="2024-06-30",
        description="Ask about the report",
        priority=TaskPriority.HIGH,
        tags=["work", "weekly"],
        attachments=["content://docs/1"],
        excluded_dates=["2024-01-15"],
        image_path="/tmp/a.png",
        is_notification_enabled=False,
        user_id=7,
    )

    task_id = await store.insert(task)
    got = await store.get_by_id(task_id)

    assert got is not None
    assert got.id == task_id
    assert replace(got, id=None) == replace(task, id=None)
    assert got.recurrence_type is RecurrenceType.WEEKLY
    assert got.priority is TaskPriority.HIGH


@pytest.mark.asyncio
async def test_get_by_id_missing(store: TaskStore) -> None:
    assert await store.get_by_id(12345) is None


@pytest.mark.asyncio
async def test_children_are_ordered_by_date(store: TaskStore) -> None:
    root_id = await store.insert(make_root("2024-01-01", RecurrenceType.DAILY))
    for d in ("2024-01-03", "2024-01-02", "2024-01-04"):
        await store.insert(Task(name="c", date=d, parent_task_id=root_id))
    await store.insert(Task(name="unrelated", date="2024-01-02"))

    children = await store.get_children(root_id)

    assert [c.date for c in children] == ["2024-01-02", "2024-01-03", "2024-01-04"]
    assert all(c.parent_task_id == root_id for c in children)


@pytest.mark.asyncio
async def test_duplicate_series_date_returns_existing_id(store: TaskStore) -> None:
    root_id = await store.insert(make_root("2024-01-01", RecurrenceType.DAILY))
    first = await store.insert(Task(name="c", date="2024-01-02", parent_task_id=root_id))

    second = await store.insert(Task(name="c again", date="2024-01-02", parent_task_id=root_id))

    assert second == first
    assert store.count_tasks() == 2
    assert (await store.get_by_id(first)).name == "c"


@pytest.mark.asyncio
async def test_roots_may_share_a_date(store: TaskStore) -> None:
    a = await store.insert(Task(name="a", date="2024-01-02"))
    b = await store.insert(Task(name="b", date="2024-01-02"))
    assert a != b
    assert store.count_tasks() == 2


@pytest.mark.asyncio
async def test_update_and_delete(store: TaskStore) -> None:
    task_id = await store.insert(Task(name="draft", date="2024-01-02"))
    task = await store.get_by_id(task_id)

    await store.update(replace(task, name="final", is_completed=True, tags=["x"]))
    updated = await store.get_by_id(task_id)
    assert (updated.name, updated.is_completed, updated.tags) == ("final", True, ["x"])

    await store.delete(updated)
    assert await store.get_by_id(task_id) is None


@pytest.mark.asyncio
async def test_update_without_id_is_rejected(store: TaskStore) -> None:
    with pytest.raises(ValueError):
        await store.update(Task(name="x", date="2024-01-01"))


@pytest.mark.asyncio
async def test_list_recurring_roots(store: TaskStore) -> None:
    daily = await store.insert(make_root("2024-01-01", RecurrenceType.DAILY))
    await store.insert(make_root("2024-01-01", RecurrenceType.NONE))
    # A child that (wrongly) carries a recurrence is still not a root.
    await store.insert(make_root("2024-01-02", RecurrenceType.DAILY, parent_task_id=daily))
    monthly = await store.insert(make_root("2024-02-01", RecurrenceType.MONTHLY))

    roots = await store.list_recurring_roots()

    assert [r.id for r in roots] == [daily, monthly]


@pytest.mark.asyncio
async def test_unknown_tokens_are_normalized(tmp_path: Path) -> None:
    db = tmp_path / "tasks.sqlite3"
    store = TaskStore(db)
    task_id = await store.insert(make_root("2024-01-01", RecurrenceType.DAILY))

    conn = sqlite3.connect(str(db))
    try:
        conn.execute(
            "UPDATE tasks SET recurrence_type = 'YEARLY', priority = 'urgent', tags = 'not json' "
            "WHERE id = ?",
            (task_id,),
        )
        conn.commit()
    finally:
        conn.close()

    got = await store.get_by_id(task_id)
    assert got.recurrence_type is RecurrenceType.NONE
    assert got.priority is TaskPriority.NONE
    assert got.tags == []
    assert await store.list_recurring_roots() == []


def test_schema_migration_adds_missing_columns(tmp_path: Path) -> None:
    db = tmp_path / "old.sqlite3"
    conn = sqlite3.connect(str(db))
    try:
        conn.execute(
            """
            CREATE TABLE tasks (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                name TEXT NOT NULL,
                description TEXT,
                date TEXT NOT NULL,
                time TEXT NOT NULL DEFAULT '00:00',
                is_completed INTEGER NOT NULL DEFAULT 0,
                created_at REAL NOT NULL
            )
            """
        )
        conn.execute(
            "INSERT INTO tasks(name, date, created_at) VALUES ('legacy', '2024-01-01', 0)"
        )
        conn.commit()
    finally:
        conn.close()

    store = TaskStore(db)

    conn = sqlite3.connect(str(db))
    try:
        cols = {row[1] for row in conn.execute("PRAGMA table_info(tasks)")}
    finally:
        conn.close()
    assert {"recurrence_type", "parent_task_id", "recurrence_end_date", "tags", "excluded_dates"} <= cols
    assert store.count_tasks() == 1


@pytest.mark.asyncio
async def test_engine_against_sqlite_store(store: TaskStore, clock: FixedClock) -> None:
    engine = RecurrenceEngine(store, today=clock)
    root_id = await store.insert(make_root("2024-01-31", RecurrenceType.MONTHLY))
    root = await store.get_by_id(root_id)

    assert await engine.refresh_window(root, 120) == 3
    assert await engine.refresh_window(root, 120) == 0

    children = await store.get_children(root_id)
    assert [c.date for c in children] == ["2024-02-29", "2024-03-31", "2024-04-30"]
    assert all(c.recurrence_type is RecurrenceType.NONE for c in children)

    assert await engine.delete_series(children[0].id) == 4
    assert store.count_tasks() == 0
