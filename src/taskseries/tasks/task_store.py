# src/taskseries/tasks/task_store.py

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import sqlite3
import time
from pathlib import Path
from typing import Any

from .task_models import RecurrenceType, Task, TaskPriority

logger = logging.getLogger(__name__)


class TaskStore:
    """
    SQLite task store (implements the TaskRepo port).

    The schema is intentionally simple and migration-safe:
    - create table if missing
    - use PRAGMA table_info to detect missing columns
    - add columns with ALTER TABLE only when needed

    Series integrity:
    - a partial unique index on (parent_task_id, date) allows at most one
      instance per date in a series; inserting a duplicate returns the id of
      the row already there

    Concurrency:
    - each call opens its own SQLite connection
    - async methods run the blocking call in a worker thread
    """

    def __init__(self, db_path: str | Path = "tasks.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()
        logger.info("TaskStore ready db=%s total=%s", self._db_path, self.count_tasks())

    def close(self) -> None:
        """Compatibility hook for shutdown (no persistent connections to close)."""
        return

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        self._configure_conn(conn)
        return conn

    @staticmethod
    def _configure_conn(conn: sqlite3.Connection) -> None:
        with contextlib.suppress(sqlite3.Error):
            conn.execute("PRAGMA journal_mode=WAL")

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()

            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS tasks (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id INTEGER,
                    name TEXT NOT NULL,
                    description TEXT,
                    date TEXT NOT NULL,
                    time TEXT NOT NULL DEFAULT '00:00',
                    image_path TEXT,
                    is_completed INTEGER NOT NULL DEFAULT 0,
                    is_notification_enabled INTEGER NOT NULL DEFAULT 1,
                    priority TEXT NOT NULL DEFAULT 'NONE',
                    tags TEXT NOT NULL DEFAULT '[]',
                    attachments TEXT NOT NULL DEFAULT '[]',
                    recurrence_type TEXT NOT NULL DEFAULT 'NONE',
                    recurrence_end_date TEXT,
                    excluded_dates TEXT NOT NULL DEFAULT '[]',
                    parent_task_id INTEGER,
                    created_at REAL NOT NULL,
                    updated_at REAL NOT NULL
                )
                """
            )

            # Migrations (safe): add missing columns.
            cur.execute("PRAGMA table_info(tasks)")
            cols = {row["name"] for row in cur.fetchall()}

            def add_col(name: str, decl: str) -> None:
                if name in cols:
                    return
                cur.execute(f"ALTER TABLE tasks ADD COLUMN {name} {decl}")
                logger.info("TaskStore migration: added column %s", name)

            add_col("user_id", "INTEGER")
            add_col("image_path", "TEXT")
            add_col("is_notification_enabled", "INTEGER NOT NULL DEFAULT 1")
            add_col("priority", "TEXT NOT NULL DEFAULT 'NONE'")
            add_col("tags", "TEXT NOT NULL DEFAULT '[]'")
            add_col("attachments", "TEXT NOT NULL DEFAULT '[]'")
            add_col("recurrence_type", "TEXT NOT NULL DEFAULT 'NONE'")
            add_col("recurrence_end_date", "TEXT")
            add_col("excluded_dates", "TEXT NOT NULL DEFAULT '[]'")
            add_col("parent_task_id", "INTEGER")
            add_col("updated_at", "REAL NOT NULL DEFAULT 0")

            cur.execute("CREATE INDEX IF NOT EXISTS idx_tasks_parent ON tasks(parent_task_id, date)")
            cur.execute(
                "CREATE UNIQUE INDEX IF NOT EXISTS idx_tasks_series_date "
                "ON tasks(parent_task_id, date) WHERE parent_task_id IS NOT NULL"
            )
            cur.execute("CREATE INDEX IF NOT EXISTS idx_tasks_user_date ON tasks(user_id, date)")

            conn.commit()
        finally:
            conn.close()

    @staticmethod
    def _list_to_str(items: list[str] | None) -> str:
        if not items:
            return "[]"
        return json.dumps([str(i) for i in items], ensure_ascii=False)

    @staticmethod
    def _str_to_list(s: str | None) -> list[str]:
        if not s:
            return []
        try:
            val = json.loads(s)
        except json.JSONDecodeError:
            logger.warning("Malformed JSON list column %r; using []", s)
            return []
        return [str(v) for v in val] if isinstance(val, list) else []

    def _row_to_task(self, row: sqlite3.Row) -> Task:
        return Task(
            id=int(row["id"]),
            user_id=int(row["user_id"]) if row["user_id"] is not None else None,
            name=str(row["name"] or ""),
            description=row["description"],
            date=str(row["date"] or ""),
            time=str(row["time"] or "00:00"),
            image_path=row["image_path"],
            is_completed=bool(row["is_completed"]),
            is_notification_enabled=bool(row["is_notification_enabled"]),
            priority=TaskPriority.from_db(row["priority"]),
            tags=self._str_to_list(row["tags"]),
            attachments=self._str_to_list(row["attachments"]),
            recurrence_type=RecurrenceType.from_db(row["recurrence_type"]),
            recurrence_end_date=row["recurrence_end_date"],
            excluded_dates=self._str_to_list(row["excluded_dates"]),
            parent_task_id=(
                int(row["parent_task_id"]) if row["parent_task_id"] is not None else None
            ),
            created_at=float(row["created_at"] or 0.0),
        )

    def _task_params(self, task: Task) -> dict[str, Any]:
        return {
            "user_id": task.user_id,
            "name": task.name,
            "description": task.description,
            "date": task.date,
            "time": task.time,
            "image_path": task.image_path,
            "is_completed": int(bool(task.is_completed)),
            "is_notification_enabled": int(bool(task.is_notification_enabled)),
            "priority": TaskPriority(task.priority).value,
            "tags": self._list_to_str(task.tags),
            "attachments": self._list_to_str(task.attachments),
            "recurrence_type": RecurrenceType(task.recurrence_type).value,
            "recurrence_end_date": task.recurrence_end_date,
            "excluded_dates": self._list_to_str(task.excluded_dates),
            "parent_task_id": task.parent_task_id,
            "created_at": float(task.created_at),
        }

    # ---- sync API ----

    def count_tasks(self) -> int:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute("SELECT COUNT(*) FROM tasks")
            (n,) = cur.fetchone()
            return int(n)
        finally:
            conn.close()

    def _get_children_sync(self, root_id: int) -> list[Task]:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute(
                "SELECT * FROM tasks WHERE parent_task_id = ? ORDER BY date, time",
                (int(root_id),),
            )
            return [self._row_to_task(r) for r in cur.fetchall()]
        finally:
            conn.close()

    def _get_by_id_sync(self, task_id: int) -> Task | None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute("SELECT * FROM tasks WHERE id = ? LIMIT 1", (int(task_id),))
            row = cur.fetchone()
            return self._row_to_task(row) if row else None
        finally:
            conn.close()

    def _insert_sync(self, task: Task) -> int:
        params = self._task_params(task)
        params["updated_at"] = time.time()
        cols = ", ".join(params)
        placeholders = ", ".join(f":{k}" for k in params)

        conn = self._get_conn()
        try:
            cur = conn.cursor()
            try:
                cur.execute(f"INSERT INTO tasks({cols}) VALUES ({placeholders})", params)
            except sqlite3.IntegrityError:
                if task.parent_task_id is None:
                    raise
                cur.execute(
                    "SELECT id FROM tasks WHERE parent_task_id = ? AND date = ? LIMIT 1",
                    (int(task.parent_task_id), task.date),
                )
                row = cur.fetchone()
                if row is None:
                    raise
                logger.debug(
                    "Instance already present parent_task_id=%s date=%s id=%s",
                    task.parent_task_id,
                    task.date,
                    row["id"],
                )
                return int(row["id"])

            conn.commit()
            rowid = cur.lastrowid
            if rowid is None:
                raise RuntimeError("SQLite did not return lastrowid for tasks insert")
            task_id = int(rowid)
            logger.debug(
                "Task added id=%s date=%s parent=%s recurrence=%s",
                task_id,
                task.date,
                task.parent_task_id,
                params["recurrence_type"],
            )
            return task_id
        finally:
            conn.close()

    def _update_sync(self, task: Task) -> None:
        if task.id is None:
            raise ValueError("cannot update a task without id")

        params = self._task_params(task)
        params["updated_at"] = time.time()
        assignments = ", ".join(f"{k} = :{k}" for k in params)
        params["id"] = int(task.id)

        conn = self._get_conn()
        try:
            conn.execute(f"UPDATE tasks SET {assignments} WHERE id = :id", params)
            conn.commit()
        finally:
            conn.close()

    def _delete_sync(self, task: Task) -> None:
        if task.id is None:
            return
        conn = self._get_conn()
        try:
            conn.execute("DELETE FROM tasks WHERE id = ?", (int(task.id),))
            conn.commit()
        finally:
            conn.close()

    def _list_recurring_roots_sync(self) -> list[Task]:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute(
                """
                SELECT *
                FROM tasks
                WHERE recurrence_type != 'NONE'
                  AND parent_task_id IS NULL
                ORDER BY date, id
                """
            )
            roots = [self._row_to_task(r) for r in cur.fetchall()]
            # Rows with unknown tokens come back normalized to NONE.
            return [t for t in roots if t.recurrence_type != RecurrenceType.NONE]
        finally:
            conn.close()

    # ---- async API (TaskRepo) ----

    async def get_children(self, root_id: int) -> list[Task]:
        return await asyncio.to_thread(self._get_children_sync, root_id)

    async def get_by_id(self, task_id: int) -> Task | None:
        return await asyncio.to_thread(self._get_by_id_sync, task_id)

    async def insert(self, task: Task) -> int:
        return await asyncio.to_thread(self._insert_sync, task)

    async def update(self, task: Task) -> None:
        await asyncio.to_thread(self._update_sync, task)

    async def delete(self, task: Task) -> None:
        await asyncio.to_thread(self._delete_sync, task)

    async def list_recurring_roots(self) -> list[Task]:
        return await asyncio.to_thread(self._list_recurring_roots_sync)
