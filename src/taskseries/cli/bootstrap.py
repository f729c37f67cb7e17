# src/taskseries/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires the SQLite store and the recurrence engine into AppState.
"""

from __future__ import annotations

import logging

from ..config import get_settings
from ..core.state import AppState
from ..tasks.recurrence import RecurrenceEngine
from ..tasks.task_store import TaskStore

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.tasks_db_path.parent.mkdir(parents=True, exist_ok=True)


def create_initial_state(*, settings=None) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings injectable makes the app easier to test and avoids hidden global config reads.
    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    task_store = TaskStore(settings.tasks_db_path)
    engine = RecurrenceEngine(
        task_store,
        window_days=settings.window_days,
        refill_threshold_days=settings.refill_threshold_days,
    )
    logger.debug(
        "Engine ready window_days=%d refill_threshold_days=%d",
        engine.window_days,
        engine.refill_threshold_days,
    )
    return AppState(settings=settings, task_store=task_store, engine=engine)
