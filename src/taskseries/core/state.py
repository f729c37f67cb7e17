# src/taskseries/core/state.py

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from ..tasks.recurrence import RecurrenceEngine
from .ports import TaskRepo


@dataclass
class AppState:
    # Store Settings on the state for easy access in other modules later.
    settings: Any

    task_store: TaskRepo
    engine: RecurrenceEngine
