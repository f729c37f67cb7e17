# tests/test_config.py

from __future__ import annotations

from pathlib import Path

import pytest

from taskseries.cli.bootstrap import create_initial_state
from taskseries.config import Settings


@pytest.fixture()
def clean_env(monkeypatch: pytest.MonkeyPatch) -> pytest.MonkeyPatch:
    for name in (
        "APP_NAME",
        "LOG_LEVEL",
        "DATA_DIR",
        "TASKS_DB_PATH",
        "WINDOW_DAYS",
        "REFILL_THRESHOLD_DAYS",
        "REFRESH_INTERVAL_SECONDS",
        "INITIAL_DELAY_SECONDS",
    ):
        monkeypatch.delenv(f"TASKSERIES_{name}", raising=False)
    return monkeypatch


def test_defaults(clean_env: pytest.MonkeyPatch) -> None:
    s = Settings.from_env()

    assert s.app_name == "taskseries"
    assert s.window_days == 90
    assert s.refill_threshold_days == 30
    assert s.refresh_interval_seconds == 86400.0
    assert s.initial_delay_seconds == 3600.0
    assert s.tasks_db_path == Path(".local/taskseries") / "tasks.sqlite3"


def test_env_overrides(clean_env: pytest.MonkeyPatch, tmp_path: Path) -> None:
    clean_env.setenv("TASKSERIES_DATA_DIR", str(tmp_path))
    clean_env.setenv("TASKSERIES_WINDOW_DAYS", "120")
    clean_env.setenv("TASKSERIES_REFILL_THRESHOLD_DAYS", "45")
    clean_env.setenv("TASKSERIES_REFRESH_INTERVAL_SECONDS", "600")

    s = Settings.from_env()

    assert s.data_dir == tmp_path
    assert s.tasks_db_path == tmp_path / "tasks.sqlite3"
    assert (s.window_days, s.refill_threshold_days) == (120, 45)
    assert s.refresh_interval_seconds == 600.0


def test_malformed_and_out_of_range_values(clean_env: pytest.MonkeyPatch) -> None:
    clean_env.setenv("TASKSERIES_WINDOW_DAYS", "ninety")
    clean_env.setenv("TASKSERIES_REFILL_THRESHOLD_DAYS", "-5")
    clean_env.setenv("TASKSERIES_INITIAL_DELAY_SECONDS", "soon")

    s = Settings.from_env()

    assert s.window_days == 90
    assert s.refill_threshold_days == 0
    assert s.initial_delay_seconds == 3600.0


def test_bootstrap_wires_store_and_engine(settings) -> None:
    state = create_initial_state(settings=settings)

    assert settings.tasks_db_path.exists()
    assert state.engine.window_days == settings.window_days
    assert state.engine.refill_threshold_days == settings.refill_threshold_days
    assert state.task_store.count_tasks() == 0


def test_setup_logging_writes_log_file(tmp_path: Path) -> None:
    import logging

    from taskseries.logging_setup import setup_logging

    root = logging.getLogger()
    saved = list(root.handlers), root.level
    try:
        setup_logging(log_dir=tmp_path / "logs")
        logging.getLogger("taskseries.tests").info("hello from the test")
        for h in root.handlers:
            h.flush()
        assert "hello from the test" in (tmp_path / "logs" / "taskseries.log").read_text("utf-8")
    finally:
        for h in list(root.handlers):
            root.removeHandler(h)
            h.close()
        for h in saved[0]:
            root.addHandler(h)
        root.setLevel(saved[1])
        logging.captureWarnings(False)


def test_console_filter_keeps_service_logs_and_drops_noise() -> None:
    import logging

    from taskseries.logging_setup import _ConsoleNoiseFilter

    def record(name: str, level: int) -> logging.LogRecord:
        return logging.LogRecord(name, level, __file__, 1, "msg", None, None)

    f = _ConsoleNoiseFilter()
    assert f.filter(record("taskseries.tasks.recurrence", logging.DEBUG))
    assert not f.filter(record("taskseries.tasks.task_store", logging.DEBUG))
    assert f.filter(record("taskseries.tasks.task_store", logging.WARNING))
    assert not f.filter(record("asyncio", logging.WARNING))
    assert f.filter(record("asyncio", logging.ERROR))
    assert not f.filter(record("py.warnings", logging.WARNING))
    assert not f.filter(record("urllib3", logging.INFO))
