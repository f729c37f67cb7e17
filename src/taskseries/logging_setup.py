# src/taskseries/logging_setup.py

from __future__ import annotations

import logging
import sys
from pathlib import Path

# The store logs a line per row written; on the console only its problems show,
# even when the console runs at DEBUG.
_QUIET_LOGGERS = ("taskseries.tasks.task_store",)


class _ConsoleNoiseFilter(logging.Filter):
    """
    Console view of a running scheduler.

    Shows what the service did (series generated, deleted, pass summaries)
    and any problem. Store-level debug lines, asyncio slow-callback reports
    and captured warnings stay in the log file.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        name = record.name

        if name.startswith(_QUIET_LOGGERS):
            return record.levelno >= logging.WARNING
        if name.startswith("taskseries."):
            return True

        # asyncio reports slow callbacks at WARNING when the loop runs in debug mode.
        if name == "asyncio":
            return record.levelno >= logging.ERROR

        if name == "py.warnings":
            return record.levelno >= logging.ERROR

        return record.levelno >= logging.WARNING


def setup_logging(
    *,
    log_dir: str | Path = ".local/taskseries",
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
) -> None:
    """
    Send records to stderr (filtered) and to <log_dir>/taskseries.log (everything
    at file_level and above). Replaces handlers already on the root logger, so
    calling it again does not duplicate output.
    """
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / "taskseries.log"

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)

    for h in list(root.handlers):
        root.removeHandler(h)

    fmt = logging.Formatter(
        fmt="%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    ch = logging.StreamHandler(sys.stderr)
    ch.setLevel(console_level)
    ch.setFormatter(fmt)
    ch.addFilter(_ConsoleNoiseFilter())
    root.addHandler(ch)

    fh = logging.FileHandler(str(log_file), encoding="utf-8")
    fh.setLevel(file_level)
    fh.setFormatter(fmt)
    root.addHandler(fh)

    # warnings.warn() lands in the file via the "py.warnings" logger.
    logging.captureWarnings(True)
