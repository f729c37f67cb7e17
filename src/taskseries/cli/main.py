# src/taskseries/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState, then runs the series refresh scheduler
until SIGINT/SIGTERM.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import signal

from ..cli.bootstrap import create_initial_state
from ..config import get_settings
from ..core.state import AppState
from ..logging_setup import setup_logging
from ..tasks.task_scheduler import run_recurrence_scheduler

logger = logging.getLogger(__name__)


async def _run(state: AppState) -> None:
    settings = state.settings
    stop = asyncio.Event()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        # Some platforms do not support signal handlers on the loop.
        with contextlib.suppress(NotImplementedError, RuntimeError):
            loop.add_signal_handler(sig, stop.set)

    logger.info(
        "Scheduler running every %.0fs (first pass in %.0fs). Press Ctrl+C to stop.",
        settings.refresh_interval_seconds,
        settings.initial_delay_seconds,
    )
    await run_recurrence_scheduler(
        state.task_store,
        state.engine,
        interval_seconds=settings.refresh_interval_seconds,
        initial_delay_seconds=settings.initial_delay_seconds,
        window_days=settings.window_days,
        stop=stop,
    )


def main() -> None:
    settings = get_settings()

    # choose console log level from settings.log_level
    level_name = str(getattr(settings, "log_level", "INFO")).upper()
    console_level = getattr(logging, level_name, logging.INFO)

    setup_logging(log_dir=settings.data_dir, console_level=console_level)

    logger.info("Starting %s...", settings.app_name)

    # IMPORTANT: reuse same settings object
    state = create_initial_state(settings=settings)

    try:
        asyncio.run(_run(state))
    except KeyboardInterrupt:
        logger.info("Interrupted.")
    finally:
        # TaskStore uses short-lived sqlite connections per call; close() is a hook.
        try:
            store = getattr(state, "task_store", None)
            if store is not None and hasattr(store, "close"):
                store.close()
        except Exception:
            logger.debug("Task store close failed.", exc_info=True)
        logger.info("Bye.")


if __name__ == "__main__":
    main()
