# src/taskboard/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState, then starts one chat connector in a
background thread (Matrix if enabled, otherwise the in-memory console board)
and the console REPL in the main thread (optional).
"""

from __future__ import annotations

import logging
import signal
import threading

from ..cli.bootstrap import create_initial_state
from ..config import get_settings
from ..connectors.console_connector import (
    CONSOLE_CHANNEL,
    ConsoleMessenger,
    console_channels,
    run_console_board,
    run_console_loop,
)
from ..connectors.runner import start_in_background
from ..logging_setup import setup_logging

logger = logging.getLogger(__name__)


def _shutdown(state) -> None:
    """Best-effort final flush (no exceptions should escape)."""
    try:
        state.task_store.save_all()
    except Exception:
        logger.exception("Failed to save tasks on shutdown.")


def main() -> None:
    settings = get_settings()

    level_name = str(getattr(settings, "log_level", "INFO")).upper()
    console_level = getattr(logging, level_name, logging.INFO)
    log_dir = setup_logging(log_dir=settings.data_dir, console_level=console_level)

    logger.info("Starting %s (logs in %s)...", settings.app_name, log_dir)

    state = create_initial_state(settings=settings)

    messenger: ConsoleMessenger | None = None
    if settings.matrix_enabled:
        from ..connectors.matrix_connector import run_matrix_bot

        runner = start_in_background("matrix", lambda stop: run_matrix_bot(state, stop))
        repl_room = settings.default_channel_id
    else:
        messenger = ConsoleMessenger(console_channels(settings))
        board = messenger
        runner = start_in_background("console", lambda stop: run_console_board(state, board, stop))
        repl_room = CONSOLE_CHANNEL

    if runner is None:
        logger.error("Connector did not start; exiting.")
        return

    stop_main = threading.Event()

    def _handle_signal(signum, _frame) -> None:
        logger.info("Signal %s received, shutting down...", signum)
        stop_main.set()

    if not settings.console_enabled:
        # With the REPL running, Ctrl+C reaches input() as KeyboardInterrupt instead.
        try:
            signal.signal(signal.SIGINT, _handle_signal)
            signal.signal(signal.SIGTERM, _handle_signal)
        except (ValueError, OSError, AttributeError):
            # Some platforms may not support SIGTERM, etc.
            pass

    try:
        if settings.console_enabled:
            run_console_loop(state, runner, messenger=messenger, room_id=repl_room)
            stop_main.set()
        else:
            logger.info("Console disabled. Running the connector only. Press Ctrl+C to stop.")
            stop_main.wait()

    finally:
        runner.stop()
        runner.join(timeout=10.0)
        _shutdown(state)
        logger.info("Bye.")


if __name__ == "__main__":
    main()
