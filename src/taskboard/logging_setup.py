# src/taskboard/logging_setup.py

from __future__ import annotations

import logging
import sys
from collections.abc import Iterable
from pathlib import Path

LOG_FORMAT = "%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Loggers whose INFO records form the task history (created, moved, pruned, ...).
AUDIT_LOGGERS = ("taskboard.tasks.lifecycle", "taskboard.tasks.sweep")

# Chat libraries are verbose at DEBUG; their own level is raised to at least this.
NOISY_LIBRARIES: dict[str, int] = {
    "nio": logging.INFO,
    "aiohttp": logging.WARNING,
}


class _ConsoleNoiseFilter(logging.Filter):
    """
    The console board prints task cards to the same terminal, so:
    - taskboard records pass, Matrix connector internals only from WARNING,
    - everything else (py.warnings, libraries) only from ERROR.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        name = record.name
        if not name.startswith("taskboard."):
            return record.levelno >= logging.ERROR
        if name.startswith("taskboard.connectors.matrix_"):
            return record.levelno >= logging.WARNING
        return True


class _AuditFilter(logging.Filter):
    def __init__(self, prefixes: Iterable[str]) -> None:
        super().__init__()
        self._prefixes = tuple(prefixes)

    def filter(self, record: logging.LogRecord) -> bool:
        return record.name.startswith(self._prefixes)


def _handler(handler: logging.Handler, level: int, *filters: logging.Filter) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT))
    for f in filters:
        handler.addFilter(f)
    return handler


def setup_logging(
    *,
    log_dir: str | Path = ".local/taskboard",
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
) -> Path:
    """
    Install three handlers on the root logger:

    - stderr: filtered for interactive use,
    - taskboard.log: everything at `file_level`,
    - tasks.log: INFO+ from the lifecycle engine and the sweep only,
      a plain history of what happened to which task.

    Replaces any handlers installed earlier. Returns the log directory.
    """
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    for h in list(root.handlers):
        root.removeHandler(h)
        h.close()

    root.addHandler(_handler(logging.StreamHandler(sys.stderr), console_level, _ConsoleNoiseFilter()))
    root.addHandler(
        _handler(logging.FileHandler(str(log_dir / "taskboard.log"), encoding="utf-8"), file_level)
    )
    root.addHandler(
        _handler(
            logging.FileHandler(str(log_dir / "tasks.log"), encoding="utf-8"),
            logging.INFO,
            _AuditFilter(AUDIT_LOGGERS),
        )
    )

    for name, floor in NOISY_LIBRARIES.items():
        logging.getLogger(name).setLevel(max(console_level, floor))

    logging.captureWarnings(True)
    return log_dir
