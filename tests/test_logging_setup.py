# tests/test_logging_setup.py

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from taskboard.logging_setup import setup_logging


@pytest.fixture()
def restore_root_logging():
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    nio_level = logging.getLogger("nio").level
    yield
    for h in list(root.handlers):
        root.removeHandler(h)
        h.close()
    for h in handlers:
        root.addHandler(h)
    root.setLevel(level)
    logging.getLogger("nio").setLevel(nio_level)
    logging.captureWarnings(False)


def test_task_history_goes_to_audit_file(tmp_path: Path, restore_root_logging) -> None:
    log_dir = setup_logging(log_dir=tmp_path / "logs", console_level=logging.WARNING)

    logging.getLogger("taskboard.tasks.lifecycle").info("Task abc created")
    logging.getLogger("taskboard.tasks.sweep").debug("sweep detail")
    logging.getLogger("taskboard.cli.commands").info("command ran")
    for h in logging.getLogger().handlers:
        h.flush()

    audit = (log_dir / "tasks.log").read_text("utf-8")
    full = (log_dir / "taskboard.log").read_text("utf-8")

    assert "Task abc created" in audit
    assert "sweep detail" not in audit
    assert "command ran" not in audit
    assert "sweep detail" in full and "command ran" in full
    assert logging.getLogger("nio").level == logging.WARNING
