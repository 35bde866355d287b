# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from taskboard.core.state import AppState
from taskboard.tasks.lifecycle import LifecycleEngine
from taskboard.tasks.task_store import TaskStore

from .fakes import FakeClock, FakeMessenger

HOUR = 3600.0


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with AppState and the connectors.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated and deterministic.
    """
    return SimpleNamespace(
        data_dir=tmp_path,
        tasks_db_path=tmp_path / "tasks.sqlite3",
        archive_channel_id="archive",
        default_channel_id=None,
        sweep_interval_hours=24.0,
        sweep_on_start=False,
    )


@pytest.fixture()
def store(settings: SimpleNamespace) -> TaskStore:
    return TaskStore(settings.tasks_db_path)


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def messenger() -> FakeMessenger:
    return FakeMessenger()


@pytest.fixture()
def engine(messenger: FakeMessenger, store: TaskStore, clock: FakeClock) -> LifecycleEngine:
    return LifecycleEngine(messenger, store, archive_channel_id="archive", clock=clock)


@pytest.fixture()
def state(settings: SimpleNamespace, store: TaskStore, engine: LifecycleEngine) -> AppState:
    """
    AppState wired with the fake messenger.

    NOTE: We keep the real SQLite TaskStore here because its correctness is
    part of what we want to test.
    """
    return AppState(settings=settings, task_store=store, engine=engine)
