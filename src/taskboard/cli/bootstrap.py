# src/taskboard/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires the TaskStore into AppState,
- builds the LifecycleEngine once a connector provides a Messenger.
"""

from __future__ import annotations

import logging

from ..config import get_settings
from ..core.ports import Messenger
from ..core.state import AppState
from ..tasks.lifecycle import LifecycleEngine
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

    return AppState(
        settings=settings,
        task_store=TaskStore(settings.tasks_db_path),
    )


def attach_engine(state: AppState, messenger: Messenger) -> LifecycleEngine:
    """Build the engine for the active connector and publish it on the state."""
    archive_channel_id = getattr(state.settings, "archive_channel_id", None)
    if not archive_channel_id:
        logger.warning("No archive channel configured (TASKBOARD_ARCHIVE_CHANNEL); archiving will fail.")

    engine = LifecycleEngine(messenger, state.task_store, archive_channel_id=archive_channel_id)
    state.engine = engine
    return engine
