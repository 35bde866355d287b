# src/taskboard/core/state.py

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from ..tasks.lifecycle import LifecycleEngine
from .ports import TaskRepo


@dataclass
class AppState:
    """
    Shared application state.

    `engine` is attached by the active connector once its Messenger exists;
    commands that need it must check for None.
    """

    settings: Any
    task_store: TaskRepo
    engine: LifecycleEngine | None = None
