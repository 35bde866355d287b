# src/taskboard/tasks/task_models.py

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum


class TaskState(StrEnum):
    """Task lifecycle state. Values are what the store persists."""

    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    ARCHIVED = "archived"  # terminal

    @classmethod
    def from_db(cls, raw: str | None) -> TaskState:
        if not raw:
            return cls.NOT_STARTED
        try:
            return cls(raw)
        except ValueError:
            return cls.NOT_STARTED


class Trigger(StrEnum):
    """What a pressed control asks the lifecycle engine to do."""

    START = "start"
    COMPLETE = "complete"
    ARCHIVE = "archive"
    CANCEL = "cancel"


class ControlAction(StrEnum):
    """Which of the two controls on a task message was pressed."""

    PRIMARY = "primary"
    CANCEL = "cancel"


@dataclass(slots=True)
class Task:
    id: str
    description: str
    assignee: str
    created_at: float
    deadline: float
    state: TaskState

    # Where the task is currently rendered. message_id is None until the
    # first message has been sent.
    channel_id: str
    message_id: str | None = None
