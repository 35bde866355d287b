# src/taskboard/tasks/presentation.py

from __future__ import annotations

"""
Presentation builder.

Pure function of (task snapshot, now) -> what a task message should look like:
- embed content (title, body, fields, colour, footer),
- the interactive controls (None for archived tasks, which are read-only).

No I/O happens here. Connectors decide how an Embed and its Controls are
drawn on a specific transport.
"""

import time
from dataclasses import dataclass
from enum import Enum, StrEnum

from ..core.errors import InvalidTransition
from .task_models import ControlAction, Task, TaskState, Trigger
from .timefmt import format_short_date, relative_marker

WARNING_WINDOW_SECONDS = 24 * 3600

PRIMARY_KEY_PREFIX = "state_"
CANCEL_KEY_PREFIX = "delete_"

# RGB accents.
COLOR_CRITICAL = 0x000000
COLOR_WARNING = 0xCC0000
COLOR_NOT_STARTED = 0x979C9F
COLOR_IN_PROGRESS = 0xE67E22
COLOR_COMPLETED = 0x2ECC71
COLOR_ARCHIVED = 0x9B59B6


class Urgency(Enum):
    NORMAL = "normal"
    WARNING = "warning"
    CRITICAL = "critical"


class ButtonStyle(StrEnum):
    PRIMARY = "primary"
    SECONDARY = "secondary"
    SUCCESS = "success"
    DANGER = "danger"


_URGENCY_STYLE: dict[Urgency, tuple[str, int | None]] = {
    Urgency.NORMAL: ("", None),
    Urgency.WARNING: ("❗ ", COLOR_WARNING),
    Urgency.CRITICAL: ("💀 ", COLOR_CRITICAL),
}


@dataclass(slots=True, frozen=True)
class _StateStyle:
    label: str
    color: int
    follows_urgency: bool
    # (label, style, trigger) of the primary control; None for read-only states
    action: tuple[str, ButtonStyle, Trigger] | None = None


_STATE_STYLE: dict[TaskState, _StateStyle] = {
    TaskState.NOT_STARTED: _StateStyle(
        label="Not Started",
        color=COLOR_NOT_STARTED,
        follows_urgency=True,
        action=("Start", ButtonStyle.SECONDARY, Trigger.START),
    ),
    TaskState.IN_PROGRESS: _StateStyle(
        label="In Progress",
        color=COLOR_IN_PROGRESS,
        follows_urgency=True,
        action=("Complete", ButtonStyle.PRIMARY, Trigger.COMPLETE),
    ),
    TaskState.COMPLETED: _StateStyle(
        label="Completed",
        color=COLOR_COMPLETED,
        follows_urgency=False,
        action=("Archive", ButtonStyle.SUCCESS, Trigger.ARCHIVE),
    ),
    TaskState.ARCHIVED: _StateStyle(
        label="Archived",
        color=COLOR_ARCHIVED,
        follows_urgency=False,
    ),
}


@dataclass(slots=True, frozen=True)
class EmbedField:
    name: str
    value: str
    inline: bool = False


@dataclass(slots=True, frozen=True)
class Embed:
    title: str
    description: str
    fields: tuple[EmbedField, ...]
    color: int
    footer: str


@dataclass(slots=True, frozen=True)
class Control:
    """
    One interactive control on a task message.

    `trigger` is fixed here, at render time; the lifecycle engine applies it
    directly instead of decoding it back out of `key`.
    """

    key: str
    label: str
    style: ButtonStyle
    action: ControlAction
    trigger: Trigger


@dataclass(slots=True, frozen=True)
class RenderedTask:
    embed: Embed
    controls: tuple[Control, ...] | None
    urgency: Urgency

    def control_for(self, action: ControlAction) -> Control | None:
        for c in self.controls or ():
            if c.action == action:
                return c
        return None


def classify_urgency(deadline: float, now: float) -> Urgency:
    remaining = deadline - now
    if remaining < 0:
        return Urgency.CRITICAL
    if remaining <= WARNING_WINDOW_SECONDS:
        return Urgency.WARNING
    return Urgency.NORMAL


def primary_key(task_id: str) -> str:
    return f"{PRIMARY_KEY_PREFIX}{task_id}"


def cancel_key(task_id: str) -> str:
    return f"{CANCEL_KEY_PREFIX}{task_id}"


def parse_control_key(key: str) -> tuple[str, ControlAction]:
    """Map a control key back to (task_id, action) for connectors that only get the key."""
    for prefix, action in (
        (PRIMARY_KEY_PREFIX, ControlAction.PRIMARY),
        (CANCEL_KEY_PREFIX, ControlAction.CANCEL),
    ):
        if key.startswith(prefix) and len(key) > len(prefix):
            return key[len(prefix):], action
    raise InvalidTransition(f"Unknown control: {key!r}")


def mention(user_ref: str) -> str:
    return f"<@{user_ref}>"


def render(task: Task, now: float | None = None) -> RenderedTask:
    if now is None:
        now = time.time()

    style = _STATE_STYLE[task.state]
    # Completed/Archived styling is fixed; they always report NORMAL.
    urgency = classify_urgency(task.deadline, now) if style.follows_urgency else Urgency.NORMAL

    marker = ""
    color = style.color
    if style.follows_urgency:
        urgency_marker, urgency_color = _URGENCY_STYLE[urgency]
        marker = urgency_marker
        if urgency_color is not None:
            color = urgency_color

    embed = Embed(
        title=f"{marker}Task",
        description=task.description,
        fields=(
            EmbedField("Assigned To", mention(task.assignee), inline=True),
            EmbedField("Deadline", relative_marker(task.deadline), inline=True),
            EmbedField("Status", style.label, inline=True),
        ),
        color=color,
        footer=f"Created on: {format_short_date(task.created_at)}",
    )

    if style.action is None:
        return RenderedTask(embed=embed, controls=None, urgency=urgency)

    label, button_style, trigger = style.action
    controls = (
        Control(
            key=primary_key(task.id),
            label=label,
            style=button_style,
            action=ControlAction.PRIMARY,
            trigger=trigger,
        ),
        Control(
            key=cancel_key(task.id),
            label="Cancel",
            style=ButtonStyle.DANGER,
            action=ControlAction.CANCEL,
            trigger=Trigger.CANCEL,
        ),
    )
    return RenderedTask(embed=embed, controls=controls, urgency=urgency)
