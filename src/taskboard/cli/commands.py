# src/taskboard/cli/commands.py

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Awaitable, Callable

from ..core.errors import TaskBotError
from ..core.state import AppState
from ..tasks.task_models import ControlAction, Task, TaskState
from ..tasks.timefmt import humanize_relative, parse_deadline

CommandHandler = Callable[[AppState, list[str], str | None, str | None], Awaitable[str]]

logger = logging.getLogger(__name__)

# Text aliases for the two controls. Named aliases also pin the state the
# user expects the task to be in, so a repeated "/press x start" cannot
# complete the task by accident.
_PRESS_ALIASES: dict[str, tuple[ControlAction, TaskState | None]] = {
    "primary": (ControlAction.PRIMARY, None),
    "start": (ControlAction.PRIMARY, TaskState.NOT_STARTED),
    "complete": (ControlAction.PRIMARY, TaskState.IN_PROGRESS),
    "archive": (ControlAction.PRIMARY, TaskState.COMPLETED),
    "cancel": (ControlAction.CANCEL, None),
}

_MIN_ID_PREFIX = 4


class CommandRegistry:
    """Simple slash-command registry used by connectors (/help, /task, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    async def handle(
        self,
        state: AppState,
        line: str,
        user_id: str | None = None,
        room_id: str | None = None,
    ) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        return await handler(state, args, user_id, room_id)

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


class _CollectingContext:
    """ReplyContext for text commands: notices become part of the command reply."""

    def __init__(self) -> None:
        self.notices: list[str] = []

    async def notify(self, text: str) -> None:
        self.notices.append(text)


def short_id(task: Task) -> str:
    return task.id[:8]


def resolve_task_ref(state: AppState, ref: str) -> Task | None:
    """Find a task by full id or a unique id prefix."""
    ref = (ref or "").strip().lower()
    if len(ref) < _MIN_ID_PREFIX:
        return None
    matches = [t for tid, t in state.task_store.all().items() if tid.startswith(ref)]
    return matches[0] if len(matches) == 1 else None


async def cmd_help(state: AppState, args: list[str], user_id: str | None, room_id: str | None) -> str:
    return registry.build_help()


async def cmd_status(state: AppState, args: list[str], user_id: str | None, room_id: str | None) -> str:
    tasks = state.task_store.all()
    counts = Counter(t.state for t in tasks.values())
    archive = getattr(state.settings, "archive_channel_id", None) or "(not configured)"
    lines = [
        "Status:",
        f"  Connector attached: {'yes' if state.engine is not None else 'no'}",
        f"  Archive channel: {archive}",
        f"  Tasks: {len(tasks)}",
    ]
    for st in TaskState:
        lines.append(f"    {st.value}: {counts.get(st, 0)}")
    return "\n".join(lines)


async def cmd_task(state: AppState, args: list[str], user_id: str | None, room_id: str | None) -> str:
    """
    /task <deadline> [@assignee] <description...>

    deadline: 90m | 48h | 3d | 2w | 2026-10-21 | 2026-10-21T18:00
    """
    usage = "Usage: /task <deadline> [@assignee] <description>  (deadline: 48h, 3d, 2026-10-21)"
    if state.engine is None:
        return "No chat connector is attached; cannot create tasks."
    if len(args) < 2:
        return usage

    try:
        deadline = parse_deadline(args[0], now=state.engine.now())
    except ValueError as e:
        return f"{e}\n{usage}"

    rest = args[1:]
    assignee = user_id or "unknown"
    if rest[0].startswith("@") and len(rest) > 1:
        assignee = rest[0].lstrip("@") if ":" not in rest[0] else rest[0]
        rest = rest[1:]

    channel_id = room_id or getattr(state.settings, "default_channel_id", None)
    if not channel_id:
        return "No channel to post the task in (set TASKBOARD_DEFAULT_CHANNEL)."

    try:
        task = await state.engine.on_create_command(
            description=" ".join(rest),
            assignee=assignee,
            deadline=deadline,
            channel_id=channel_id,
        )
    except ValueError as e:
        return f"{e}\n{usage}"
    except TaskBotError as e:
        logger.warning("Task creation failed (user=%s room=%s): %s", user_id, room_id, e)
        return f"Failed to create task: {e}"

    return f"Task {short_id(task)} created."


async def cmd_tasks(state: AppState, args: list[str], user_id: str | None, room_id: str | None) -> str:
    """
    /tasks      -> tasks shown in this channel
    /tasks all  -> every tracked task
    """
    show_all = bool(args) and args[0].lower() == "all"
    now = state.engine.now() if state.engine is not None else None

    tasks = [
        t
        for t in state.task_store.all().values()
        if show_all or room_id is None or t.channel_id == room_id
    ]
    if not tasks:
        return "No tasks."

    tasks.sort(key=lambda t: t.deadline)
    lines = ["Tasks:"]
    for t in tasks:
        due = humanize_relative(t.deadline, now)
        lines.append(f"  {short_id(t)}  {t.state.value:<11}  due {due:<16}  {t.description}")
    return "\n".join(lines)


async def cmd_press(state: AppState, args: list[str], user_id: str | None, room_id: str | None) -> str:
    """
    /press <task> <start|complete|archive|cancel|primary>

    Text equivalent of pressing a control on a task message.
    """
    usage = "Usage: /press <task-id> <start|complete|archive|cancel>"
    if state.engine is None:
        return "No chat connector is attached."
    if len(args) < 2:
        return usage

    alias = _PRESS_ALIASES.get(args[1].lower())
    if alias is None:
        return usage
    action, expected_state = alias

    task = resolve_task_ref(state, args[0])
    if task is None:
        return f"No single task matches {args[0]!r}."

    ctx = _CollectingContext()
    result = await state.engine.on_button_press(task.id, action, ctx, expected_state=expected_state)
    if ctx.notices:
        return "\n".join(ctx.notices)
    if result is None:
        return f"Task {short_id(task)} cancelled."
    return f"Task {short_id(task)} is now {result.state.value}."


async def cmd_sweep(state: AppState, args: list[str], user_id: str | None, room_id: str | None) -> str:
    if state.engine is None:
        return "No chat connector is attached."
    report = await state.engine.run_daily_sweep()
    return (
        f"Sweep done: refreshed={len(report.refreshed)} "
        f"removed={len(report.removed)} failed={len(report.failed)}"
    )


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("status", cmd_status, help_text="Show task counts and configuration.")
registry.register(
    "task", cmd_task, help_text="Create a task: /task <deadline> [@assignee] <description>."
)
registry.register("tasks", cmd_tasks, help_text="List tasks: /tasks | /tasks all.")
registry.register(
    "press", cmd_press, help_text="Press a task control: /press <id> start|complete|archive|cancel."
)
registry.register("sweep", cmd_sweep, help_text="Re-render all task messages and prune deleted ones.")
