# src/taskboard/tasks/lifecycle.py

from __future__ import annotations

"""
Task lifecycle engine.

Owns the state machine and every side effect on the chat backend:

    not_started --start--> in_progress --complete--> completed --archive--> archived

Cancel (from any non-archived state) deletes the message and the record.

The engine never retries. Transport failures propagate to the entry point,
which reports them to the user who pressed the control.
"""

import asyncio
import logging
import time
import uuid
from collections.abc import Callable
from dataclasses import replace

from ..core.errors import ConfigurationError, InvalidTransition, NotFoundError, TaskBotError
from ..core.ports import Messenger, ReplyContext, TaskRepo
from .presentation import RenderedTask, render
from .sweep import SweepReport, run_sweep
from .task_models import ControlAction, Task, TaskState, Trigger

logger = logging.getLogger(__name__)

TRANSITIONS: dict[tuple[TaskState, Trigger], TaskState] = {
    (TaskState.NOT_STARTED, Trigger.START): TaskState.IN_PROGRESS,
    (TaskState.IN_PROGRESS, Trigger.COMPLETE): TaskState.COMPLETED,
    (TaskState.COMPLETED, Trigger.ARCHIVE): TaskState.ARCHIVED,
}

CANCELLABLE_STATES = frozenset({TaskState.NOT_STARTED, TaskState.IN_PROGRESS, TaskState.COMPLETED})


def next_state(state: TaskState, trigger: Trigger) -> TaskState:
    try:
        return TRANSITIONS[(state, trigger)]
    except KeyError:
        raise InvalidTransition(f"Cannot {trigger.value} a task that is {state.value}.") from None


class LifecycleEngine:
    def __init__(
            self,
            messenger: Messenger,
            task_store: TaskRepo,
            *,
            archive_channel_id: str | None,
            clock: Callable[[], float] = time.time,
    ) -> None:
        self._messenger = messenger
        self._store = task_store
        self._archive_channel_id = (archive_channel_id or "").strip() or None
        self._clock = clock
        self._locks: dict[str, asyncio.Lock] = {}

    @property
    def messenger(self) -> Messenger:
        return self._messenger

    @property
    def task_store(self) -> TaskRepo:
        return self._store

    def now(self) -> float:
        return self._clock()

    def render(self, task: Task) -> RenderedTask:
        return render(task, self._clock())

    def lock_for(self, task_id: str) -> asyncio.Lock:
        """Per-task lock; every state-changing path holds it for its whole duration."""
        lock = self._locks.get(task_id)
        if lock is None:
            lock = self._locks[task_id] = asyncio.Lock()
        return lock

    def forget_lock(self, task_id: str) -> None:
        lock = self._locks.get(task_id)
        if lock is not None and not lock.locked():
            del self._locks[task_id]

    # ---- operations ----

    async def create_representation(self, task: Task) -> Task:
        """Send the first message for `task` and persist it. Nothing is saved if sending fails."""
        rendered = self.render(task)
        message_id = await self._messenger.send_message(task.channel_id, rendered.embed, rendered.controls)
        created = replace(task, message_id=message_id)
        self._store.save(created)
        logger.info("Task %s created (channel=%s message=%s)", created.id, created.channel_id, message_id)
        return created

    async def refresh(self, task: Task) -> None:
        """Re-render `task` into its existing message."""
        if not task.message_id:
            raise NotFoundError(f"Task {task.id} has no message.")
        rendered = self.render(task)
        await self._messenger.edit_message(task.channel_id, task.message_id, rendered.embed, rendered.controls)

    async def advance(self, task: Task, trigger: Trigger) -> Task:
        """
        Apply one transition and edit the existing message in place.

        Returns the new snapshot. On any failure the stored record is untouched.
        """
        target = next_state(task.state, trigger)

        if target == TaskState.ARCHIVED:
            return await self.archive_move(task)

        advanced = replace(task, state=target)
        await self.refresh(advanced)
        self._store.save(advanced)
        logger.info("Task %s %s -> %s", task.id, task.state.value, target.value)
        return advanced

    async def archive_move(self, task: Task) -> Task:
        """
        Move a completed task's message into the archive channel.

        Order matters:
        1. render archived content (no controls)
        2. resolve the archive channel; failure here changes nothing
        3. delete the old message (already gone is fine)
        4. send the archived message
        5. record the new location and persist
        """
        if task.state != TaskState.COMPLETED:
            raise InvalidTransition(f"Only completed tasks can be archived (task is {task.state.value}).")

        archived = replace(task, state=TaskState.ARCHIVED)
        rendered = self.render(archived)

        if self._archive_channel_id is None:
            raise ConfigurationError("Archive channel not found (no archive channel is configured).")
        try:
            archive_channel = await self._messenger.resolve_channel(self._archive_channel_id)
        except NotFoundError:
            raise ConfigurationError("Archive channel not found.") from None

        if task.message_id:
            try:
                await self._messenger.delete_message(task.channel_id, task.message_id)
            except NotFoundError:
                logger.info("Task %s: old message %s already gone", task.id, task.message_id)

        new_message_id = await self._messenger.send_message(archive_channel, rendered.embed, rendered.controls)

        archived.channel_id = archive_channel
        archived.message_id = new_message_id
        self._store.save(archived)
        logger.info("Task %s archived (channel=%s message=%s)", task.id, archive_channel, new_message_id)
        return archived

    async def cancel(self, task: Task) -> None:
        """Delete the task's message and its record."""
        if task.state not in CANCELLABLE_STATES:
            raise InvalidTransition(f"Cannot cancel a task that is {task.state.value}.")

        if task.message_id:
            try:
                await self._messenger.delete_message(task.channel_id, task.message_id)
            except NotFoundError:
                logger.info("Task %s: message %s already gone", task.id, task.message_id)

        self._store.remove(task.id)
        self._store.save_all()
        logger.info("Task %s cancelled", task.id)

    # ---- entry points for the routing layer ----

    async def on_create_command(
            self,
            *,
            description: str,
            assignee: str,
            deadline: float,
            channel_id: str,
    ) -> Task:
        description = (description or "").strip()
        if not description:
            raise ValueError("description is required")
        if not channel_id:
            raise ValueError("channel_id is required")

        task = Task(
            id=uuid.uuid4().hex,
            description=description,
            assignee=assignee,
            created_at=self._clock(),
            deadline=float(deadline),
            state=TaskState.NOT_STARTED,
            channel_id=channel_id,
        )
        return await self.create_representation(task)

    async def on_button_press(
            self,
            task_id: str,
            action: ControlAction | str,
            context: ReplyContext,
            *,
            expected_state: TaskState | None = None,
    ) -> Task | None:
        """
        Handle a pressed control.

        The trigger comes from the control the current render exposes for
        `action`, so a press can only ever do what the message offers.
        `expected_state`, when given, is the state the presser saw; a mismatch
        means the message was stale and the press is rejected.

        Returns the new snapshot, or None if the task is gone or the press failed.
        Failures are never raised: they are logged and shown to the presser.
        """
        async with self.lock_for(task_id):
            try:
                task = self._store.get(task_id)
                if task is None:
                    raise InvalidTransition("This task no longer exists.")
                if expected_state is not None and task.state != expected_state:
                    raise InvalidTransition("This task has changed since you saw it; please try again.")

                try:
                    control_action = ControlAction(action)
                except ValueError:
                    raise InvalidTransition(f"Unknown action: {action!r}.") from None

                control = self.render(task).control_for(control_action)
                if control is None:
                    raise InvalidTransition(f"No {action} action for a task that is {task.state.value}.")

                if control.trigger == Trigger.CANCEL:
                    await self.cancel(task)
                    result = None
                else:
                    result = await self.advance(task, control.trigger)

            except TaskBotError as e:
                logger.warning("Press %s on task %s rejected: %s: %s", action, task_id, type(e).__name__, e)
                await self._notify(context, f"Action failed: {e}")
                return None
            except Exception:
                logger.exception("Press %s on task %s crashed", action, task_id)
                await self._notify(context, "Internal error while handling the action.")
                return None

        if result is None:
            self.forget_lock(task_id)
        return result

    async def run_daily_sweep(self) -> SweepReport:
        return await run_sweep(self)

    @staticmethod
    async def _notify(context: ReplyContext, text: str) -> None:
        try:
            await context.notify(text)
        except Exception:
            logger.exception("Failed to deliver failure notice: %r", text)
