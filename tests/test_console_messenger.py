# tests/test_console_messenger.py

from __future__ import annotations

from types import SimpleNamespace

import pytest

from taskboard.connectors.console_connector import CONSOLE_CHANNEL, ConsoleMessenger, console_channels
from taskboard.core.errors import NotFoundError
from taskboard.tasks.lifecycle import LifecycleEngine
from taskboard.tasks.presentation import render
from taskboard.tasks.task_models import ControlAction, Task, TaskState
from taskboard.tasks.task_store import TaskStore

from .fakes import FakeClock, FakeContext


def test_console_channels_from_settings() -> None:
    settings = SimpleNamespace(archive_channel_id="archive", default_channel_id=None)
    assert console_channels(settings) == [CONSOLE_CHANNEL, "archive"]


@pytest.mark.asyncio
async def test_console_messenger_message_lifecycle() -> None:
    printed: list[str] = []
    messenger = ConsoleMessenger(["console"], out=printed.append)
    task = Task(
        id="t1",
        description="Buy milk",
        assignee="bob",
        created_at=1_800_000_000.0,
        deadline=1_800_172_800.0,
        state=TaskState.NOT_STARTED,
        channel_id="console",
    )
    rendered = render(task, 1_800_000_000.0)

    message_id = await messenger.send_message("console", rendered.embed, rendered.controls)
    assert "sent" in printed[-1]

    # identical edits are not printed again
    await messenger.edit_message("console", message_id, rendered.embed, rendered.controls)
    assert len(printed) == 1

    ref = await messenger.get_message("console", message_id)
    assert ref.message_id == message_id
    assert "Buy milk" in messenger.board()

    await messenger.delete_message("console", message_id)
    with pytest.raises(NotFoundError):
        await messenger.get_message("console", message_id)
    assert messenger.board() == "Board is empty."


@pytest.mark.asyncio
async def test_console_messenger_unknown_channel_and_message() -> None:
    messenger = ConsoleMessenger(["console"], out=lambda _text: None)

    with pytest.raises(NotFoundError):
        await messenger.resolve_channel("archive")
    assert await messenger.resolve_channel("console") == "console"
    with pytest.raises(NotFoundError):
        await messenger.delete_message("console", "42")
    assert messenger.delete_out_of_band("42") is False


@pytest.mark.asyncio
async def test_engine_runs_end_to_end_on_console_board(tmp_path) -> None:
    messenger = ConsoleMessenger(["console", "archive"], out=lambda _text: None)
    store = TaskStore(tmp_path / "tasks.sqlite3")
    engine = LifecycleEngine(messenger, store, archive_channel_id="archive", clock=FakeClock())
    ctx = FakeContext()

    task = await engine.on_create_command(
        description="Ship it", assignee="alice", deadline=1_800_172_800.0, channel_id="console"
    )
    for _ in range(3):
        result = await engine.on_button_press(task.id, ControlAction.PRIMARY, ctx)
        assert result is not None
    assert ctx.notices == []

    archived = store.get(task.id)
    assert archived is not None
    assert archived.state == TaskState.ARCHIVED
    assert archived.channel_id == "archive"
    assert "#archive" in messenger.board()
    assert "#console" not in messenger.board()

    # out-of-band deletion is picked up by the next sweep
    assert messenger.delete_out_of_band(archived.message_id)
    report = await engine.run_daily_sweep()
    assert report.removed == [task.id]
    assert store.get(task.id) is None


@pytest.mark.asyncio
async def test_restart_does_not_reuse_message_ids(tmp_path) -> None:
    db = tmp_path / "tasks.sqlite3"
    clock = FakeClock()

    first_run = LifecycleEngine(
        ConsoleMessenger(["console"], out=lambda _text: None),
        TaskStore(db),
        archive_channel_id="archive",
        clock=clock,
    )
    old = await first_run.on_create_command(
        description="old", assignee="alice", deadline=1_800_172_800.0, channel_id="console"
    )

    # New process: the board starts empty, the store is reloaded from disk.
    messenger = ConsoleMessenger(["console"], out=lambda _text: None)
    store = TaskStore(db)
    engine = LifecycleEngine(messenger, store, archive_channel_id="archive", clock=clock)
    new = await engine.on_create_command(
        description="new", assignee="alice", deadline=1_800_172_800.0, channel_id="console"
    )
    assert new.message_id != old.message_id

    report = await engine.run_daily_sweep()
    assert report.removed == [old.id]
    assert report.refreshed == [new.id]

    # The stale task is gone, so it cannot touch the new task's message.
    ctx = FakeContext()
    assert await engine.on_button_press(old.id, ControlAction.CANCEL, ctx) is None
    assert ctx.notices == ["Action failed: This task no longer exists."]
    assert await messenger.get_message("console", new.message_id)
    assert "new" in messenger.board()


@pytest.mark.asyncio
async def test_delete_out_of_band_accepts_unique_prefix() -> None:
    messenger = ConsoleMessenger(["console"], out=lambda _text: None)
    task = Task(
        id="t1",
        description="Buy milk",
        assignee="bob",
        created_at=1_800_000_000.0,
        deadline=1_800_172_800.0,
        state=TaskState.NOT_STARTED,
        channel_id="console",
    )
    rendered = render(task, 1_800_000_000.0)
    message_id = await messenger.send_message("console", rendered.embed, rendered.controls)

    assert messenger.delete_out_of_band(message_id[:3]) is False
    assert messenger.delete_out_of_band(message_id[:6]) is True
    with pytest.raises(NotFoundError):
        await messenger.get_message("console", message_id)
