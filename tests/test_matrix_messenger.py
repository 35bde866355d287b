# tests/test_matrix_messenger.py

from __future__ import annotations

import pytest

from taskboard.connectors.matrix_messenger import MatrixMessenger
from taskboard.core.errors import NotFoundError, TransportError
from taskboard.tasks.lifecycle import LifecycleEngine
from taskboard.tasks.presentation import render
from taskboard.tasks.task_models import Task, TaskState
from taskboard.tasks.task_store import TaskStore

from .fakes import FakeClock, FakeNioClient

ROOM = "!general:example.org"
NOW = 1_800_000_000.0


def make_task() -> Task:
    return Task(
        id="t1",
        description="Buy milk",
        assignee="@bob:example.org",
        created_at=NOW,
        deadline=NOW + 48 * 3600,
        state=TaskState.NOT_STARTED,
        channel_id=ROOM,
    )


@pytest.fixture()
def client() -> FakeNioClient:
    return FakeNioClient()


@pytest.fixture()
def matrix(client: FakeNioClient) -> MatrixMessenger:
    return MatrixMessenger(client)


async def send_task(matrix: MatrixMessenger) -> str:
    rendered = render(make_task(), NOW)
    return await matrix.send_message(ROOM, rendered.embed, rendered.controls)


@pytest.mark.asyncio
async def test_send_seeds_reactions_and_edit_replaces(matrix: MatrixMessenger, client: FakeNioClient) -> None:
    event_id = await send_task(matrix)

    kinds = [t for _room, t, _content in client.sent]
    assert kinds == ["m.room.message", "m.reaction", "m.reaction"]
    assert {c["m.relates_to"]["event_id"] for _r, t, c in client.sent if t == "m.reaction"} == {event_id}

    rendered = render(make_task(), NOW + 47 * 3600)
    await matrix.edit_message(ROOM, event_id, rendered.embed, rendered.controls)
    edit = client.sent[-1][2]
    assert edit["m.relates_to"] == {"rel_type": "m.replace", "event_id": event_id}
    assert edit["body"].startswith("* ")
    assert "❗" in edit["m.new_content"]["body"]

    ref = await matrix.get_message(ROOM, event_id)
    assert ref.message_id == event_id


@pytest.mark.asyncio
async def test_redacted_message_is_not_found(matrix: MatrixMessenger, client: FakeNioClient) -> None:
    event_id = await send_task(matrix)
    client.redact(event_id)

    with pytest.raises(NotFoundError):
        await matrix.get_message(ROOM, event_id)
    # already gone: no second redaction is attempted
    with pytest.raises(NotFoundError):
        await matrix.delete_message(ROOM, event_id)


@pytest.mark.asyncio
async def test_delete_then_delete_again(matrix: MatrixMessenger, client: FakeNioClient) -> None:
    event_id = await send_task(matrix)

    await matrix.delete_message(ROOM, event_id)
    assert client.events[event_id]["content"] == {}

    with pytest.raises(NotFoundError):
        await matrix.delete_message(ROOM, event_id)
    with pytest.raises(NotFoundError):
        await matrix.delete_message(ROOM, "$unknown")


@pytest.mark.asyncio
async def test_forbidden_is_a_transport_error(matrix: MatrixMessenger, client: FakeNioClient) -> None:
    event_id = await send_task(matrix)

    client.get_error = "M_FORBIDDEN"
    with pytest.raises(TransportError):
        await matrix.get_message(ROOM, event_id)

    client.send_error = "M_FORBIDDEN"
    with pytest.raises(TransportError):
        await send_task(matrix)


@pytest.mark.asyncio
async def test_send_error_codes(matrix: MatrixMessenger, client: FakeNioClient) -> None:
    client.send_error = "M_LIMIT_EXCEEDED"
    with pytest.raises(TransportError):
        await send_task(matrix)

    client.send_error = "M_NOT_FOUND"
    with pytest.raises(NotFoundError):
        await send_task(matrix)


@pytest.mark.asyncio
async def test_resolve_channel(matrix: MatrixMessenger, client: FakeNioClient) -> None:
    assert await matrix.resolve_channel(ROOM) == ROOM

    client.joined.append("!archive:example.org")
    assert await matrix.resolve_channel("!archive:example.org") == "!archive:example.org"

    with pytest.raises(NotFoundError):
        await matrix.resolve_channel("!elsewhere:example.org")


@pytest.mark.asyncio
async def test_sweep_keeps_tasks_it_cannot_see(client: FakeNioClient, tmp_path) -> None:
    store = TaskStore(tmp_path / "tasks.sqlite3")
    engine = LifecycleEngine(
        MatrixMessenger(client), store, archive_channel_id="!archive:example.org", clock=FakeClock()
    )
    task = await engine.on_create_command(
        description="Buy milk", assignee="@bob:example.org", deadline=NOW + 48 * 3600, channel_id=ROOM
    )

    client.get_error = "M_FORBIDDEN"
    report = await engine.run_daily_sweep()
    assert report.removed == []
    assert report.failed == [task.id]
    assert store.get(task.id) is not None

    client.get_error = None
    client.redact(task.message_id)
    report = await engine.run_daily_sweep()
    assert report.removed == [task.id]
    assert store.get(task.id) is None
