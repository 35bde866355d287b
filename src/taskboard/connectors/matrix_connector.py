# src/taskboard/connectors/matrix_connector.py

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from typing import Any

from nio import MatrixRoom, RoomMessageText
from nio.events.room_events import Event

from ..cli.bootstrap import attach_engine
from ..cli.commands import registry as command_registry
from ..core.errors import TaskBotError
from ..core.state import AppState
from ..tasks.sweep import run_sweep_scheduler
from ..tasks.task_models import ControlAction
from .formatting import ACTION_EMOJI
from .matrix_client import create_matrix_client
from .matrix_messenger import MatrixMessenger, MatrixReplyContext

logger = logging.getLogger(__name__)

_VARIATION_SELECTOR = "\ufe0f"

_ACTION_BY_KEY: dict[str, ControlAction] = {
    emoji.replace(_VARIATION_SELECTOR, ""): action for action, emoji in ACTION_EMOJI.items()
}


def _ms_now() -> int:
    return int(time.time() * 1000)


def _room_allowlist(settings_rooms: list[str]) -> set[str] | None:
    rooms = [r.strip() for r in (settings_rooms or []) if str(r).strip()]
    return set(rooms) if rooms else None


def reaction_target(source: dict[str, Any]) -> tuple[str, ControlAction] | None:
    """
    Read (reacted-to event id, control action) from a raw m.reaction event.

    Returns None for anything that is not a reaction with one of our control keys.
    """
    if source.get("type") != "m.reaction":
        return None
    rel = (source.get("content") or {}).get("m.relates_to") or {}
    if rel.get("rel_type") != "m.annotation":
        return None
    event_id = rel.get("event_id")
    key = str(rel.get("key") or "").replace(_VARIATION_SELECTOR, "")
    action = _ACTION_BY_KEY.get(key)
    if not event_id or action is None:
        return None
    return str(event_id), action


async def run_matrix_bot(state: AppState, stop_event: asyncio.Event) -> None:
    """
    Matrix connector (async):

    login -> engine -> sweep scheduler -> callbacks -> sync loop

    Shutdown model:
    - main thread sets stop_event via loop.call_soon_threadsafe(stop_event.set)
    - we run a manual sync loop so we can exit promptly.
    """
    settings = state.settings

    startup_ts = _ms_now()
    allowed_rooms = _room_allowlist(getattr(settings, "matrix_rooms", []) or [])
    logger.info("Matrix allowed_rooms=%s", allowed_rooms if allowed_rooms is not None else "ALL")

    client = await create_matrix_client(settings)
    if client is None:
        logger.error("Matrix client creation failed; connector will stop.")
        return

    messenger = MatrixMessenger(client)
    engine = attach_engine(state, messenger)

    sweeper = asyncio.create_task(
        run_sweep_scheduler(
            engine,
            interval_seconds=float(getattr(settings, "sweep_interval_hours", 24.0)) * 3600.0,
            run_at_start=bool(getattr(settings, "sweep_on_start", False)),
        )
    )

    def _accept(room: MatrixRoom, event: Any) -> bool:
        # Skip history replayed by the first sync, our own events and foreign rooms.
        ts = getattr(event, "server_timestamp", None)
        if ts is not None and ts <= startup_ts:
            return False
        if event.sender == client.user_id:
            return False
        return allowed_rooms is None or room.room_id in allowed_rooms

    # ---- Commands (/task, /tasks, ...) ----

    async def message_callback(room: MatrixRoom, event: RoomMessageText) -> None:
        if not _accept(room, event):
            return

        body = (event.body or "").strip()
        if not body.startswith("/"):
            return

        logger.info("Matrix <%s> %s: %r", room.display_name, event.sender, body)
        try:
            resp = await command_registry.handle(state, body, user_id=event.sender, room_id=room.room_id)
        except Exception:
            logger.exception("Command handler crashed.")
            resp = "Internal error while handling a command."

        if resp:
            try:
                await messenger.send_notice(room.room_id, resp)
            except TaskBotError:
                logger.exception("Failed to send command reply.")

    # ---- Controls (reactions) ----

    async def reaction_callback(room: MatrixRoom, event: Event) -> None:
        source = getattr(event, "source", None) or {}
        target = reaction_target(source)
        if target is None or not _accept(room, event):
            return

        message_id, action = target
        task = state.task_store.find_by_message(message_id)
        if task is None:
            return

        logger.info("Matrix %s pressed %s on task %s", event.sender, action.value, task.id)
        ctx = MatrixReplyContext(messenger, room.room_id, event.sender)
        await engine.on_button_press(task.id, action, ctx)

        # Take the user's reaction back off so the control can be pressed again.
        with contextlib.suppress(Exception):
            await client.room_redact(room.room_id, event.event_id)

    client.add_event_callback(message_callback, RoomMessageText)
    client.add_event_callback(reaction_callback, Event)

    # ---- Sync loop ----

    try:
        logger.info("Matrix initial sync...")
        await client.sync(timeout=30000, full_state=True)
        logger.info("Matrix initial sync done. Joined rooms: %d", len(client.rooms))

        while not stop_event.is_set():
            await client.sync(timeout=30000, full_state=False)

    except asyncio.CancelledError:
        logger.info("Matrix connector cancelled.")
    except Exception:
        logger.exception("Matrix connector crashed.")
    finally:
        sweeper.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await sweeper

        with contextlib.suppress(Exception):
            await client.close()

        logger.info("Matrix connector stopped.")
