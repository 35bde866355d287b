# src/taskboard/connectors/console_connector.py

from __future__ import annotations

import asyncio
import contextlib
import getpass
import logging
import uuid
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import datetime

from ..cli.bootstrap import attach_engine
from ..cli.commands import registry as command_registry
from ..core.errors import NotFoundError
from ..core.ports import MessageRef
from ..core.state import AppState
from ..tasks.presentation import Control, Embed
from ..tasks.sweep import run_sweep_scheduler
from .formatting import embed_to_text
from .runner import BackgroundRunner

logger = logging.getLogger(__name__)

CONSOLE_CHANNEL = "console"


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _print_ts(text: str) -> None:
    print(f"[{_ts_local()}] {text}", flush=True)


@dataclass(slots=True)
class _StoredMessage:
    channel_id: str
    embed: Embed
    controls: tuple[Control, ...] | None


class ConsoleMessenger:
    """
    In-memory Messenger that prints every message change to the terminal.

    Channels are plain names fixed at construction. Messages live only as long
    as the process, so the first sweep after a restart prunes every task that
    was created in an earlier run. Message ids are random: an id stored by an
    earlier run never names a message of this one.
    """

    def __init__(self, channels: Iterable[str], *, out: Callable[[str], None] = _print_ts) -> None:
        self._channels = {c for c in channels if c}
        self._messages: dict[str, _StoredMessage] = {}
        self._out = out

    def _require_channel(self, channel_id: str) -> None:
        if channel_id not in self._channels:
            raise NotFoundError(f"Unknown channel: {channel_id}")

    def _require_message(self, channel_id: str, message_id: str) -> _StoredMessage:
        msg = self._messages.get(message_id)
        if msg is None or msg.channel_id != channel_id:
            raise NotFoundError(f"Message {message_id} not found in #{channel_id}")
        return msg

    def _show(self, verb: str, message_id: str, msg: _StoredMessage) -> None:
        body = embed_to_text(msg.embed, msg.controls)
        self._out(f"#{msg.channel_id} message {message_id} {verb}:\n{body}\n")

    async def send_message(
            self,
            channel_id: str,
            content: Embed,
            controls: tuple[Control, ...] | None = None,
    ) -> str:
        self._require_channel(channel_id)
        message_id = uuid.uuid4().hex
        msg = _StoredMessage(channel_id=channel_id, embed=content, controls=controls)
        self._messages[message_id] = msg
        self._show("sent", message_id, msg)
        return message_id

    async def edit_message(
            self,
            channel_id: str,
            message_id: str,
            content: Embed,
            controls: tuple[Control, ...] | None = None,
    ) -> None:
        msg = self._require_message(channel_id, message_id)
        if msg.embed == content and msg.controls == controls:
            return
        msg.embed = content
        msg.controls = controls
        self._show("edited", message_id, msg)

    async def delete_message(self, channel_id: str, message_id: str) -> None:
        self._require_message(channel_id, message_id)
        del self._messages[message_id]
        self._out(f"#{channel_id} message {message_id} deleted")

    async def get_message(self, channel_id: str, message_id: str) -> MessageRef:
        self._require_message(channel_id, message_id)
        return MessageRef(channel_id=channel_id, message_id=message_id)

    async def resolve_channel(self, channel_id: str) -> str:
        self._require_channel(channel_id)
        return channel_id

    def delete_out_of_band(self, ref: str) -> bool:
        """
        Remove a message behind the engine's back, like a user deleting it in a client.

        `ref` is a message id or a unique prefix of one (at least 4 characters).
        """
        ref = (ref or "").strip().lower()
        matches = [m for m in self._messages if m == ref or (len(ref) >= 4 and m.startswith(ref))]
        if len(matches) != 1:
            return False
        del self._messages[matches[0]]
        return True

    def board(self) -> str:
        if not self._messages:
            return "Board is empty."
        chunks = []
        for message_id, msg in self._messages.items():
            chunks.append(f"#{msg.channel_id} message {message_id}:\n{embed_to_text(msg.embed, msg.controls)}")
        return "\n\n".join(chunks)


def console_channels(settings) -> list[str]:
    channels = [CONSOLE_CHANNEL]
    for name in ("archive_channel_id", "default_channel_id"):
        value = getattr(settings, name, None)
        if value:
            channels.append(value)
    return channels


async def run_console_board(state: AppState, messenger: ConsoleMessenger, stop_event: asyncio.Event) -> None:
    """Connector main for console-only runs: attach the engine and keep the sweep going."""
    engine = attach_engine(state, messenger)
    settings = state.settings

    sweeper = asyncio.create_task(
        run_sweep_scheduler(
            engine,
            interval_seconds=float(getattr(settings, "sweep_interval_hours", 24.0)) * 3600.0,
            run_at_start=bool(getattr(settings, "sweep_on_start", False)),
        )
    )
    try:
        await stop_event.wait()
    finally:
        sweeper.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await sweeper
        logger.info("Console board stopped.")


def run_console_loop(
    state: AppState,
    runner: BackgroundRunner,
    *,
    messenger: ConsoleMessenger | None = None,
    room_id: str | None = CONSOLE_CHANNEL,
) -> None:
    """
    Blocking REPL in the main thread.

    Commands run on the connector loop via runner.submit(). With a
    ConsoleMessenger two extra commands exist: /board and /rm <message-id>.
    """
    logger.info("Console connector started (room=%s).", room_id)
    _print_ts("[CONSOLE] Use /help for commands. Use /exit to quit.\n")

    user_id = getpass.getuser()

    while True:
        try:
            line = input(">>> ").strip()
        except EOFError:
            logger.info("Console EOF received, exiting.")
            break
        except KeyboardInterrupt:
            logger.info("Console KeyboardInterrupt, exiting.")
            print()
            break

        if not line:
            continue

        if line.lower() in ("/exit", "/quit"):
            logger.info("Console exit command received.")
            break

        if not runner.is_alive():
            _print_ts("Connector is not running.")
            break

        parts = line.split()
        try:
            if messenger is not None and parts[0] == "/board":
                resp = runner.submit(_call(messenger.board))
            elif messenger is not None and parts[0] == "/rm":
                if len(parts) < 2:
                    resp = "Usage: /rm <message-id>"
                elif runner.submit(_call(messenger.delete_out_of_band, parts[1])):
                    resp = f"Message {parts[1]} removed (out-of-band)."
                else:
                    resp = f"No message {parts[1]}."
            else:
                resp = runner.submit(
                    command_registry.handle(state, line, user_id=user_id, room_id=room_id)
                )
        except Exception:
            logger.exception("Command handler crashed.")
            resp = "Internal error while handling a command."

        if resp is None:
            resp = "Not a command. Use /help to list available commands."
        _print_ts(resp)

    logger.info("Console connector finished.")


async def _call(fn: Callable, *args):
    return fn(*args)
