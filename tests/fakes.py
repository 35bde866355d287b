# tests/fakes.py

from __future__ import annotations

import itertools
from dataclasses import dataclass, field
from typing import Any

from nio.responses import (
    JoinedRoomsResponse,
    RoomGetEventError,
    RoomGetEventResponse,
    RoomRedactResponse,
    RoomSendError,
    RoomSendResponse,
)

from taskboard.core.errors import NotFoundError, TransportError
from taskboard.core.ports import MessageRef
from taskboard.tasks.presentation import Control, Embed


class FakeClock:
    """Callable clock the tests move by hand."""

    def __init__(self, now: float = 1_800_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@dataclass(slots=True)
class StoredMessage:
    channel_id: str
    embed: Embed
    controls: tuple[Control, ...] | None


@dataclass
class FakeMessenger:
    """
    In-memory Messenger used by engine/sweep tests.

    - Captures every call (method name + args) for call-count assertions
    - `fail` names methods that should raise TransportError
    - `channels` is what resolve_channel accepts
    """

    channels: set[str] = field(default_factory=lambda: {"general", "archive"})
    messages: dict[str, StoredMessage] = field(default_factory=dict)
    calls: list[tuple[str, tuple]] = field(default_factory=list)
    fail: set[str] = field(default_factory=set)
    _ids: itertools.count = field(default_factory=lambda: itertools.count(100))

    def _record(self, name: str, *args) -> None:
        self.calls.append((name, args))
        if name in self.fail:
            raise TransportError(f"{name} failed")

    def count(self, name: str) -> int:
        return sum(1 for n, _ in self.calls if n == name)

    def _require(self, channel_id: str, message_id: str) -> StoredMessage:
        msg = self.messages.get(message_id)
        if msg is None or msg.channel_id != channel_id:
            raise NotFoundError(f"message {message_id} not found")
        return msg

    async def send_message(
        self,
        channel_id: str,
        content: Embed,
        controls: tuple[Control, ...] | None = None,
    ) -> str:
        self._record("send_message", channel_id, content, controls)
        message_id = f"m{next(self._ids)}"
        self.messages[message_id] = StoredMessage(channel_id, content, controls)
        return message_id

    async def edit_message(
        self,
        channel_id: str,
        message_id: str,
        content: Embed,
        controls: tuple[Control, ...] | None = None,
    ) -> None:
        self._record("edit_message", channel_id, message_id, content, controls)
        msg = self._require(channel_id, message_id)
        msg.embed = content
        msg.controls = controls

    async def delete_message(self, channel_id: str, message_id: str) -> None:
        self._record("delete_message", channel_id, message_id)
        self._require(channel_id, message_id)
        del self.messages[message_id]

    async def get_message(self, channel_id: str, message_id: str) -> MessageRef:
        self._record("get_message", channel_id, message_id)
        self._require(channel_id, message_id)
        return MessageRef(channel_id=channel_id, message_id=message_id)

    async def resolve_channel(self, channel_id: str) -> str:
        self._record("resolve_channel", channel_id)
        if channel_id not in self.channels:
            raise NotFoundError(f"channel {channel_id} not found")
        return channel_id


@dataclass(slots=True)
class FakeContext:
    """ReplyContext that remembers every notice."""

    notices: list[str] = field(default_factory=list)

    async def notify(self, text: str) -> None:
        self.notices.append(text)


class FakeNioClient:
    """
    Just enough of nio.AsyncClient for MatrixMessenger.

    Events are kept as raw dicts and handed back through nio's own response
    parsing, so redactions come out as real RedactedEvent objects.
    - `send_error` / `get_error`: errcode returned instead of a success
    - `joined`: rooms reported by joined_rooms() but missing from `rooms`
    """

    user_id = "@bot:example.org"

    def __init__(self, rooms: tuple[str, ...] = ("!general:example.org",)) -> None:
        self.rooms: dict[str, Any] = {r: object() for r in rooms}
        self.joined: list[str] = []
        self.events: dict[str, dict[str, Any]] = {}
        self.sent: list[tuple[str, str, dict[str, Any]]] = []
        self.send_error: str | None = None
        self.get_error: str | None = None
        self._ids = itertools.count(1)

    async def room_send(self, room_id, message_type, content, ignore_unverified_devices=False):
        if self.send_error:
            return RoomSendError("refused", self.send_error)
        event_id = f"$e{next(self._ids)}"
        self.sent.append((room_id, message_type, content))
        self.events[event_id] = {
            "event_id": event_id,
            "sender": self.user_id,
            "origin_server_ts": 1,
            "type": message_type,
            "content": content,
        }
        return RoomSendResponse(event_id, room_id)

    async def room_get_event(self, room_id, event_id):
        if self.get_error:
            return RoomGetEventError("no access", self.get_error)
        event = self.events.get(event_id)
        if event is None:
            return RoomGetEventError("Event not found", "M_NOT_FOUND")
        return RoomGetEventResponse.from_dict(event)

    async def room_redact(self, room_id, event_id, reason=None):
        self.redact(event_id, reason=reason)
        return RoomRedactResponse(f"$r{next(self._ids)}", room_id)

    async def joined_rooms(self):
        return JoinedRoomsResponse(list(self.rooms) + self.joined)

    def redact(self, event_id: str, *, sender: str = "@alice:example.org", reason: str | None = None) -> None:
        """Redact like a homeserver does: content stripped, redacted_because added."""
        event = self.events[event_id]
        event["content"] = {}
        event["unsigned"] = {"redacted_because": {"sender": sender, "content": {"reason": reason or ""}}}
