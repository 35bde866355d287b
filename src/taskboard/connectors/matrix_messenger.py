# src/taskboard/connectors/matrix_messenger.py

from __future__ import annotations

"""
Messenger on top of matrix-nio.

Mapping:
- channel  -> room id
- message  -> event id of the original m.room.message
- edit     -> new event with an m.replace relation
- delete   -> redaction
- controls -> a legend in the message plus one bot reaction per control;
              users press a control by adding the same reaction.
"""

import logging
from collections.abc import Awaitable
from typing import Any, TypeVar

from nio import AsyncClient
from nio.events.room_events import RedactedEvent
from nio.responses import (
    JoinedRoomsResponse,
    RoomGetEventError,
    RoomRedactError,
    RoomSendError,
    RoomSendResponse,
)

from ..core.errors import NotFoundError, TaskBotError, TransportError
from ..core.ports import MessageRef
from ..tasks.presentation import Control, Embed
from .formatting import ACTION_EMOJI, embed_to_html, embed_to_text

logger = logging.getLogger(__name__)

T = TypeVar("T")

HTML_FORMAT = "org.matrix.custom.html"

# Only this code means the event is gone. M_FORBIDDEN and friends mean we
# cannot see it right now, which is a transport failure.
_NOT_FOUND_CODES = frozenset({"M_NOT_FOUND"})


async def _guard(call: Awaitable[T], what: str) -> T:
    """Turn network-level exceptions into TransportError."""
    try:
        return await call
    except TaskBotError:
        raise
    except Exception as e:
        raise TransportError(f"{what} failed: {type(e).__name__}: {e}") from e


def _message_content(embed: Embed, controls: tuple[Control, ...] | None) -> dict[str, Any]:
    return {
        "msgtype": "m.text",
        "body": embed_to_text(embed, controls),
        "format": HTML_FORMAT,
        "formatted_body": embed_to_html(embed, controls),
    }


class MatrixMessenger:
    def __init__(self, client: AsyncClient) -> None:
        self._client = client

    async def _send(self, room_id: str, event_type: str, content: dict[str, Any]) -> str:
        resp = await _guard(
            self._client.room_send(
                room_id=room_id,
                message_type=event_type,
                content=content,
                ignore_unverified_devices=True,
            ),
            f"send {event_type} to {room_id}",
        )
        if isinstance(resp, RoomSendError):
            if resp.status_code in _NOT_FOUND_CODES:
                raise NotFoundError(f"Room {room_id} not available: {resp.message}")
            raise TransportError(f"Sending to {room_id} failed: {resp.message}")
        if not isinstance(resp, RoomSendResponse):
            raise TransportError(f"Unexpected response from {room_id}: {resp!r}")
        return resp.event_id

    async def send_message(
            self,
            channel_id: str,
            content: Embed,
            controls: tuple[Control, ...] | None = None,
    ) -> str:
        event_id = await self._send(channel_id, "m.room.message", _message_content(content, controls))

        # Seed the control reactions. The message already exists at this point,
        # so a failure here is logged instead of failing the whole send.
        for control in controls or ():
            try:
                await self._send(
                    channel_id,
                    "m.reaction",
                    {
                        "m.relates_to": {
                            "rel_type": "m.annotation",
                            "event_id": event_id,
                            "key": ACTION_EMOJI[control.action],
                        }
                    },
                )
            except TaskBotError as e:
                logger.warning("Could not add %s reaction to %s: %s", control.label, event_id, e)

        return event_id

    async def edit_message(
            self,
            channel_id: str,
            message_id: str,
            content: Embed,
            controls: tuple[Control, ...] | None = None,
    ) -> None:
        new_content = _message_content(content, controls)
        await self._send(
            channel_id,
            "m.room.message",
            {
                **new_content,
                "body": f"* {new_content['body']}",
                "m.new_content": new_content,
                "m.relates_to": {"rel_type": "m.replace", "event_id": message_id},
            },
        )

    async def delete_message(self, channel_id: str, message_id: str) -> None:
        # Redacting an already-redacted event succeeds on most servers; check first
        # so callers can tell "already gone" apart.
        await self.get_message(channel_id, message_id)

        resp = await _guard(
            self._client.room_redact(channel_id, message_id, reason="task message replaced"),
            f"redact {message_id}",
        )
        if isinstance(resp, RoomRedactError):
            if resp.status_code in _NOT_FOUND_CODES:
                raise NotFoundError(f"Message {message_id} not found: {resp.message}")
            raise TransportError(f"Deleting {message_id} failed: {resp.message}")

    async def get_message(self, channel_id: str, message_id: str) -> MessageRef:
        resp = await _guard(
            self._client.room_get_event(channel_id, message_id),
            f"fetch {message_id}",
        )
        if isinstance(resp, RoomGetEventError):
            if resp.status_code in _NOT_FOUND_CODES:
                raise NotFoundError(f"Message {message_id} not found: {resp.message}")
            raise TransportError(f"Fetching {message_id} failed: {resp.message}")

        event = resp.event
        source = getattr(event, "source", None) or {}
        redacted = isinstance(event, RedactedEvent) or "redacted_because" in (source.get("unsigned") or {})
        if redacted or not source.get("content"):
            raise NotFoundError(f"Message {message_id} was deleted")

        return MessageRef(channel_id=channel_id, message_id=message_id)

    async def resolve_channel(self, channel_id: str) -> str:
        if channel_id in self._client.rooms:
            return channel_id

        resp = await _guard(self._client.joined_rooms(), "list joined rooms")
        if isinstance(resp, JoinedRoomsResponse) and channel_id in resp.rooms:
            return channel_id
        raise NotFoundError(f"Room {channel_id} is not joined")

    async def send_notice(self, room_id: str, text: str) -> None:
        await self._send(room_id, "m.room.message", {"msgtype": "m.notice", "body": text})


class MatrixReplyContext:
    """Failure notices for the user who reacted, posted as a notice in the room."""

    def __init__(self, messenger: MatrixMessenger, room_id: str, user_id: str) -> None:
        self._messenger = messenger
        self._room_id = room_id
        self._user_id = user_id

    async def notify(self, text: str) -> None:
        await self._messenger.send_notice(self._room_id, f"{self._user_id}: {text}")
