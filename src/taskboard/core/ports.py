# src/taskboard/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The lifecycle engine and the sweep depend on Protocols instead of concrete
implementations. This keeps connectors/storage swappable and makes testing easier.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Awaitable, Protocol

if TYPE_CHECKING:
    from ..tasks.presentation import Control, Embed
    from ..tasks.task_models import Task


@dataclass(slots=True, frozen=True)
class MessageRef:
    """A message that was found on the chat backend."""

    channel_id: str
    message_id: str


class Messenger(Protocol):
    """
    Connector-side port: how the core talks to the chat backend.

    Every call is a single fallible operation. Implementations raise:
    - NotFoundError when the message/channel does not exist,
    - TransportError for any other backend failure.
    Retries and timeouts are the implementation's business.
    """

    def send_message(
            self,
            channel_id: str,
            content: Embed,
            controls: tuple[Control, ...] | None = None,
    ) -> Awaitable[str]: ...

    def edit_message(
            self,
            channel_id: str,
            message_id: str,
            content: Embed,
            controls: tuple[Control, ...] | None = None,
    ) -> Awaitable[None]: ...

    def delete_message(self, channel_id: str, message_id: str) -> Awaitable[None]: ...

    def get_message(self, channel_id: str, message_id: str) -> Awaitable[MessageRef]: ...

    def resolve_channel(self, channel_id: str) -> Awaitable[str]: ...


class TaskRepo(Protocol):
    def get(self, task_id: str) -> Task | None: ...
    def all(self) -> Mapping[str, Task]: ...
    def find_by_message(self, message_id: str) -> Task | None: ...
    def save(self, task: Task) -> None: ...

    # Deferred removal: takes effect in memory at once, on disk at save_all().
    def remove(self, task_id: str) -> None: ...
    def save_all(self) -> None: ...


class ReplyContext(Protocol):
    """Whoever pressed a control; used to show them failure notices."""

    def notify(self, text: str) -> Awaitable[None]: ...
