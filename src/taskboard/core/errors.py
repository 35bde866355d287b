# src/taskboard/core/errors.py

from __future__ import annotations

"""
Error taxonomy shared by the core and the connectors.

Connectors translate transport failures into these types so the lifecycle
engine never has to know which chat backend it is talking to.
"""


class TaskBotError(Exception):
    """Base class. `str(exc)` is safe to show to the user who triggered the action."""


class TransportError(TaskBotError):
    """Send/edit/delete against the chat backend failed (network or API fault)."""


class NotFoundError(TaskBotError):
    """Referenced message or channel no longer exists."""


class ConfigurationError(TaskBotError):
    """A required setting is missing or cannot be resolved (e.g. archive channel)."""


class InvalidTransition(TaskBotError):
    """Requested action is not valid for the task's current state."""
