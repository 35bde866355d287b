"""Task-tracking chat bot: tasks live as interactive messages and end up archived."""

__version__ = "0.1.0"
