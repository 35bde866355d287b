# src/taskboard/tasks/timefmt.py

from __future__ import annotations

"""
Time helpers.

The presentation layer writes deadlines as transport-native relative-time
markers (`<t:UNIX:R>`), which some chat clients render live. Connectors whose
clients do not understand the marker call `expand_markers` before sending.
"""

import re
import time
from datetime import UTC, datetime

SHORT_DATE_FORMAT = "%d/%m/%Y"

MARKER_RE = re.compile(r"<t:(-?\d+)(?::([tTdDfFR]))?>")

_DURATION_RE = re.compile(r"^(\d+)\s*([mhdw])$", re.IGNORECASE)
_DURATION_UNITS = {"m": 60, "h": 3600, "d": 86400, "w": 7 * 86400}

_HUMAN_UNITS: tuple[tuple[str, int], ...] = (
    ("year", 365 * 86400),
    ("month", 30 * 86400),
    ("day", 86400),
    ("hour", 3600),
    ("minute", 60),
    ("second", 1),
)

_STYLE_FORMATS = {
    "t": "%H:%M",
    "T": "%H:%M:%S",
    "d": "%d/%m/%Y",
    "D": "%d %B %Y",
    "f": "%d %B %Y %H:%M",
    "F": "%A, %d %B %Y %H:%M",
}


def relative_marker(ts: float, style: str = "R") -> str:
    """Return `<t:UNIX:STYLE>` for an absolute UTC timestamp."""
    return f"<t:{int(ts)}:{style}>"


def format_short_date(ts: float) -> str:
    return datetime.fromtimestamp(ts, UTC).strftime(SHORT_DATE_FORMAT)


def humanize_relative(ts: float, now: float | None = None) -> str:
    """'in 2 days', '3 hours ago', 'just now'."""
    if now is None:
        now = time.time()
    delta = int(ts - now)
    seconds = abs(delta)
    if seconds < 1:
        return "just now"

    for name, size in _HUMAN_UNITS:
        if seconds >= size:
            n = seconds // size
            unit = name if n == 1 else f"{name}s"
            return f"in {n} {unit}" if delta > 0 else f"{n} {unit} ago"

    return "just now"


def expand_markers(text: str, now: float | None = None) -> str:
    """Replace every `<t:...>` marker in `text` with plain text."""

    def _sub(m: re.Match[str]) -> str:
        ts = int(m.group(1))
        style = m.group(2) or "f"
        if style == "R":
            return humanize_relative(ts, now)
        return datetime.fromtimestamp(ts, UTC).strftime(_STYLE_FORMATS[style]) + " UTC"

    return MARKER_RE.sub(_sub, text)


def parse_deadline(raw: str, now: float | None = None) -> float:
    """
    Parse a deadline argument into a UTC timestamp.

    Accepted forms:
    - durations relative to now: 90m, 48h, 3d, 2w
    - ISO dates / datetimes: 2026-10-21, 2026-10-21T18:00 (naive values are UTC)
    """
    s = (raw or "").strip()
    if not s:
        raise ValueError("deadline is required")

    if now is None:
        now = time.time()

    m = _DURATION_RE.match(s)
    if m:
        return now + int(m.group(1)) * _DURATION_UNITS[m.group(2).lower()]

    try:
        dt = datetime.fromisoformat(s)
    except ValueError:
        raise ValueError(f"Unrecognised deadline: {raw!r} (use e.g. 48h, 3d or 2026-10-21)") from None

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt.timestamp()
