# src/taskboard/connectors/formatting.py

from __future__ import annotations

"""
Draw an Embed + Controls on text transports.

Chat backends without native embeds/buttons get a plain-text body and,
where supported, an HTML body. Relative-time markers are expanded to text
because neither the console nor Matrix clients render them.
"""

import html
import re
from collections.abc import Callable

from ..tasks.presentation import Control, Embed
from ..tasks.task_models import ControlAction
from ..tasks.timefmt import expand_markers

MENTION_RE = re.compile(r"<@([^>]+)>")

# Matrix drives controls with reactions; the console shows the same keys.
ACTION_EMOJI: dict[ControlAction, str] = {
    ControlAction.PRIMARY: "✅",
    ControlAction.CANCEL: "🗑️",
}


def _plain_mention(user: str) -> str:
    return user if user.startswith("@") else f"@{user}"


def _expand(text: str, now: float | None, mention: Callable[[str], str]) -> str:
    text = expand_markers(text, now)
    return MENTION_RE.sub(lambda m: mention(m.group(1)), text)


def controls_legend(controls: tuple[Control, ...] | None) -> str:
    if not controls:
        return ""
    return " · ".join(f"{ACTION_EMOJI[c.action]} {c.label}" for c in controls)


def embed_to_text(
    embed: Embed,
    controls: tuple[Control, ...] | None = None,
    *,
    now: float | None = None,
) -> str:
    lines = [f"[{embed.title}]"]
    if embed.description:
        lines.append(embed.description)

    inline = [f"{f.name}: {_expand(f.value, now, _plain_mention)}" for f in embed.fields if f.inline]
    if inline:
        lines.append(" | ".join(inline))
    for f in embed.fields:
        if not f.inline:
            lines.append(f"{f.name}: {_expand(f.value, now, _plain_mention)}")

    lines.append(embed.footer)
    legend = controls_legend(controls)
    if legend:
        lines.append(legend)
    return "\n".join(lines)


def matrix_mention_html(user: str) -> str:
    user_id = _plain_mention(user)
    return f'<a href="https://matrix.to/#/{html.escape(user_id)}">{html.escape(user_id)}</a>'


def embed_to_html(
    embed: Embed,
    controls: tuple[Control, ...] | None = None,
    *,
    now: float | None = None,
) -> str:
    def value_html(raw: str) -> str:
        # Escape first, then swap mentions for links (mentions carry no HTML).
        mentions: list[str] = []

        def hold(m: re.Match[str]) -> str:
            mentions.append(m.group(1))
            return f"\x00{len(mentions) - 1}\x00"

        held = MENTION_RE.sub(hold, expand_markers(raw, now))
        out = html.escape(held)
        for i, user in enumerate(mentions):
            out = out.replace(f"\x00{i}\x00", matrix_mention_html(user))
        return out

    color = f"#{embed.color:06x}"
    parts = [f'<h4><font color="{color}">{html.escape(embed.title)}</font></h4>']
    if embed.description:
        parts.append(f"<p>{html.escape(embed.description)}</p>")
    parts.append("<ul>")
    for f in embed.fields:
        parts.append(f"<li><b>{html.escape(f.name)}:</b> {value_html(f.value)}</li>")
    parts.append("</ul>")
    parts.append(f"<p><sub>{html.escape(embed.footer)}</sub></p>")
    legend = controls_legend(controls)
    if legend:
        parts.append(f"<p><i>React with {html.escape(legend)}</i></p>")
    return "".join(parts)
