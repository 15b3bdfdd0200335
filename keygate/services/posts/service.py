"""
Templated posts (Telegram HTML). Template text is trusted configuration;
values substituted into it are escaped.
"""
from __future__ import annotations

import html
from datetime import datetime, timezone
from string import Formatter
from typing import Any

from keygate.core.exceptions import UnknownTemplate


DEFAULT_POST_TEMPLATES: dict[str, dict[str, str]] = {
    "announcement": {
        "title": "📢 Announcement",
        "body": "{text}",
        "footer": "Posted by {author} · {date}",
    },
    "rules": {
        "title": "📜 Community rules",
        "body": "{text}",
        "footer": "Breaking the rules may lead to a timeout, kick or ban.",
    },
    "key-info": {
        "title": "🔑 How to get the key",
        "body": "{text}\n\nUse /get_key to receive the current key in a private message.",
        "footer": "Keys rotate every few hours.",
    },
}


class _SafeDict(dict):
    def __missing__(self, key):
        return "{" + key + "}"


def _fill(template: str, variables: dict[str, str]) -> str:
    try:
        # Unknown placeholders stay literal instead of raising
        for _, field_name, _, _ in Formatter().parse(template):
            if field_name and field_name not in variables:
                variables[field_name] = "{" + field_name + "}"
        return template.format_map(_SafeDict(variables))
    except (ValueError, IndexError, AttributeError):
        return template


class PostRenderer:
    def __init__(self, overrides: dict[str, dict[str, Any]] | None = None) -> None:
        self.templates: dict[str, dict[str, str]] = {k: dict(v) for k, v in DEFAULT_POST_TEMPLATES.items()}
        for name, tpl in (overrides or {}).items():
            self.templates[name] = {k: str(v) for k, v in tpl.items() if k in ("title", "body", "footer")}

    def names(self) -> list[str]:
        return sorted(self.templates)

    def render(self, name: str, text: str, author: str, now: datetime | None = None) -> str:
        tpl = self.templates.get(name)
        if tpl is None:
            raise UnknownTemplate(name)
        now = now or datetime.now(timezone.utc)
        variables = {
            "text": html.escape(text),
            "author": html.escape(author),
            "date": now.strftime("%Y-%m-%d"),
        }
        parts = []
        if tpl.get("title"):
            parts.append(f"<b>{_fill(tpl['title'], dict(variables))}</b>")
        if tpl.get("body"):
            parts.append(_fill(tpl["body"], dict(variables)))
        if tpl.get("footer"):
            parts.append(f"<i>{_fill(tpl['footer'], dict(variables))}</i>")
        return "\n\n".join(parts)
