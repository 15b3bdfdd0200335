from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone

from pydantic import BaseModel

from keygate.storage.base import DocumentStore

logger = logging.getLogger("usage")

USAGE_DOCUMENT = "usage-stats"


def _parse_timestamp(value) -> datetime | None:
    if not isinstance(value, str) or not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


class UsageRow(BaseModel):
    user_id: str
    username: str
    command: str
    count: int
    last_used: datetime | None


class UsageTracker:
    """Per-user command counters for the owner report. Not used for eligibility."""

    def __init__(self, store: DocumentStore) -> None:
        self.store = store
        self._lock = threading.Lock()
        raw = store.load(USAGE_DOCUMENT) or {}
        users = raw.get("users")
        self._stats: dict = {"users": users if isinstance(users, dict) else {}}

    def track(self, user_id: str, username: str, command: str, now: datetime | None = None) -> int:
        """Count one invocation; returns the new count for (user, command)."""
        now = now or datetime.now(timezone.utc)
        with self._lock:
            users = self._stats["users"]
            entry = users.get(user_id)
            if not isinstance(entry, dict):
                entry = users[user_id] = {"username": username, "commands": {}}
            entry["username"] = username
            commands = entry.setdefault("commands", {})
            cmd = commands.get(command)
            if not isinstance(cmd, dict):
                cmd = commands[command] = {"count": 0, "lastUsed": None}
            cmd["count"] = int(cmd.get("count") or 0) + 1
            cmd["lastUsed"] = now.isoformat()
            if not self.store.save(USAGE_DOCUMENT, self._stats):
                logger.error("usage_persist_failed", extra={"user_id": user_id, "command": command})
            return cmd["count"]

    def report(self) -> list[UsageRow]:
        rows: list[UsageRow] = []
        with self._lock:
            for user_id, entry in self._stats["users"].items():
                if not isinstance(entry, dict):
                    continue
                for command, data in (entry.get("commands") or {}).items():
                    if not isinstance(data, dict):
                        continue
                    rows.append(
                        UsageRow(
                            user_id=user_id,
                            username=entry.get("username") or user_id,
                            command=command,
                            count=int(data.get("count") or 0),
                            last_used=_parse_timestamp(data.get("lastUsed")),
                        )
                    )
        return rows

    def format_table(self) -> str | None:
        """Plain-text table for a code block, or None when nothing was tracked yet."""
        rows = self.report()
        if not rows:
            return None
        lines = ["USER | COMMAND | COUNT | LAST USED", "---- | ------- | ----- | ---------"]
        for row in rows:
            last = row.last_used.strftime("%Y-%m-%d %H:%M") if row.last_used else "-"
            lines.append(f"{row.username} | /{row.command} | {row.count} | {last}")
        return "\n".join(lines)
