from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone

from pydantic import ValidationError

from keygate.engagement.models import UserEngagement
from keygate.storage.base import DocumentStore
from keygate.utils.metrics import qualifying_events_total

logger = logging.getLogger("engagement")

ENGAGEMENT_DOCUMENT = "engagement"


class EngagementTracker:
    """
    Per-user message counters and verification flags.

    Counts only go up and ``verified`` only goes from False to True. The
    in-memory map is authoritative; the document is rewritten after every
    mutation and a failed write is logged, not raised.
    """

    def __init__(self, store: DocumentStore) -> None:
        self.store = store
        self._lock = threading.Lock()
        self._users: dict[str, UserEngagement] = self._load()

    def _load(self) -> dict[str, UserEngagement]:
        raw = self.store.load(ENGAGEMENT_DOCUMENT) or {}
        users = raw.get("users")
        if not isinstance(users, dict):
            return {}
        result: dict[str, UserEngagement] = {}
        for user_id, entry in users.items():
            if not isinstance(entry, dict):
                continue
            try:
                result[str(user_id)] = UserEngagement.from_document(str(user_id), entry)
            except (ValidationError, KeyError) as e:
                logger.warning("engagement_record_skipped", extra={"user_id": user_id, "error": str(e)})
        return result

    def _persist(self) -> None:
        doc = {"users": {uid: rec.to_document() for uid, rec in self._users.items()}}
        if not self.store.save(ENGAGEMENT_DOCUMENT, doc):
            logger.error("engagement_persist_failed", extra={"count": len(self._users)})

    def record_qualifying_event(
        self,
        user_id: str,
        display_name: str,
        now: datetime | None = None,
    ) -> UserEngagement:
        now = now or datetime.now(timezone.utc)
        with self._lock:
            record = self._users.get(user_id)
            if record is None:
                record = UserEngagement(user_id=user_id, first_seen_at=now, last_seen_at=now)
                self._users[user_id] = record
            record.qualifying_event_count += 1
            record.display_name = display_name
            record.last_seen_at = now
            self._persist()
            qualifying_events_total.inc()
            return record.model_copy()

    def mark_verified(self, user_id: str, display_name: str | None = None, now: datetime | None = None) -> None:
        now = now or datetime.now(timezone.utc)
        with self._lock:
            record = self._users.get(user_id)
            if record is not None and record.verified:
                return
            if record is None:
                record = UserEngagement(user_id=user_id, first_seen_at=now, last_seen_at=now)
                self._users[user_id] = record
            record.verified = True
            if display_name:
                record.display_name = display_name
            self._persist()
            logger.info("user_verified", extra={"user_id": user_id})

    def get(self, user_id: str) -> UserEngagement | None:
        with self._lock:
            record = self._users.get(user_id)
            return record.model_copy() if record else None
