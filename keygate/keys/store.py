"""
KeyStore: owns the current secret, rotates it lazily on read, resets it on demand.

There is no background timer. An expired secret is replaced by the next
read, so a key nobody asks for stays on disk past its nominal TTL; it is
never handed out after expiry.
"""
from __future__ import annotations

import logging
import threading
from datetime import datetime, timedelta, timezone
from typing import Callable

from pydantic import ValidationError

from keygate.keys.generator import SECRET_ALPHABET, SECRET_LENGTH, generate_secret
from keygate.keys.models import SecretDocument, SecretRecord, to_epoch_ms
from keygate.storage.base import DocumentStore
from keygate.utils.metrics import key_rotations_total

logger = logging.getLogger("keys")

KEY_DOCUMENT = "global-key"
KEY_ARCHIVE_PREFIX = "key-log"
DEFAULT_TTL = timedelta(hours=12)
_ALPHABET = frozenset(SECRET_ALPHABET)


class KeyStore:
    def __init__(
        self,
        store: DocumentStore,
        ttl: timedelta = DEFAULT_TTL,
        key_length: int = SECRET_LENGTH,
        generator: Callable[[int], str] = generate_secret,
    ) -> None:
        self.store = store
        self.ttl = ttl
        self.key_length = key_length
        self._generate = generator
        self._lock = threading.Lock()
        self._record: SecretRecord | None = self._load()

    def _load(self) -> SecretRecord | None:
        """Read the last snapshot. Anything missing, malformed or off-shape counts as Absent."""
        raw = self.store.load(KEY_DOCUMENT)
        if raw is None:
            return None
        try:
            record = SecretDocument.model_validate(raw).to_record(self.ttl)
        except (ValidationError, ValueError, OverflowError, OSError) as e:
            logger.warning("key_snapshot_invalid", extra={"error": str(e)})
            return None
        if len(record.value) != self.key_length or not set(record.value) <= _ALPHABET:
            logger.warning("key_snapshot_invalid", extra={"error": "key does not match configured length or alphabet"})
            return None
        return record

    @property
    def current(self) -> SecretRecord | None:
        """Record as held in memory, without rotating. May be expired or None."""
        return self._record

    def current_or_rotate(self, now: datetime | None = None) -> SecretRecord:
        now = now or datetime.now(timezone.utc)
        with self._lock:
            record = self._record
            if record is not None and not record.is_expired(now):
                return record
            reason = "initial" if record is None else "expired"
            return self._rotate(now, reason)

    def force_reset(self, now: datetime | None = None) -> SecretRecord:
        now = now or datetime.now(timezone.utc)
        with self._lock:
            previous = self._record
            if previous is not None:
                # Archive is informational; a failed write must not block the reset
                self.store.archive(KEY_ARCHIVE_PREFIX, previous.to_document(), to_epoch_ms(now))
            return self._rotate(now, "reset")

    def _rotate(self, now: datetime, reason: str) -> SecretRecord:
        value = self._generate(self.key_length)
        record = SecretRecord(value=value, issued_at=now, expires_at=now + self.ttl)
        self._record = record
        key_rotations_total.labels(reason=reason).inc()
        if not self.store.save(KEY_DOCUMENT, record.to_document()):
            logger.error("key_persist_failed", extra={"reason": reason})
        logger.info("key_rotated", extra={"reason": reason, "expires_at": record.expires_at.isoformat()})
        return record
