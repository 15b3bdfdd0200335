"""
DTO keys: SecretRecord (owned by KeyStore), persisted snapshot schema,
and the results of the disclosure paths (KeyGrant, KeyDenial).
"""
from __future__ import annotations

from datetime import datetime, timedelta, timezone

from pydantic import BaseModel, Field

from keygate.engagement.models import EligibilityDecision


def to_epoch_ms(moment: datetime) -> int:
    return int(moment.timestamp() * 1000)


def from_epoch_ms(value: int | float) -> datetime:
    return datetime.fromtimestamp(value / 1000, tz=timezone.utc)


class SecretRecord(BaseModel):
    """Current shared secret. Replaced wholesale on rotation, never mutated."""

    value: str
    issued_at: datetime
    expires_at: datetime

    model_config = {"frozen": True}

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at <= now

    def remaining(self, now: datetime) -> timedelta:
        return max(timedelta(0), self.expires_at - now)

    def to_document(self) -> dict:
        return {
            "key": self.value,
            "issuedAt": to_epoch_ms(self.issued_at),
            "expiresAt": to_epoch_ms(self.expires_at),
        }


class SecretDocument(BaseModel):
    """On-disk shape of the current key. issuedAt is absent in older snapshots."""

    key: str = Field(..., min_length=1)
    expiresAt: int | float
    issuedAt: int | float | None = None

    def to_record(self, ttl: timedelta) -> SecretRecord:
        expires_at = from_epoch_ms(self.expiresAt)
        issued_at = from_epoch_ms(self.issuedAt) if self.issuedAt is not None else expires_at - ttl
        return SecretRecord(value=self.key, issued_at=issued_at, expires_at=expires_at)


# ----- Disclosure results -----


class RemainingTtl(BaseModel):
    hours: int
    minutes: int

    model_config = {"frozen": True}

    @classmethod
    def from_timedelta(cls, remaining: timedelta) -> RemainingTtl:
        total_minutes = int(max(remaining, timedelta(0)).total_seconds()) // 60
        return cls(hours=total_minutes // 60, minutes=total_minutes % 60)

    def __str__(self) -> str:
        return f"{self.hours}h {self.minutes}m"


class KeyGrant(BaseModel):
    """Interactive disclosure granted: the secret plus its remaining lifetime."""

    value: str
    expires_at: datetime
    remaining: RemainingTtl

    model_config = {"frozen": True}


class KeyDenial(BaseModel):
    """Interactive disclosure denied. Never carries the secret."""

    decision: EligibilityDecision

    model_config = {"frozen": True}
