"""
DTO engagement: UserEngagement (owned by EngagementTracker), PolicyConfig and
EligibilityDecision (input/output of evaluate).
"""
from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


class UserEngagement(BaseModel):
    user_id: str
    # Last observed name, not an identity key
    display_name: str = ""
    qualifying_event_count: int = Field(0, ge=0)
    verified: bool = False
    first_seen_at: datetime
    last_seen_at: datetime

    def to_document(self) -> dict:
        return {
            "displayName": self.display_name,
            "qualifyingEventCount": self.qualifying_event_count,
            "verified": self.verified,
            "firstSeenAt": self.first_seen_at.isoformat(),
            "lastSeenAt": self.last_seen_at.isoformat(),
        }

    @classmethod
    def from_document(cls, user_id: str, raw: dict) -> UserEngagement:
        return cls(
            user_id=user_id,
            display_name=raw.get("displayName") or "",
            qualifying_event_count=raw.get("qualifyingEventCount", 0),
            verified=bool(raw.get("verified", False)),
            first_seen_at=raw["firstSeenAt"],
            last_seen_at=raw.get("lastSeenAt") or raw["firstSeenAt"],
        )


class PolicyConfig(BaseModel):
    """Eligibility knobs. Defaults are the most permissive policy."""

    require_verification: bool = False
    minimum_qualifying_events: int = Field(0, ge=0)

    model_config = {"frozen": True}


class EligibilityReason(str, Enum):
    ELIGIBLE = "eligible"
    NOT_VERIFIED = "not verified"
    INSUFFICIENT_ENGAGEMENT = "insufficient engagement"


class EligibilityDecision(BaseModel):
    eligible: bool
    reason: EligibilityReason
    # Messages still missing; 0 unless reason is INSUFFICIENT_ENGAGEMENT
    deficit: int = 0
    progress: int = 0
    required: int = 0
    verified: bool = False

    model_config = {"frozen": True}

    def describe(self) -> str:
        if self.reason is EligibilityReason.INSUFFICIENT_ENGAGEMENT:
            return f"{self.deficit} more needed"
        return self.reason.value
