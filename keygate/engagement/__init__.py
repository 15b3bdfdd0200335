"""
Engagement gating: per-user counters (tracker), eligibility decision (policy),
flood detection (spam). Decision and state are separate; the contract between
them is UserEngagement.
"""
from keygate.engagement.models import (
    EligibilityDecision,
    EligibilityReason,
    PolicyConfig,
    UserEngagement,
)
from keygate.engagement.policy import evaluate
from keygate.engagement.spam import SpamGuard
from keygate.engagement.tracker import EngagementTracker

__all__ = [
    "EligibilityDecision",
    "EligibilityReason",
    "EngagementTracker",
    "PolicyConfig",
    "SpamGuard",
    "UserEngagement",
    "evaluate",
]
