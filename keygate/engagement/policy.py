"""
Decision only: evaluate(engagement, config) -> EligibilityDecision.
Pure function, no I/O. The first failing check determines the reason:
verification, then message count.
"""
from __future__ import annotations

from keygate.engagement.models import (
    EligibilityDecision,
    EligibilityReason,
    PolicyConfig,
    UserEngagement,
)


def evaluate(engagement: UserEngagement | None, config: PolicyConfig) -> EligibilityDecision:
    """
    Decide whether the requester may read the key via the interactive path.

    A user the tracker has never seen is evaluated as zero messages and
    unverified, not as an error.
    """
    count = engagement.qualifying_event_count if engagement else 0
    verified = engagement.verified if engagement else False
    required = config.minimum_qualifying_events

    if config.require_verification and not verified:
        return EligibilityDecision(
            eligible=False,
            reason=EligibilityReason.NOT_VERIFIED,
            progress=count,
            required=required,
            verified=verified,
        )

    if count < required:
        return EligibilityDecision(
            eligible=False,
            reason=EligibilityReason.INSUFFICIENT_ENGAGEMENT,
            deficit=required - count,
            progress=count,
            required=required,
            verified=verified,
        )

    return EligibilityDecision(
        eligible=True,
        reason=EligibilityReason.ELIGIBLE,
        progress=count,
        required=required,
        verified=verified,
    )
