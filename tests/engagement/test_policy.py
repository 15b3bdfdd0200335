"""
Unit tests for evaluate: pure logic, no storage.
"""
import unittest
from datetime import datetime, timezone

from keygate.engagement.models import EligibilityReason, PolicyConfig, UserEngagement
from keygate.engagement.policy import evaluate

NOW = datetime(2026, 3, 1, tzinfo=timezone.utc)


def _engagement(count: int = 0, verified: bool = False) -> UserEngagement:
    return UserEngagement(
        user_id="u1",
        display_name="alice",
        qualifying_event_count=count,
        verified=verified,
        first_seen_at=NOW,
        last_seen_at=NOW,
    )


class TestEvaluate(unittest.TestCase):
    def test_default_policy_allows_everyone(self):
        decision = evaluate(None, PolicyConfig())
        self.assertTrue(decision.eligible)
        self.assertEqual(decision.reason, EligibilityReason.ELIGIBLE)

    def test_one_message_short(self):
        decision = evaluate(_engagement(9), PolicyConfig(minimum_qualifying_events=10))
        self.assertFalse(decision.eligible)
        self.assertEqual(decision.reason, EligibilityReason.INSUFFICIENT_ENGAGEMENT)
        self.assertEqual(decision.deficit, 1)
        self.assertEqual(decision.describe(), "1 more needed")
        self.assertEqual((decision.progress, decision.required), (9, 10))

    def test_threshold_reached(self):
        decision = evaluate(_engagement(10), PolicyConfig(minimum_qualifying_events=10))
        self.assertTrue(decision.eligible)
        self.assertEqual(decision.deficit, 0)

    def test_unknown_user_counts_as_zero(self):
        decision = evaluate(None, PolicyConfig(minimum_qualifying_events=3))
        self.assertFalse(decision.eligible)
        self.assertEqual(decision.deficit, 3)
        self.assertEqual(decision.progress, 0)

    def test_unverified_with_many_messages(self):
        config = PolicyConfig(require_verification=True, minimum_qualifying_events=10)
        decision = evaluate(_engagement(1000, verified=False), config)
        self.assertFalse(decision.eligible)
        self.assertEqual(decision.reason, EligibilityReason.NOT_VERIFIED)
        self.assertEqual(decision.describe(), "not verified")

    def test_verification_checked_before_count(self):
        config = PolicyConfig(require_verification=True, minimum_qualifying_events=10)
        decision = evaluate(_engagement(0, verified=False), config)
        self.assertEqual(decision.reason, EligibilityReason.NOT_VERIFIED)
        self.assertEqual(decision.deficit, 0)

    def test_verified_still_needs_messages(self):
        config = PolicyConfig(require_verification=True, minimum_qualifying_events=5)
        decision = evaluate(_engagement(2, verified=True), config)
        self.assertEqual(decision.reason, EligibilityReason.INSUFFICIENT_ENGAGEMENT)
        self.assertEqual(decision.deficit, 3)

    def test_verification_only_policy(self):
        config = PolicyConfig(require_verification=True)
        self.assertTrue(evaluate(_engagement(0, verified=True), config).eligible)
        self.assertFalse(evaluate(None, config).eligible)

    def test_negative_threshold_rejected(self):
        with self.assertRaises(ValueError):
            PolicyConfig(minimum_qualifying_events=-1)
