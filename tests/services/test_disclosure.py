"""Tests for DisclosureService: interactive gating, HTTP credential, owner reset."""
from datetime import datetime, timedelta, timezone

import pytest

from keygate.core.exceptions import AuthorizationDenied
from keygate.engagement.models import EligibilityReason, PolicyConfig
from keygate.engagement.tracker import EngagementTracker
from keygate.keys.models import KeyDenial, KeyGrant
from keygate.keys.store import KeyStore
from keygate.services.disclosure.service import DisclosureService
from keygate.storage.memory import InMemoryStore

NOW = datetime(2026, 3, 1, 8, 0, tzinfo=timezone.utc)


def _service(policy: PolicyConfig | None = None) -> DisclosureService:
    store = InMemoryStore()
    return DisclosureService(
        KeyStore(store, ttl=timedelta(hours=12)),
        EngagementTracker(store),
        policy or PolicyConfig(),
        api_credential="s3cret",
    )


class TestInteractive:
    def test_grant_includes_remaining_ttl(self):
        svc = _service()
        svc.key_store.current_or_rotate(NOW)

        result = svc.request_key("u1", NOW + timedelta(hours=1, minutes=30, seconds=20))

        assert isinstance(result, KeyGrant)
        assert result.value == svc.key_store.current.value
        assert (result.remaining.hours, result.remaining.minutes) == (10, 29)
        assert str(result.remaining) == "10h 29m"

    def test_denial_never_carries_secret(self):
        svc = _service(PolicyConfig(minimum_qualifying_events=10))
        for _ in range(9):
            svc.tracker.record_qualifying_event("u1", "alice", NOW)

        result = svc.request_key("u1", NOW)

        assert isinstance(result, KeyDenial)
        assert result.decision.reason == EligibilityReason.INSUFFICIENT_ENGAGEMENT
        assert result.decision.describe() == "1 more needed"
        assert not hasattr(result, "value")

    def test_denial_does_not_generate_key(self):
        svc = _service(PolicyConfig(require_verification=True))
        svc.request_key("u1", NOW)
        assert svc.key_store.current is None

    def test_grant_after_threshold(self):
        svc = _service(PolicyConfig(minimum_qualifying_events=2))
        svc.tracker.record_qualifying_event("u1", "alice", NOW)
        svc.tracker.record_qualifying_event("u1", "alice", NOW)
        assert isinstance(svc.request_key("u1", NOW), KeyGrant)

    def test_grant_rotates_expired_key(self):
        svc = _service()
        old = svc.key_store.current_or_rotate(NOW)
        result = svc.request_key("u1", NOW + timedelta(hours=13))
        assert result.value != old.value
        assert (result.remaining.hours, result.remaining.minutes) == (12, 0)


class TestProgrammatic:
    def test_correct_credential_returns_raw_value(self):
        svc = _service()
        value = svc.fetch_key("s3cret", NOW)
        assert value == svc.key_store.current.value

    def test_ignores_engagement_policy(self):
        svc = _service(PolicyConfig(require_verification=True, minimum_qualifying_events=100))
        assert svc.fetch_key("s3cret", NOW)

    @pytest.mark.parametrize("credential", [None, "", "wrong", "s3cret "])
    def test_bad_credential_denied(self, credential):
        svc = _service()
        with pytest.raises(AuthorizationDenied):
            svc.fetch_key(credential, NOW)
        assert svc.key_store.current is None


class TestReset:
    def test_owner_reset(self):
        svc = _service()
        before = svc.key_store.current_or_rotate(NOW)
        record = svc.reset_key(True, NOW + timedelta(hours=1))
        assert record.value != before.value
        assert record.expires_at == NOW + timedelta(hours=13)

    def test_non_owner_has_no_side_effects(self):
        svc = _service()
        before = svc.key_store.current_or_rotate(NOW)
        with pytest.raises(AuthorizationDenied):
            svc.reset_key(False, NOW)
        assert svc.key_store.current == before
