"""Tests for EngagementTracker: counting, sticky verification, persistence."""
from datetime import datetime, timedelta, timezone

from keygate.engagement.models import PolicyConfig
from keygate.engagement.policy import evaluate
from keygate.engagement.tracker import ENGAGEMENT_DOCUMENT, EngagementTracker
from keygate.storage.memory import InMemoryStore

NOW = datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)


class TestRecordQualifyingEvent:
    def test_every_call_counts(self):
        tracker = EngagementTracker(InMemoryStore())
        for i in range(25):
            record = tracker.record_qualifying_event("42", "alice", NOW + timedelta(seconds=i))
        assert record.qualifying_event_count == 25
        assert tracker.get("42").qualifying_event_count == 25

    def test_first_event_creates_record(self):
        tracker = EngagementTracker(InMemoryStore())
        assert tracker.get("42") is None

        record = tracker.record_qualifying_event("42", "alice", NOW)

        assert record.qualifying_event_count == 1
        assert record.verified is False
        assert record.first_seen_at == NOW == record.last_seen_at

    def test_name_and_last_seen_updated(self):
        tracker = EngagementTracker(InMemoryStore())
        tracker.record_qualifying_event("42", "alice", NOW)
        later = NOW + timedelta(hours=2)

        record = tracker.record_qualifying_event("42", "alice_renamed", later)

        assert record.display_name == "alice_renamed"
        assert record.first_seen_at == NOW
        assert record.last_seen_at == later

    def test_returned_record_is_a_copy(self):
        tracker = EngagementTracker(InMemoryStore())
        record = tracker.record_qualifying_event("42", "alice", NOW)
        record.qualifying_event_count = 0
        assert tracker.get("42").qualifying_event_count == 1


class TestMarkVerified:
    def test_creates_record_for_unknown_user(self):
        tracker = EngagementTracker(InMemoryStore())
        tracker.mark_verified("7", "bob", NOW)
        record = tracker.get("7")
        assert record.verified is True
        assert record.qualifying_event_count == 0

    def test_verification_unlocks_without_new_messages(self):
        tracker = EngagementTracker(InMemoryStore())
        config = PolicyConfig(require_verification=True, minimum_qualifying_events=10)
        for _ in range(1000):
            tracker.record_qualifying_event("42", "alice", NOW)
        assert evaluate(tracker.get("42"), config).eligible is False

        tracker.mark_verified("42")

        assert evaluate(tracker.get("42"), config).eligible is True
        assert tracker.get("42").qualifying_event_count == 1000

    def test_second_call_is_noop(self):
        store = InMemoryStore()
        tracker = EngagementTracker(store)
        tracker.mark_verified("7", "bob", NOW)
        store.fail_writes = True

        tracker.mark_verified("7", "someone-else", NOW + timedelta(days=1))

        assert tracker.get("7").display_name == "bob"
        assert tracker.get("7").verified is True


class TestPersistence:
    def test_reload_from_document(self):
        store = InMemoryStore()
        tracker = EngagementTracker(store)
        tracker.record_qualifying_event("42", "alice", NOW)
        tracker.record_qualifying_event("42", "alice", NOW)
        tracker.mark_verified("42")

        reloaded = EngagementTracker(store).get("42")

        assert reloaded.qualifying_event_count == 2
        assert reloaded.verified is True
        assert reloaded.first_seen_at == NOW

    def test_document_shape(self):
        store = InMemoryStore()
        EngagementTracker(store).record_qualifying_event("42", "alice", NOW)
        entry = store.documents[ENGAGEMENT_DOCUMENT]["users"]["42"]
        assert entry["displayName"] == "alice"
        assert entry["qualifyingEventCount"] == 1
        assert entry["verified"] is False

    def test_malformed_entries_are_skipped(self):
        store = InMemoryStore({
            ENGAGEMENT_DOCUMENT: {
                "users": {
                    "1": {"qualifyingEventCount": 3, "firstSeenAt": NOW.isoformat()},
                    "2": "garbage",
                    "3": {"qualifyingEventCount": -4, "firstSeenAt": NOW.isoformat()},
                    "4": {"qualifyingEventCount": 1},
                }
            }
        })
        tracker = EngagementTracker(store)
        assert tracker.get("1").qualifying_event_count == 3
        assert tracker.get("2") is None
        assert tracker.get("3") is None
        assert tracker.get("4") is None

    def test_write_failure_keeps_counting(self):
        store = InMemoryStore()
        store.fail_writes = True
        tracker = EngagementTracker(store)
        tracker.record_qualifying_event("42", "alice", NOW)
        tracker.record_qualifying_event("42", "alice", NOW)
        assert tracker.get("42").qualifying_event_count == 2
        assert ENGAGEMENT_DOCUMENT not in store.documents
