from datetime import datetime, timedelta, timezone

from keygate.services.usage.service import USAGE_DOCUMENT, UsageTracker
from keygate.storage.memory import InMemoryStore

NOW = datetime(2026, 3, 1, 10, 15, tzinfo=timezone.utc)


def test_counts_per_user_and_command():
    usage = UsageTracker(InMemoryStore())
    assert usage.track("1", "alice", "get_key", NOW) == 1
    assert usage.track("1", "alice", "get_key", NOW) == 2
    assert usage.track("1", "alice", "my_stats", NOW) == 1
    assert usage.track("2", "bob", "get_key", NOW) == 1

    rows = {(r.user_id, r.command): r.count for r in usage.report()}
    assert rows == {("1", "get_key"): 2, ("1", "my_stats"): 1, ("2", "get_key"): 1}


def test_username_refreshed_and_persisted():
    store = InMemoryStore()
    usage = UsageTracker(store)
    usage.track("1", "alice", "get_key", NOW)
    usage.track("1", "alice2", "get_key", NOW + timedelta(minutes=5))

    entry = store.documents[USAGE_DOCUMENT]["users"]["1"]
    assert entry["username"] == "alice2"
    assert entry["commands"]["get_key"]["count"] == 2
    assert entry["commands"]["get_key"]["lastUsed"] == (NOW + timedelta(minutes=5)).isoformat()

    reloaded = UsageTracker(store).report()
    assert reloaded[0].count == 2
    assert reloaded[0].last_used == NOW + timedelta(minutes=5)


def test_format_table():
    usage = UsageTracker(InMemoryStore())
    assert usage.format_table() is None

    usage.track("1", "alice", "get_key", NOW)
    table = usage.format_table()

    assert table.splitlines()[0] == "USER | COMMAND | COUNT | LAST USED"
    assert "alice | /get_key | 1 | 2026-03-01 10:15" in table


def test_reads_camelcase_document_shape():
    store = InMemoryStore({
        USAGE_DOCUMENT: {
            "users": {
                "9": {"username": "carol", "commands": {"get-key": {"count": 4, "lastUsed": "2025-01-02T03:04:05.000Z"}}},
                "10": "garbage",
            }
        }
    })
    rows = UsageTracker(store).report()
    assert len(rows) == 1
    assert rows[0].count == 4
    assert rows[0].last_used.year == 2025
