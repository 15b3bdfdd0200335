from datetime import datetime, timedelta, timezone

from keygate.engagement.spam import SpamGuard

NOW = datetime(2026, 3, 1, tzinfo=timezone.utc)


def test_flags_event_above_threshold():
    guard = SpamGuard(window_seconds=10, max_events=3)
    results = [guard.register("u1", NOW + timedelta(seconds=i)) for i in range(4)]
    assert results == [False, False, False, True]


def test_old_events_are_evicted():
    guard = SpamGuard(window_seconds=10, max_events=3)
    for i in range(3):
        guard.register("u1", NOW + timedelta(seconds=i))
    assert guard.register("u1", NOW + timedelta(seconds=30)) is False
    assert guard.window_size("u1") == 1


def test_users_are_independent():
    guard = SpamGuard(window_seconds=10, max_events=1)
    assert guard.register("u1", NOW) is False
    assert guard.register("u2", NOW) is False
    assert guard.register("u1", NOW) is True


def test_reset_clears_window():
    guard = SpamGuard(window_seconds=10, max_events=1)
    guard.register("u1", NOW)
    guard.register("u1", NOW)
    guard.reset("u1")
    assert guard.window_size("u1") == 0
    assert guard.register("u1", NOW) is False
