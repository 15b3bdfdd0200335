"""
Sliding-window flood detection. Memory only: windows start empty after a restart.
"""
from __future__ import annotations

import threading
from collections import deque
from datetime import datetime, timedelta


class SpamGuard:
    def __init__(self, window_seconds: int, max_events: int) -> None:
        self.window = timedelta(seconds=window_seconds)
        self.max_events = max_events
        self._lock = threading.Lock()
        self._events: dict[str, deque[datetime]] = {}

    def register(self, user_id: str, now: datetime) -> bool:
        """Record one message; True if the user is now above max_events in the window."""
        with self._lock:
            events = self._events.setdefault(user_id, deque())
            cutoff = now - self.window
            while events and events[0] <= cutoff:
                events.popleft()
            events.append(now)
            return len(events) > self.max_events

    def reset(self, user_id: str) -> None:
        with self._lock:
            self._events.pop(user_id, None)

    def window_size(self, user_id: str) -> int:
        with self._lock:
            return len(self._events.get(user_id, ()))
