"""Tests for the activity log reader."""

from datetime import datetime, timedelta, timezone

import pytest

from secmon.activity_log import ActivityLogReader, is_security_relevant
from secmon.errors import LogUnavailable
from secmon.models import ActivityEvent, Window
from secmon.store import InMemoryStore

NOW = datetime(2026, 3, 10, 14, 0, tzinfo=timezone.utc)
WINDOW = Window.for_timeframe("1h", NOW)


def _event(action, minutes_ago=1, actor_id=7):
    return ActivityEvent(timestamp=NOW - timedelta(minutes=minutes_ago),
                         action=action, actor_id=actor_id, ip="10.0.0.5")


class TestRelevance:
    @pytest.mark.parametrize("action", [
        "FAILED_LOGIN", "LOGIN", "LOGOUT", "UNAUTHORIZED_ACCESS", "PERMISSION_DENIED",
        "SECURITY_THREAT_RESOLVED", "SECURITY_MONITORING_STARTED",
    ])
    def test_security_actions(self, action):
        assert is_security_relevant(action)

    @pytest.mark.parametrize("action", ["CREATE_LEASE", "UPDATE_PROPERTY", "PAYMENT_RECEIVED"])
    def test_business_actions(self, action):
        assert not is_security_relevant(action)


class TestReader:
    def test_filters_irrelevant_actions(self):
        store = InMemoryStore()
        store.append_event(_event("LOGIN"))
        store.append_event(_event("CREATE_LEASE"))
        events = ActivityLogReader(store).read(WINDOW)
        assert [e.action for e in events] == ["LOGIN"]

    def test_newest_first(self):
        store = InMemoryStore()
        for m in (30, 5, 15):
            store.append_event(_event("FAILED_LOGIN", minutes_ago=m))
        events = ActivityLogReader(store).read(WINDOW)
        assert [e.timestamp for e in events] == [
            NOW - timedelta(minutes=m) for m in (5, 15, 30)
        ]

    def test_window_bounds(self):
        store = InMemoryStore()
        store.append_event(_event("LOGIN", minutes_ago=59))
        store.append_event(_event("LOGIN", minutes_ago=61))
        assert len(ActivityLogReader(store).read(WINDOW)) == 1

    def test_capped_at_limit(self):
        store = InMemoryStore()
        for i in range(150):
            store.append_event(_event("LOGIN", minutes_ago=i % 50 + 1))
        assert len(ActivityLogReader(store).read(WINDOW)) == 100

    def test_cap_applies_after_filter(self):
        store = InMemoryStore()
        for _ in range(5):
            store.append_event(_event("CREATE_LEASE", minutes_ago=1))
        store.append_event(_event("LOGIN", minutes_ago=2))
        events = ActivityLogReader(store, limit=1).read(WINDOW)
        assert [e.action for e in events] == ["LOGIN"]

    def test_store_failure_raises_log_unavailable(self):
        class Broken:
            def fetch_events(self, since, until):
                raise OSError("disk gone")

        with pytest.raises(LogUnavailable) as exc_info:
            ActivityLogReader(Broken()).read(WINDOW)
        assert isinstance(exc_info.value.__cause__, OSError)

    def test_failure_during_iteration_raises_log_unavailable(self):
        class Flaky:
            def fetch_events(self, since, until):
                yield _event("LOGIN")
                raise OSError("cursor closed")

        with pytest.raises(LogUnavailable):
            ActivityLogReader(Flaky()).read(WINDOW)
