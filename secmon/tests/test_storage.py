"""Tests for the SQLite-backed store."""

import sqlite3
from datetime import datetime, timedelta, timezone

import pytest

from secmon.models import ActivityEvent, ThreatRecord, Window
from secmon.storage import SQLiteStore

NOW = datetime(2026, 3, 10, 14, 0, tzinfo=timezone.utc)
WINDOW = Window.for_timeframe("24h", NOW)


@pytest.fixture
def store(tmp_path):
    s = SQLiteStore(str(tmp_path / "secmon.db"))
    s.connect()
    s.init_db()
    yield s
    s.close()


def _threat(type="brute_force_attack", user_id=7, hours_ago=1, **kw):
    return ThreatRecord(
        id="", level="high", type=type, description="stored",
        detected_at=NOW - timedelta(hours=hours_ago), user_id=user_id, **kw,
    )


class TestEvents:
    def test_round_trip(self, store):
        event = ActivityEvent(
            timestamp=NOW - timedelta(minutes=3), action="FAILED_LOGIN", actor_id=7,
            ip="10.0.0.5", user_agent="curl/8.0", resource="auth",
            details={"reason": "bad password"},
        )
        store.append_event(event)
        [loaded] = list(store.fetch_events(WINDOW.since, NOW))
        assert loaded == event

    def test_newest_first_and_bounded(self, store):
        for m in (10, 1, 5, 60 * 25):
            store.append_event(ActivityEvent(
                timestamp=NOW - timedelta(minutes=m), action="LOGIN", actor_id=1,
            ))
        rows = list(store.fetch_events(WINDOW.since, NOW))
        assert [NOW - e.timestamp for e in rows] == [
            timedelta(minutes=1), timedelta(minutes=5), timedelta(minutes=10),
        ]

    def test_audit_entry(self, store):
        store.append_audit_entry(1, "SECURITY_THREAT_RESOLVED", "security", "4",
                                 {"resolution": "ok"}, NOW)
        [entry] = list(store.fetch_events(NOW - timedelta(seconds=1), NOW))
        assert (entry.actor_id, entry.resource_id) == (1, "4")
        assert entry.details == {"resolution": "ok"}


class TestThreats:
    def test_append_assigns_id(self, store):
        first = store.append_threat(_threat())
        second = store.append_threat(_threat(user_id=8))
        assert (first.id, second.id) == ("1", "2")
        assert first.detected_at == NOW - timedelta(hours=1)

    def test_unresolved_window_and_order(self, store):
        store.append_threat(_threat(hours_ago=3))
        store.append_threat(_threat(hours_ago=1))
        store.append_threat(_threat(hours_ago=30))
        rows = store.list_unresolved(None, WINDOW)
        assert [t.id for t in rows] == ["2", "1"]

    def test_type_filter_accepts_legacy_names(self, store):
        store.append_threat(_threat(type="MULTIPLE_FAILED_LOGINS"))
        store.append_threat(_threat(type="unusual_activity_pattern"))
        rows = store.list_unresolved(["brute_force_attack"], WINDOW)
        assert [t.type for t in rows] == ["MULTIPLE_FAILED_LOGINS"]

    def test_ip_and_detail_round_trip(self, store):
        stored = store.append_threat(_threat(
            type="suspicious_ip_activity", user_id=None, ip="10.0.0.5",
            detail={"failedAttempts": 12},
        ))
        assert stored.ip == "10.0.0.5"
        assert stored.detail == {"failedAttempts": 12}
        assert stored.subject == "10.0.0.5"

    def test_resolve(self, store):
        stored = store.append_threat(_threat())
        assert store.resolve_threat(stored.id, 1, "password reset", NOW) is True
        assert store.list_unresolved(None, WINDOW) == []
        [resolved] = store.list_resolved()
        assert resolved.resolved_by == 1
        assert resolved.resolved_at == NOW
        assert resolved.detail["resolution"] == "password reset"

    def test_resolve_with_audit_entry(self, store):
        stored = store.append_threat(_threat())
        entry = ActivityEvent(timestamp=NOW, action="SECURITY_THREAT_RESOLVED",
                              actor_id=1, resource="security", resource_id=stored.id)
        assert store.resolve_threat(stored.id, 1, "done", NOW, audit=entry) is True
        [logged] = list(store.fetch_events(NOW - timedelta(seconds=1), NOW))
        assert logged == entry

    def test_failed_audit_rolls_back_resolution(self, store):
        stored = store.append_threat(_threat())
        store.conn.execute(
            "CREATE TRIGGER audit_readonly BEFORE INSERT ON audit_log "
            "BEGIN SELECT RAISE(ABORT, 'audit log is read-only'); END"
        )
        entry = ActivityEvent(timestamp=NOW, action="SECURITY_THREAT_RESOLVED",
                              actor_id=1, resource_id=stored.id)
        with pytest.raises(sqlite3.DatabaseError):
            store.resolve_threat(stored.id, 1, "done", NOW, audit=entry)
        assert store.list_resolved() == []
        assert [t.id for t in store.list_unresolved(None, WINDOW)] == [stored.id]

    def test_resolve_twice_fails(self, store):
        stored = store.append_threat(_threat())
        store.resolve_threat(stored.id, 1, "x", NOW)
        assert store.resolve_threat(stored.id, 1, "x", NOW) is False

    def test_resolve_synthetic_id_fails(self, store):
        assert store.resolve_threat("audit_threat_1", 1, "x", NOW) is False

    def test_resolved_not_window_scoped(self, store):
        old = _threat(hours_ago=24 * 60, resolved=True,
                      resolved_at=NOW - timedelta(days=59))
        store.append_threat(old)
        assert len(store.list_resolved()) == 1


class TestAlerts:
    def test_alerts_newest_first_with_threat(self, store):
        threat = store.append_threat(_threat())
        for m in (30, 2, 10):
            store.append_alert(threat.id, sent=True, sent_at=NOW - timedelta(minutes=m))
        alerts = store.list_alerts(WINDOW)
        assert [a.id for a in alerts] == ["2", "3", "1"]
        assert alerts[0].threat.id == threat.id

    def test_limit_and_window(self, store):
        threat = store.append_threat(_threat())
        for m in range(1, 26):
            store.append_alert(threat.id, sent_at=NOW - timedelta(minutes=m))
        store.append_alert(threat.id, sent_at=NOW - timedelta(days=2))
        assert len(store.list_alerts(WINDOW)) == 20
        assert len(store.list_alerts(WINDOW, limit=50)) == 25
