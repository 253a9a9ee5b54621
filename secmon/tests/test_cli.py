"""Tests for the command-line entry point."""

import json
from datetime import datetime, timedelta, timezone

import pytest

from secmon.main import main
from secmon.models import ActivityEvent, ThreatRecord
from secmon.storage import SQLiteStore

ADMIN_ARGS = ["--user-id", "1", "--role", "super_admin"]


def _seed(db_path):
    store = SQLiteStore(db_path)
    store.connect()
    store.init_db()
    now = datetime.now(timezone.utc)
    for i in range(4):
        store.append_event(ActivityEvent(
            timestamp=now - timedelta(minutes=i + 1), action="FAILED_LOGIN",
            actor_id=7, ip="10.0.0.5",
        ))
    threat = store.append_threat(ThreatRecord(
        id="", level="high", type="suspicious_ip_activity", description="seeded",
        detected_at=now - timedelta(minutes=10), ip="203.0.113.9",
    ))
    store.close()
    return threat.id


class TestCli:
    def test_dashboard(self, tmp_path, capsys):
        db = str(tmp_path / "secmon.db")
        _seed(db)
        assert main(["--db", db, *ADMIN_ARGS, "dashboard", "--timeframe", "1h"]) == 0
        out = json.loads(capsys.readouterr().out)
        types = [t["type"] for t in out["activeThreats"]]
        assert types == ["suspicious_ip_activity", "brute_force_attack"]
        assert out["summary"]["totalActiveThreats"] == 2

    def test_non_admin_rejected(self, tmp_path, capsys):
        db = str(tmp_path / "secmon.db")
        assert main(["--db", db, "--user-id", "5", "--role", "tenant", "dashboard"]) == 1
        assert "Access denied" in capsys.readouterr().err

    def test_resolve_writes_audit_entry(self, tmp_path, capsys):
        db = str(tmp_path / "secmon.db")
        threat_id = _seed(db)
        assert main(["--db", db, *ADMIN_ARGS, "resolve", threat_id, "blocked upstream"]) == 0
        assert json.loads(capsys.readouterr().out)["success"] is True

        store = SQLiteStore(db)
        store.connect()
        now = datetime.now(timezone.utc)
        actions = [e.action for e in store.fetch_events(now - timedelta(minutes=5), now)]
        store.close()
        assert "SECURITY_THREAT_RESOLVED" in actions

    def test_monitor(self, tmp_path, capsys):
        db = str(tmp_path / "secmon.db")
        assert main(["--db", db, *ADMIN_ARGS, "monitor", "off"]) == 0
        assert "stopped" in json.loads(capsys.readouterr().out)["message"]

    def test_ack(self, tmp_path, capsys):
        db = str(tmp_path / "secmon.db")
        assert main(["--db", db, *ADMIN_ARGS, "ack", "alert_audit_threat_1",
                     "--notes", "seen"]) == 0
        assert json.loads(capsys.readouterr().out)["success"] is True

        store = SQLiteStore(db)
        store.connect()
        now = datetime.now(timezone.utc)
        [entry] = list(store.fetch_events(now - timedelta(minutes=5), now))
        store.close()
        assert entry.action == "SECURITY_ALERT_ACKNOWLEDGED"
        assert entry.details["notes"] == "seen"

    def test_principal_must_be_given(self, tmp_path):
        with pytest.raises(SystemExit):
            main(["--db", str(tmp_path / "secmon.db"), "dashboard"])
