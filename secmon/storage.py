"""SQLite-backed threat store.

Three tables mirror the application's schema: ``audit_log`` (the activity
log), ``security_events`` (persisted threats) and ``security_alerts``.
Timestamps are stored as fixed-width UTC ISO strings so range queries can
compare them as text.
"""

import json
import os
import sqlite3
import threading
from datetime import datetime, timezone
from typing import Iterator

from secmon.models import (
    ActivityEvent, StoredAlert, ThreatRecord, Window, as_utc, canonical_type,
)
from secmon.store import _type_filter

# Default DB location: <repo>/data/secmon.db
DB_PATH = os.path.join(
    os.path.dirname(os.path.dirname(__file__)),
    "data",
    "secmon.db",
)


def _ts(value: datetime | None) -> str | None:
    # Fixed-width UTC ISO strings sort the same as the instants they encode.
    if value is None:
        return None
    return as_utc(value).isoformat(timespec="microseconds")


def _dt(value: str | None) -> datetime | None:
    if value is None:
        return None
    return datetime.fromisoformat(value).astimezone(timezone.utc)


class SQLiteStore:
    """Durable store backed by a single SQLite file.

    One connection is shared across threads, so every statement runs under
    a lock.
    """

    def __init__(self, db_path: str = DB_PATH) -> None:
        self.db_path = db_path
        self.conn: sqlite3.Connection | None = None
        self._lock = threading.Lock()

    def connect(self) -> None:
        if self.db_path != ":memory:":
            os.makedirs(os.path.dirname(os.path.abspath(self.db_path)), exist_ok=True)
        self.conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self.conn.row_factory = sqlite3.Row

    def close(self) -> None:
        if self.conn is not None:
            self.conn.close()
            self.conn = None

    def init_db(self) -> None:
        assert self.conn is not None
        with self._lock:
            self.conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS audit_log (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    timestamp TEXT NOT NULL,
                    action TEXT NOT NULL,
                    user_id INTEGER,
                    ip TEXT,
                    user_agent TEXT,
                    resource TEXT,
                    resource_id TEXT,
                    details TEXT
                );
                CREATE INDEX IF NOT EXISTS idx_audit_log_timestamp
                    ON audit_log (timestamp);

                CREATE TABLE IF NOT EXISTS security_events (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    timestamp TEXT NOT NULL,
                    severity TEXT NOT NULL,
                    type TEXT NOT NULL,
                    description TEXT,
                    user_id INTEGER,
                    property_id INTEGER,
                    ip TEXT,
                    metadata TEXT,
                    resolved INTEGER NOT NULL DEFAULT 0,
                    resolved_at TEXT,
                    resolved_by INTEGER
                );

                CREATE TABLE IF NOT EXISTS security_alerts (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    event_id INTEGER REFERENCES security_events (id),
                    sent INTEGER NOT NULL DEFAULT 0,
                    sent_at TEXT
                );
                """
            )
            self.conn.commit()

    # ------------------------------------------------------------------
    # Activity log
    # ------------------------------------------------------------------

    def append_event(self, event: ActivityEvent) -> ActivityEvent:
        assert self.conn is not None
        with self._lock, self.conn:
            self._insert_event(event)
        return event

    def _insert_event(self, event: ActivityEvent) -> None:
        # caller holds the lock and owns the transaction
        self.conn.execute(
            """
            INSERT INTO audit_log
                (timestamp, action, user_id, ip, user_agent, resource, resource_id, details)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                _ts(event.timestamp),
                event.action,
                event.actor_id,
                event.ip,
                event.user_agent,
                event.resource,
                event.resource_id,
                json.dumps(event.details),
            ),
        )

    def append_audit_entry(self, actor_id, action, resource, resource_id, detail, timestamp):
        event = ActivityEvent(
            timestamp=timestamp,
            action=action,
            actor_id=actor_id,
            resource=resource,
            resource_id=resource_id,
            details=dict(detail),
        )
        return self.append_event(event)

    def fetch_events(self, since: datetime, until: datetime) -> Iterator[ActivityEvent]:
        assert self.conn is not None
        with self._lock:
            rows = self.conn.execute(
                """
                SELECT timestamp, action, user_id, ip, user_agent, resource, resource_id, details
                FROM audit_log
                WHERE timestamp >= ? AND timestamp <= ?
                ORDER BY timestamp DESC, id DESC
                """,
                (_ts(since), _ts(until)),
            ).fetchall()
        for row in rows:
            yield ActivityEvent(
                timestamp=_dt(row["timestamp"]),
                action=row["action"],
                actor_id=row["user_id"],
                ip=row["ip"],
                user_agent=row["user_agent"],
                resource=row["resource"],
                resource_id=row["resource_id"],
                details=json.loads(row["details"] or "{}"),
            )

    # ------------------------------------------------------------------
    # Threats
    # ------------------------------------------------------------------

    def append_threat(self, threat: ThreatRecord) -> ThreatRecord:
        assert self.conn is not None
        with self._lock:
            cur = self.conn.execute(
                """
                INSERT INTO security_events
                    (timestamp, severity, type, description, user_id, property_id, ip,
                     metadata, resolved, resolved_at, resolved_by)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    _ts(threat.detected_at),
                    threat.level,
                    threat.type,
                    threat.description,
                    threat.user_id,
                    threat.property_id,
                    threat.ip,
                    json.dumps(threat.detail),
                    int(threat.resolved),
                    _ts(threat.resolved_at),
                    threat.resolved_by,
                ),
            )
            self.conn.commit()
        return self._threat(cur.lastrowid)

    def list_unresolved(self, types, window: Window) -> list[ThreatRecord]:
        assert self.conn is not None
        wanted = _type_filter(types)
        with self._lock:
            rows = self.conn.execute(
                """
                SELECT * FROM security_events
                WHERE resolved = 0 AND timestamp >= ?
                ORDER BY timestamp DESC, id DESC
                """,
                (_ts(window.since),),
            ).fetchall()
        threats = [self._row_to_threat(r) for r in rows]
        if wanted is None:
            return threats
        return [t for t in threats if canonical_type(t.type) in wanted]

    def list_resolved(self) -> list[ThreatRecord]:
        assert self.conn is not None
        with self._lock:
            rows = self.conn.execute(
                """
                SELECT * FROM security_events
                WHERE resolved = 1 AND resolved_at IS NOT NULL
                """
            ).fetchall()
        return [self._row_to_threat(r) for r in rows]

    def resolve_threat(self, threat_id, resolved_by, resolution, at, audit=None) -> bool:
        assert self.conn is not None
        try:
            row_id = int(threat_id)
        except (TypeError, ValueError):
            return False  # ephemeral ids never reach the table
        # One transaction: the flip and its audit row commit or roll back together.
        with self._lock, self.conn:
            row = self.conn.execute(
                "SELECT metadata FROM security_events WHERE id = ? AND resolved = 0",
                (row_id,),
            ).fetchone()
            if row is None:
                return False
            metadata = json.loads(row["metadata"] or "{}")
            metadata["resolution"] = resolution
            self.conn.execute(
                """
                UPDATE security_events
                SET resolved = 1, resolved_at = ?, resolved_by = ?, metadata = ?
                WHERE id = ?
                """,
                (_ts(at), resolved_by, json.dumps(metadata), row_id),
            )
            if audit is not None:
                self._insert_event(audit)
        return True

    # ------------------------------------------------------------------
    # Alerts
    # ------------------------------------------------------------------

    def append_alert(self, threat_id, sent=True, sent_at=None) -> StoredAlert:
        assert self.conn is not None
        with self._lock:
            cur = self.conn.execute(
                "INSERT INTO security_alerts (event_id, sent, sent_at) VALUES (?, ?, ?)",
                (int(threat_id), int(sent), _ts(sent_at)),
            )
            self.conn.commit()
        return StoredAlert(str(cur.lastrowid), self._threat(int(threat_id)), sent, sent_at)

    def list_alerts(self, window: Window, limit: int = 20) -> list[StoredAlert]:
        assert self.conn is not None
        with self._lock:
            rows = self.conn.execute(
                """
                SELECT id, event_id, sent, sent_at FROM security_alerts
                WHERE sent_at >= ? AND sent_at <= ?
                ORDER BY sent_at DESC, id DESC
                LIMIT ?
                """,
                (_ts(window.since), _ts(window.now), limit),
            ).fetchall()
        return [
            StoredAlert(
                id=str(r["id"]),
                threat=self._threat(r["event_id"]) if r["event_id"] is not None else None,
                sent=bool(r["sent"]),
                sent_at=_dt(r["sent_at"]),
            )
            for r in rows
        ]

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _threat(self, row_id: int) -> ThreatRecord | None:
        with self._lock:
            row = self.conn.execute(
                "SELECT * FROM security_events WHERE id = ?", (row_id,)
            ).fetchone()
        return self._row_to_threat(row) if row is not None else None

    @staticmethod
    def _row_to_threat(row: sqlite3.Row) -> ThreatRecord:
        return ThreatRecord(
            id=str(row["id"]),
            level=row["severity"],
            type=row["type"],
            description=row["description"] or "",
            detected_at=_dt(row["timestamp"]),
            user_id=row["user_id"],
            property_id=row["property_id"],
            ip=row["ip"],
            detail=json.loads(row["metadata"] or "{}"),
            resolved=bool(row["resolved"]),
            resolved_at=_dt(row["resolved_at"]),
            resolved_by=row["resolved_by"],
        )
