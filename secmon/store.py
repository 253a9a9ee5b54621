"""Threat store contract and an in-memory implementation.

The engine only reads through this interface.  Writes (events, threats,
alerts) belong to the collaborators that own the records; the engine's own
writes are audit entries and, when resolution mode is "mutate", the
resolve flag.
"""

import itertools
import threading
from dataclasses import replace
from datetime import datetime
from typing import Iterable, Protocol

from secmon.models import (
    ActivityEvent, StoredAlert, ThreatRecord, Window, as_utc, canonical_type,
)


class ThreatStore(Protocol):
    def fetch_events(self, since: datetime, until: datetime) -> Iterable[ActivityEvent]:
        """Activity events in [since, until], newest first."""

    def append_event(self, event: ActivityEvent) -> ActivityEvent: ...

    def list_unresolved(self, types: Iterable[str] | None, window: Window) -> list[ThreatRecord]:
        """Unresolved threats detected inside the window, newest first."""

    def list_resolved(self) -> list[ThreatRecord]:
        """Every resolved threat, regardless of window."""

    def list_alerts(self, window: Window, limit: int = 20) -> list[StoredAlert]:
        """Alerts sent inside the window, newest first."""

    def append_threat(self, threat: ThreatRecord) -> ThreatRecord: ...

    def append_alert(self, threat_id: str, sent: bool = True,
                     sent_at: datetime | None = None) -> StoredAlert: ...

    def append_audit_entry(self, actor_id: int | None, action: str, resource: str,
                           resource_id: str | None, detail: dict,
                           timestamp: datetime) -> ActivityEvent: ...

    def resolve_threat(self, threat_id: str, resolved_by: int, resolution: str,
                       at: datetime, audit: ActivityEvent | None = None) -> bool:
        """Flip an unresolved threat to resolved.  False if none matched.

        When ``audit`` is given it is appended in the same unit of work:
        either both writes land or neither does.
        """


def _type_filter(types):
    if types is None:
        return None
    return {canonical_type(t) for t in types}


class InMemoryStore:
    """Thread-safe store kept in lists.  Used by tests and demos."""

    def __init__(self):
        self._lock = threading.RLock()
        self._events: list[ActivityEvent] = []
        self._threats: list[ThreatRecord] = []
        self._alerts: list[tuple[str, str, bool, datetime | None]] = []
        self._threat_ids = itertools.count(1)
        self._alert_ids = itertools.count(1)

    # -- activity log ------------------------------------------------------

    def fetch_events(self, since, until):
        since, until = as_utc(since), as_utc(until)
        with self._lock:
            rows = [e for e in self._events if since <= e.timestamp <= until]
        return sorted(rows, key=lambda e: e.timestamp, reverse=True)

    def append_event(self, event):
        with self._lock:
            self._events.append(event)
        return event

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

    # -- threats -----------------------------------------------------------

    def append_threat(self, threat):
        with self._lock:
            stored = replace(threat, id=str(next(self._threat_ids)))
            self._threats.append(stored)
        return stored

    def list_unresolved(self, types, window):
        wanted = _type_filter(types)
        with self._lock:
            rows = [
                t for t in self._threats
                if not t.resolved
                and t.detected_at >= window.since
                and (wanted is None or canonical_type(t.type) in wanted)
            ]
        return sorted(rows, key=lambda t: t.detected_at, reverse=True)

    def list_resolved(self):
        with self._lock:
            return [t for t in self._threats if t.resolved and t.resolved_at is not None]

    def resolve_threat(self, threat_id, resolved_by, resolution, at, audit=None):
        with self._lock:
            for i, t in enumerate(self._threats):
                if t.id == threat_id and not t.resolved:
                    if audit is not None:
                        # before the flip, so a failed write changes nothing
                        self.append_event(audit)
                    detail = {**t.detail, "resolution": resolution}
                    self._threats[i] = replace(
                        t, resolved=True, resolved_at=at,
                        resolved_by=resolved_by, detail=detail,
                    )
                    return True
        return False

    # -- alerts ------------------------------------------------------------

    def append_alert(self, threat_id, sent=True, sent_at=None):
        with self._lock:
            alert_id = str(next(self._alert_ids))
            self._alerts.append((alert_id, threat_id, sent, as_utc(sent_at)))
        return StoredAlert(alert_id, self._threat(threat_id), sent, sent_at)

    def list_alerts(self, window, limit=20):
        with self._lock:
            rows = [a for a in self._alerts if a[3] is not None and a[3] in window]
        rows.sort(key=lambda a: a[3], reverse=True)
        return [
            StoredAlert(alert_id, self._threat(threat_id), sent, sent_at)
            for alert_id, threat_id, sent, sent_at in rows[:limit]
        ]

    def _threat(self, threat_id):
        with self._lock:
            for t in self._threats:
                if t.id == threat_id:
                    return t
        return None
