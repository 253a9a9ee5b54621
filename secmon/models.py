"""Record types shared by the detection pipeline.

Events are immutable audit rows.  Threats and alerts are plain dataclasses
so the store adapters can build them straight from rows, and every record
has a ``to_dict()`` that renders the dashboard field names.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

LEVELS = ("low", "medium", "high", "critical")

TIMEFRAMES = {
    "1h": timedelta(hours=1),
    "24h": timedelta(hours=24),
    "7d": timedelta(days=7),
}
TIMEFRAME_LABELS = {
    "1h": "Last Hour",
    "24h": "Last 24 Hours",
    "7d": "Last 7 Days",
}

# Threat types produced by the detectors.
BRUTE_FORCE = "brute_force_attack"
SUSPICIOUS_IP = "suspicious_ip_activity"
UNUSUAL_ACTIVITY = "unusual_activity_pattern"
MULTIPLE_DEVICE = "multiple_device_access"

# Older rows in the security event table use these names for the same
# findings.  They must collide with the detector types for dedup.
LEGACY_TYPES = {
    "MULTIPLE_FAILED_LOGINS": BRUTE_FORCE,
    "SUSPICIOUS_IP_ACTIVITY": SUSPICIOUS_IP,
    "UNUSUAL_ACCESS_TIME": UNUSUAL_ACTIVITY,
    "MULTIPLE_IP_ACCESS": MULTIPLE_DEVICE,
}


def level_rank(level: str) -> int:
    return LEVELS.index(level)


def canonical_type(threat_type: str) -> str:
    return LEGACY_TYPES.get(threat_type, threat_type)


def as_utc(ts: datetime | None) -> datetime | None:
    """Naive timestamps are taken to be UTC."""
    if ts is None:
        return None
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


def isoformat(ts: datetime | None) -> str | None:
    return ts.isoformat() if ts is not None else None


def parse_timestamp(value) -> datetime:
    """Accept datetimes, epoch seconds or ISO-8601 strings (``Z`` allowed)."""
    if isinstance(value, datetime):
        return as_utc(value)
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value, tz=timezone.utc)
    if isinstance(value, str):
        return as_utc(datetime.fromisoformat(value.replace("Z", "+00:00")))
    raise ValueError(f"Unsupported timestamp: {value!r}")


@dataclass(frozen=True)
class ActivityEvent:
    timestamp: datetime
    action: str
    actor_id: int | None = None
    ip: str | None = None
    user_agent: str | None = None
    resource: str | None = None
    resource_id: str | None = None
    details: dict = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "timestamp", as_utc(self.timestamp))

    @classmethod
    def from_dict(cls, data: dict) -> "ActivityEvent":
        """Build an event from the audit-log wire shape.

        ``ip`` and ``userAgent`` are lifted out of ``details``; everything
        else in ``details`` is kept as-is.
        """
        details = dict(data.get("details") or {})
        actor = data.get("actorId", data.get("userId", data.get("actor_id")))
        return cls(
            timestamp=parse_timestamp(data["timestamp"]),
            action=data["action"],
            actor_id=int(actor) if actor is not None else None,
            ip=details.pop("ip", None) or data.get("ip"),
            user_agent=details.pop("userAgent", None) or data.get("userAgent"),
            resource=data.get("resource"),
            resource_id=data.get("resourceId"),
            details=details,
        )

    def to_dict(self) -> dict:
        details = dict(self.details)
        if self.ip is not None:
            details["ip"] = self.ip
        if self.user_agent is not None:
            details["userAgent"] = self.user_agent
        return {
            "timestamp": isoformat(self.timestamp),
            "action": self.action,
            "actorId": self.actor_id,
            "resource": self.resource,
            "resourceId": self.resource_id,
            "details": details,
        }


@dataclass
class ThreatRecord:
    id: str
    level: str
    type: str
    description: str
    detected_at: datetime
    user_id: int | None = None
    property_id: int | None = None
    ip: str | None = None
    detail: dict = field(default_factory=dict)
    resolved: bool = False
    resolved_at: datetime | None = None
    resolved_by: int | None = None

    def __post_init__(self):
        if self.level not in LEVELS:
            raise ValueError(f"Unknown threat level: {self.level!r}")
        if self.resolved and self.resolved_at is None:
            raise ValueError(f"Threat {self.id} is resolved but has no resolved_at")
        if not self.resolved and self.resolved_at is not None:
            raise ValueError(f"Threat {self.id} is unresolved but has resolved_at")
        self.detected_at = as_utc(self.detected_at)
        self.resolved_at = as_utc(self.resolved_at)

    @property
    def subject(self):
        """The user id, or the IP for IP-attributed threats."""
        if canonical_type(self.type) == SUSPICIOUS_IP:
            return self.ip or self.detail.get("ip")
        return self.user_id

    @property
    def dedup_key(self) -> tuple:
        return canonical_type(self.type), self.subject

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "level": self.level,
            "type": self.type,
            "description": self.description,
            "userId": self.user_id,
            "propertyId": self.property_id,
            "ip": self.ip,
            "details": self.detail,
            "timestamp": isoformat(self.detected_at),
            "resolved": self.resolved,
            "resolvedAt": isoformat(self.resolved_at),
            "resolvedBy": self.resolved_by,
        }


@dataclass
class StoredAlert:
    """An alert row as read from the store, joined with its threat."""
    id: str
    threat: ThreatRecord | None
    sent: bool
    sent_at: datetime | None = None

    def __post_init__(self):
        self.sent_at = as_utc(self.sent_at)


@dataclass
class AlertRecord:
    id: str
    threat_id: str | None
    alert_level: str  # info | warning | error | critical
    message: str
    sent: bool
    sent_at: datetime | None = None
    action_required: str | None = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "threatId": self.threat_id,
            "alertLevel": self.alert_level,
            "message": self.message,
            "sent": self.sent,
            "sentAt": isoformat(self.sent_at),
            "actionRequired": self.action_required,
        }


@dataclass(frozen=True)
class Window:
    timeframe: str
    since: datetime
    now: datetime

    @classmethod
    def for_timeframe(cls, timeframe: str, now: datetime) -> "Window":
        now = as_utc(now)
        return cls(timeframe=timeframe, since=now - TIMEFRAMES[timeframe], now=now)

    @property
    def label(self) -> str:
        return TIMEFRAME_LABELS[self.timeframe]

    def __contains__(self, ts: datetime) -> bool:
        return self.since <= as_utc(ts) <= self.now


@dataclass(frozen=True)
class Principal:
    user_id: int
    role: str
