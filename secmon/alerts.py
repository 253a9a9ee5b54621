"""Alert emitter — stored alerts plus alerts for new high-severity threats.

Only brute-force candidates (ids in the ``audit_threat_`` family) produce
synthesized alerts; the other detectors surface on the dashboard without
paging anyone.
"""

from secmon.models import (
    BRUTE_FORCE, SUSPICIOUS_IP, AlertRecord, StoredAlert, ThreatRecord, canonical_type,
    level_rank,
)

ALERT_LEVELS = {"critical": "critical", "high": "error", "medium": "warning"}

ACTION_REQUIRED = {
    BRUTE_FORCE: "Verify user account security",
    SUSPICIOUS_IP: "Review IP access patterns",
}
DEFAULT_ACTION = "Review security event details"

SYNTHESIZED_PREFIX = "audit_threat_"
SYNTHESIZED_MIN_LEVEL = "high"


def alert_level(threat_level: str | None) -> str:
    return ALERT_LEVELS.get(threat_level, "info")


def synthesized_alert_level(threat_level: str) -> str:
    # new detections page at warning unless already critical
    return "critical" if threat_level == "critical" else "warning"


class AlertEmitter:

    def emit(self, stored: list[StoredAlert], threats: list[ThreatRecord], now) -> list[AlertRecord]:
        """Stored alerts first, in store order, then synthesized ones."""
        alerts = [self.from_stored(a) for a in stored]
        alerts.extend(
            self.synthesize(t, now) for t in threats
            if t.id.startswith(SYNTHESIZED_PREFIX)
            and level_rank(t.level) >= level_rank(SYNTHESIZED_MIN_LEVEL)
        )
        return alerts

    @staticmethod
    def from_stored(alert: StoredAlert) -> AlertRecord:
        threat = alert.threat
        if threat is None:
            return AlertRecord(
                id=alert.id,
                threat_id=None,
                alert_level="info",
                message="Security Alert: Security event detected",
                sent=alert.sent,
                sent_at=alert.sent_at,
                action_required=DEFAULT_ACTION,
            )
        return AlertRecord(
            id=alert.id,
            threat_id=threat.id,
            alert_level=alert_level(threat.level),
            message=f"Security Alert: {threat.description or 'Security event detected'}",
            sent=alert.sent,
            sent_at=alert.sent_at,
            action_required=ACTION_REQUIRED.get(canonical_type(threat.type), DEFAULT_ACTION),
        )

    @staticmethod
    def synthesize(threat: ThreatRecord, now) -> AlertRecord:
        return AlertRecord(
            id=f"alert_{threat.id}",
            threat_id=threat.id,
            alert_level=synthesized_alert_level(threat.level),
            message=threat.description,
            sent=True,
            sent_at=now,
            action_required=threat.detail.get("recommendedAction", "Review threat details"),
        )
