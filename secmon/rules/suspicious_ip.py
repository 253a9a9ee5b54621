"""Suspicious IP — failed logins concentrated on one source address.

Counts every FAILED_LOGIN regardless of which account it targeted, so a
password spray across many users still lands on one key.  Events without
an address are pooled under "unknown".
"""

from secmon.models import SUSPICIOUS_IP
from secmon.rules import Rule


class SuspiciousIp(Rule):
    id = "ip_threat"
    name = "Suspicious IP Activity"
    threat_type = SUSPICIOUS_IP
    DEFAULTS = {"min_count": 5, "high": 10, "critical": 20}

    def match(self, event):
        return event.action == "FAILED_LOGIN"

    def group_key(self, event):
        return event.ip or "unknown"

    def trigger(self, events):
        return len(events) >= self.thresholds["min_count"]

    def level(self, events):
        count = len(events)
        if count >= self.thresholds["critical"]:
            return "critical"
        if count >= self.thresholds["high"]:
            return "high"
        return "medium"

    def describe(self, key, events):
        return f"Multiple failed login attempts from IP address {key}"

    def evidence(self, events, window):
        level = self.level(events)
        return {
            "ip": self.group_key(events[0]),
            "failedAttempts": len(events),
            "timeframe": window.label,
            "severity": _SEVERITY_TEXT[level],
            "recommendedAction": _ACTIONS[level],
        }

    def subject(self, key):
        return {"ip": key}


_SEVERITY_TEXT = {
    "critical": "Critical - Potential DDoS/Brute Force",
    "high": "High - Coordinated attack suspected",
    "medium": "Medium - Monitor IP activity",
}
_ACTIONS = {
    "critical": "Block IP immediately",
    "high": "Apply rate limiting to IP",
    "medium": "Monitor for escalation",
}
