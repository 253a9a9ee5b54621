"""Brute force — repeated failed logins against a single account.

Three failures in the window is enough to watch the account; ten means the
password is probably being guessed in earnest.
"""

from secmon.models import BRUTE_FORCE
from secmon.rules import Rule


class BruteForce(Rule):
    id = "audit_threat"
    name = "Brute Force by User"
    threat_type = BRUTE_FORCE
    DEFAULTS = {"min_count": 3, "high": 5, "critical": 10}

    def match(self, event):
        return event.action == "FAILED_LOGIN"

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
        return f"Multiple failed login attempts detected for user {key}"

    def evidence(self, events, window):
        level = self.level(events)
        return {
            "failedAttempts": len(events),
            "timeframe": window.label,
            "lastAttempt": max(e.timestamp for e in events).isoformat(),
            "severity": _SEVERITY_TEXT[level],
            "recommendedAction": _ACTIONS[level],
        }


_SEVERITY_TEXT = {
    "critical": "Critical - Account may be compromised",
    "high": "High - Immediate attention required",
    "medium": "Medium - Monitor closely",
}
_ACTIONS = {
    "critical": "Lock account immediately",
    "high": "Contact user to verify activity",
    "medium": "Monitor for additional attempts",
}
