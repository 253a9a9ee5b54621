"""Multi-IP access — one account logging in from many addresses.

Usually account sharing or a travelling user; occasionally a stolen
credential used from a proxy pool.  Kept at low/medium severity.
"""

from secmon.models import MULTIPLE_DEVICE
from secmon.rules import Rule


class MultiIpAccess(Rule):
    id = "multi_ip_threat"
    name = "Multiple IP Access"
    threat_type = MULTIPLE_DEVICE
    DEFAULTS = {"min_ips": 3, "medium": 5, "sample_size": 5}

    def match(self, event):
        return event.action == "LOGIN" and bool(event.ip)

    @staticmethod
    def distinct_ips(events):
        # dict keeps first-seen order for the sample
        return list(dict.fromkeys(e.ip or "unknown" for e in events))

    def trigger(self, events):
        return len(self.distinct_ips(events)) >= self.thresholds["min_ips"]

    def level(self, events):
        if len(self.distinct_ips(events)) >= self.thresholds["medium"]:
            return "medium"
        return "low"

    def describe(self, key, events):
        return f"User accessed from {len(self.distinct_ips(events))} different IP addresses"

    def evidence(self, events, window):
        ips = self.distinct_ips(events)
        agents = {e.user_agent or "unknown" for e in events}
        medium = len(ips) >= self.thresholds["medium"]
        return {
            "ipCount": len(ips),
            "uniqueIPs": ips[:self.thresholds["sample_size"]],
            "userAgentCount": len(agents),
            "timeframe": window.label,
            "riskLevel": (
                "Medium - Potential account sharing" if medium
                else "Low - Multiple location access"
            ),
            "recommendedAction": "Verify all access locations with user",
        }
