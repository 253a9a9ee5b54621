# Detection rules as Python classes, thresholds in YAML.
#
# Each rule lives in its own file and only describes *what* it looks at:
# which events count, how they are grouped, when a group fires and how
# severe it is.  The engine owns grouping, dedup and id assignment, so a
# new rule is one file plus one entry in ALL_RULES.


class Rule:
    """Base detection rule.

    Subclasses set the class attributes and implement match(), trigger()
    and level().  ``thresholds`` overrides DEFAULTS key by key, which is how
    the values in thresholds.yml reach the rule.
    """

    id: str            # synthetic id family, e.g. "audit_threat"
    name: str
    threat_type: str
    DEFAULTS: dict = {}

    def __init__(self, thresholds: dict | None = None):
        self.thresholds = {**self.DEFAULTS, **(thresholds or {})}

    def match(self, event) -> bool:
        """Return True if this event belongs in one of the rule's groups."""
        raise NotImplementedError

    def group_key(self, event):
        """Grouping key.  Default: the acting user; None drops the event."""
        return event.actor_id

    def trigger(self, events: list) -> bool:
        """Given every matching event for one key, should we raise a threat?"""
        raise NotImplementedError

    def level(self, events: list) -> str:
        raise NotImplementedError

    def describe(self, key, events: list) -> str:
        return self.name

    def evidence(self, events: list, window) -> dict:
        """Structured explanation stored on the threat's ``detail``."""
        return {}

    def subject(self, key) -> dict:
        """ThreatRecord fields naming who or what the threat is about."""
        return {"user_id": key}


from secmon.rules.brute_force import BruteForce
from secmon.rules.suspicious_ip import SuspiciousIp
from secmon.rules.off_hours import OffHoursAccess
from secmon.rules.multi_ip import MultiIpAccess

# Order matters: candidates are concatenated and numbered in this order.
ALL_RULES = [BruteForce(), SuspiciousIp(), OffHoursAccess(), MultiIpAccess()]
