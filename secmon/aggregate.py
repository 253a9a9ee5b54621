"""Summary statistics over the merged threat list."""

import math
from collections import Counter
from dataclasses import dataclass

from secmon.models import LEVELS, ActivityEvent, ThreatRecord

_HOUR = 3600


@dataclass
class SecurityMetrics:
    total_threats: int
    active_threats_by_level: dict
    threats_by_type: dict
    average_resolution_time: int
    top_targeted_users: list
    top_targeted_properties: list
    recent_activity: list

    def to_dict(self) -> dict:
        return {
            "totalThreats": self.total_threats,
            "activeThreatsByLevel": dict(self.active_threats_by_level),
            "threatsByType": dict(self.threats_by_type),
            "averageResolutionTime": self.average_resolution_time,
            "topTargetedUsers": [
                {"userId": uid, "threatCount": n} for uid, n in self.top_targeted_users
            ],
            "topTargetedProperties": [
                {"propertyId": pid, "threatCount": n} for pid, n in self.top_targeted_properties
            ],
            "recentActivity": [t.to_dict() for t in self.recent_activity],
        }


def failed_logins_by_user(events: list[ActivityEvent]) -> Counter:
    return Counter(
        e.actor_id for e in events
        if e.action == "FAILED_LOGIN" and e.actor_id is not None
    )


def active_by_level(threats: list[ThreatRecord]) -> dict:
    counts = dict.fromkeys(LEVELS, 0)
    for t in threats:
        if not t.resolved:
            counts[t.level] += 1
    return counts


def top_targets(counts: Counter, n: int) -> list[tuple]:
    # sorted() is stable, so ties keep first-encountered order
    return sorted(counts.items(), key=lambda kv: kv[1], reverse=True)[:n]


def average_resolution_hours(resolved: list[ThreatRecord]) -> int:
    """Mean of resolved_at - detected_at in whole hours, rounded half up."""
    deltas = [
        (t.resolved_at - t.detected_at).total_seconds()
        for t in resolved if t.resolved_at is not None
    ]
    if not deltas:
        return 0
    return math.floor(sum(deltas) / len(resolved) / _HOUR + 0.5)


def compute_metrics(threats, events, resolved, top_n=5, recent=10) -> SecurityMetrics:
    threats = list(threats)

    users = Counter()
    users.update(failed_logins_by_user(events))
    properties = Counter()
    for t in threats:
        if t.user_id is not None:
            users[t.user_id] += 1
        if t.property_id is not None:
            properties[t.property_id] += 1

    return SecurityMetrics(
        total_threats=len(threats),
        active_threats_by_level=active_by_level(threats),
        threats_by_type=dict(Counter(t.type for t in threats)),
        average_resolution_time=average_resolution_hours(list(resolved)),
        top_targeted_users=top_targets(users, top_n),
        top_targeted_properties=top_targets(properties, top_n),
        recent_activity=threats[-recent:] if recent > 0 else [],
    )
