"""Off-hours access — successful logins outside business hours.

Normal hours are 06:00 to 22:59 local time: an hour-of-day below
``start_hour`` or above ``end_hour`` counts as off-hours.  The local clock
is the configured timezone, UTC by default.
"""

from datetime import timezone
from zoneinfo import ZoneInfo

from secmon.models import UNUSUAL_ACTIVITY
from secmon.rules import Rule


class OffHoursAccess(Rule):
    id = "time_threat"
    name = "Off-Hours Access"
    threat_type = UNUSUAL_ACTIVITY
    DEFAULTS = {"start_hour": 6, "end_hour": 22, "medium": 3, "timezone": "UTC"}

    def __init__(self, thresholds=None):
        super().__init__(thresholds)
        name = self.thresholds["timezone"]
        self._tz = timezone.utc if name == "UTC" else ZoneInfo(name)

    def match(self, event):
        return event.action == "LOGIN" and bool(event.ip)

    def off_hours(self, events):
        start, end = self.thresholds["start_hour"], self.thresholds["end_hour"]
        out = []
        for e in events:
            hour = e.timestamp.astimezone(self._tz).hour
            if hour < start or hour > end:
                out.append(e)
        return out

    def trigger(self, events):
        return len(self.off_hours(events)) > 0

    def level(self, events):
        if len(self.off_hours(events)) >= self.thresholds["medium"]:
            return "medium"
        return "low"

    def describe(self, key, events):
        return "User accessing system outside normal business hours"

    def evidence(self, events, window):
        off = self.off_hours(events)
        return {
            "offHoursCount": len(off),
            "lastOffHoursAccess": max(e.timestamp for e in off).isoformat(),
            "normalHours": self._normal_hours(),
            "timeframe": window.label,
            "recommendedAction": "Verify with user if access was authorized",
        }

    def _normal_hours(self):
        start, end = self.thresholds["start_hour"], self.thresholds["end_hour"]
        return f"{_clock(start)} - {_clock(end)}"


def _clock(hour):
    suffix = "AM" if hour < 12 else "PM"
    return f"{(hour % 12) or 12}:00 {suffix}"
