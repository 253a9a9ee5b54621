"""Engine settings, loaded from YAML.

Lookup order: explicit path, then ``$SECMON_CONFIG``, then built-in
defaults.  Unknown keys are rejected so typos fail loudly.
"""

import os
from dataclasses import dataclass, fields, replace
from pathlib import Path

import yaml

from secmon.models import TIMEFRAMES

RESOLUTION_MODES = ("audit_only", "mutate")


@dataclass(frozen=True)
class Settings:
    admin_roles: tuple = ("super_admin",)
    default_timeframe: str = "24h"
    event_limit: int = 100
    alert_fetch_limit: int = 20
    recent_limit: int = 10
    top_n: int = 5
    # audit_only: resolving writes an audit entry and nothing else.
    # mutate: the store flips the threat to resolved before auditing.
    resolution_mode: str = "audit_only"
    deadline_seconds: float = 10.0
    # None: use the thresholds file, which defaults to UTC
    timezone: str | None = None
    rules_path: str | None = None

    def __post_init__(self):
        if self.default_timeframe not in TIMEFRAMES:
            raise ValueError(f"default_timeframe must be one of {sorted(TIMEFRAMES)}")
        if self.resolution_mode not in RESOLUTION_MODES:
            raise ValueError(f"resolution_mode must be one of {RESOLUTION_MODES}")
        for name in ("event_limit", "alert_fetch_limit", "recent_limit", "top_n"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be non-negative")
        if self.deadline_seconds <= 0:
            raise ValueError("deadline_seconds must be positive")
        if self.timezone is not None and (not isinstance(self.timezone, str) or not self.timezone):
            raise ValueError("timezone must be a timezone name")
        object.__setattr__(self, "admin_roles", tuple(self.admin_roles))


def load_settings(path: str | Path | None = None) -> Settings:
    path = path or os.environ.get("SECMON_CONFIG")
    if not path:
        return Settings()

    path = Path(path)
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path.name}: expected a mapping")

    known = {f.name for f in fields(Settings)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ValueError(f"{path.name}: unknown settings {', '.join(unknown)}")

    rules_path = data.get("rules_path")
    if rules_path and not Path(rules_path).is_absolute():
        # relative to the settings file, not the working directory
        data["rules_path"] = str(path.parent / rules_path)
    return replace(Settings(), **data)
