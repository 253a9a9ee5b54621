"""Load rule thresholds from YAML and build the detector list."""

from pathlib import Path
import yaml

from secmon.rules import BruteForce, SuspiciousIp, OffHoursAccess, MultiIpAccess

DEFAULT_PATH = Path(__file__).resolve().parent / "thresholds.yml"

_RULE_CLASSES = (BruteForce, SuspiciousIp, OffHoursAccess, MultiIpAccess)

# Keys whose values must be ascending, per rule.
_ASCENDING = {
    "audit_threat": ("min_count", "high", "critical"),
    "ip_threat": ("min_count", "high", "critical"),
    "time_threat": ("start_hour", "end_hour"),
    "multi_ip_threat": ("min_ips", "medium"),
}


def load_rules(path: str | Path | None = None, timezone: str | None = None) -> list:
    """Parse *path* (default: the bundled thresholds.yml) into rule instances.

    Rules come back in detection order.  A rule without a block in the file
    runs on its defaults.  ``timezone``, when given, replaces any timezone
    the file sets.
    """
    path = Path(path) if path is not None else DEFAULT_PATH
    thresholds = _parse_and_validate(path)
    rules = []
    for cls in _RULE_CLASSES:
        overrides = dict(thresholds.get(cls.id, {}))
        if timezone is not None and "timezone" in cls.DEFAULTS:
            # an explicit setting beats the thresholds file
            overrides["timezone"] = timezone
        rules.append(cls(overrides))
    return rules


def load_rule(rule_id: str, path: str | Path | None = None):
    """Load a single rule by id — useful for tests."""
    for rule in load_rules(path):
        if rule.id == rule_id:
            return rule
    raise KeyError(rule_id)


def _parse_and_validate(path: Path) -> dict:
    if not path.is_file():
        raise FileNotFoundError(f"Threshold file not found: {path}")
    with open(path) as f:
        data = yaml.safe_load(f) or {}

    if not isinstance(data, dict):
        raise ValueError(f"{path.name}: expected a mapping of rule ids")

    known = {cls.id: cls for cls in _RULE_CLASSES}
    for rule_id, block in data.items():
        if rule_id not in known:
            raise ValueError(f"{path.name}: unknown rule '{rule_id}'")
        if not isinstance(block, dict):
            raise ValueError(f"{path.name}: '{rule_id}' must be a mapping")
        defaults = known[rule_id].DEFAULTS
        for key, value in block.items():
            if key not in defaults:
                raise ValueError(f"{path.name}: {rule_id} has unknown field '{key}'")
            if key == "timezone":
                if not isinstance(value, str) or not value:
                    raise ValueError(f"{path.name}: {rule_id}.timezone must be a timezone name")
                continue
            if not isinstance(value, int) or isinstance(value, bool) or value < 0:
                raise ValueError(
                    f"{path.name}: {rule_id}.{key} must be a non-negative integer"
                )
        merged = {**defaults, **block}
        order = [merged[k] for k in _ASCENDING[rule_id]]
        if order != sorted(order):
            raise ValueError(
                f"{path.name}: {rule_id} thresholds must ascend "
                f"({' <= '.join(_ASCENDING[rule_id])})"
            )
    return data
