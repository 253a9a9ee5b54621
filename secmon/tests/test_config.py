"""Tests for settings and threshold loading."""

from zoneinfo import ZoneInfoNotFoundError

import pytest

from secmon.config import Settings, load_settings
from secmon.rules.loader import DEFAULT_PATH, load_rule, load_rules


class TestSettings:
    def test_defaults(self):
        s = Settings()
        assert s.admin_roles == ("super_admin",)
        assert s.default_timeframe == "24h"
        assert s.event_limit == 100
        assert s.resolution_mode == "audit_only"

    def test_no_file_means_defaults(self, monkeypatch):
        monkeypatch.delenv("SECMON_CONFIG", raising=False)
        assert load_settings() == Settings()

    def test_load_from_file(self, tmp_path):
        path = tmp_path / "secmon.yml"
        path.write_text(
            "admin_roles: [super_admin, security_officer]\n"
            "resolution_mode: mutate\n"
            "event_limit: 250\n"
        )
        s = load_settings(path)
        assert s.admin_roles == ("super_admin", "security_officer")
        assert s.resolution_mode == "mutate"
        assert s.event_limit == 250
        assert s.top_n == 5

    def test_env_var(self, tmp_path, monkeypatch):
        path = tmp_path / "env.yml"
        path.write_text("default_timeframe: 7d\n")
        monkeypatch.setenv("SECMON_CONFIG", str(path))
        assert load_settings().default_timeframe == "7d"

    def test_unknown_key_rejected(self, tmp_path):
        path = tmp_path / "bad.yml"
        path.write_text("evnet_limit: 5\n")
        with pytest.raises(ValueError, match="evnet_limit"):
            load_settings(path)

    def test_invalid_mode_rejected(self):
        with pytest.raises(ValueError):
            Settings(resolution_mode="delete")

    def test_invalid_timeframe_rejected(self):
        with pytest.raises(ValueError):
            Settings(default_timeframe="30d")

    def test_timezone_defaults_to_thresholds_file(self):
        assert Settings().timezone is None

    def test_non_string_timezone_rejected(self):
        with pytest.raises(ValueError):
            Settings(timezone=9)

    def test_rules_path_relative_to_settings_file(self, tmp_path):
        (tmp_path / "rules.yml").write_text("audit_threat:\n  min_count: 4\n")
        path = tmp_path / "secmon.yml"
        path.write_text("rules_path: rules.yml\n")
        s = load_settings(path)
        assert s.rules_path == str(tmp_path / "rules.yml")
        rules = load_rules(s.rules_path)
        assert rules[0].thresholds["min_count"] == 4


class TestThresholdLoader:
    def test_bundled_file_matches_defaults(self):
        for rule in load_rules(DEFAULT_PATH):
            assert rule.thresholds == type(rule).DEFAULTS

    def test_missing_block_uses_defaults(self, tmp_path):
        path = tmp_path / "t.yml"
        path.write_text("ip_threat:\n  critical: 30\n")
        rules = {r.id: r for r in load_rules(path)}
        assert rules["ip_threat"].thresholds["critical"] == 30
        assert rules["audit_threat"].thresholds["min_count"] == 3

    def test_timezone_applied(self):
        rule = [r for r in load_rules(timezone="UTC") if r.id == "time_threat"][0]
        assert rule.thresholds["timezone"] == "UTC"

    def test_setting_overrides_file_timezone(self, tmp_path):
        path = tmp_path / "t.yml"
        path.write_text("time_threat:\n  timezone: Asia/Tokyo\n")
        rule = [r for r in load_rules(path, timezone="UTC") if r.id == "time_threat"][0]
        assert rule.thresholds["timezone"] == "UTC"

    def test_file_timezone_used_without_setting(self, tmp_path):
        path = tmp_path / "t.yml"
        path.write_text("time_threat:\n  timezone: Asia/Tokyo\n")
        try:
            rules = load_rules(path)
        except ZoneInfoNotFoundError:
            pytest.skip("no tz database on this host")
        rule = [r for r in rules if r.id == "time_threat"][0]
        assert rule.thresholds["timezone"] == "Asia/Tokyo"

    def test_load_rule_unknown(self):
        with pytest.raises(KeyError):
            load_rule("no_such_rule")

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_rules(tmp_path / "absent.yml")

    @pytest.mark.parametrize("body, message", [
        ("bogus_rule:\n  min_count: 1\n", "unknown rule"),
        ("audit_threat:\n  min_cnt: 1\n", "unknown field"),
        ("audit_threat:\n  min_count: -1\n", "non-negative"),
        ("audit_threat:\n  min_count: many\n", "non-negative"),
        ("audit_threat:\n  high: 20\n", "ascend"),
        ("time_threat:\n  start_hour: 23\n", "ascend"),
        ("- audit_threat\n", "mapping"),
        ("time_threat:\n  timezone: 5\n", "timezone name"),
        ("time_threat:\n  timezone: ''\n", "timezone name"),
    ])
    def test_validation(self, tmp_path, body, message):
        path = tmp_path / "t.yml"
        path.write_text(body)
        with pytest.raises(ValueError, match=message):
            load_rules(path)
