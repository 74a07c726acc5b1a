"""
Unit tests for environment-backed Config parsing.
"""

import pytest

from rallypoint.core.config.config import Config, Environment


class TestSafeParsers:
    def test_int_from_environment(self, monkeypatch):
        monkeypatch.setenv("RALLY_TEST_INT", "42")
        assert Config._safe_int("RALLY_TEST_INT", 7, min_val=1, max_val=100) == 42

    @pytest.mark.parametrize("raw", ["abc", "0", "101"])
    def test_int_falls_back_to_default(self, monkeypatch, raw):
        monkeypatch.setenv("RALLY_TEST_INT", raw)
        assert Config._safe_int("RALLY_TEST_INT", 7, min_val=1, max_val=100) == 7

    def test_int_missing_uses_default(self, monkeypatch):
        monkeypatch.delenv("RALLY_TEST_INT", raising=False)
        assert Config._safe_int("RALLY_TEST_INT", 7) == 7

    @pytest.mark.parametrize(
        "raw, expected",
        [("yes", True), ("ON", True), ("0", False), ("off", False), ("maybe", True)],
    )
    def test_bool_parsing(self, monkeypatch, raw, expected):
        monkeypatch.setenv("RALLY_TEST_BOOL", raw)
        assert Config._safe_bool("RALLY_TEST_BOOL", True) is expected


class TestEnvironment:
    def test_from_string_is_case_insensitive(self):
        assert Environment.from_string(" Production ") is Environment.PRODUCTION

    def test_unknown_environment_defaults_to_development(self):
        assert Environment.from_string("qa") is Environment.DEVELOPMENT

    def test_suite_runs_in_testing(self):
        assert Config.is_testing()
        assert not Config.is_production()


def test_config_summary_hides_credentials():
    summary = Config.get_config_summary()

    assert summary["environment"] == "testing"
    assert summary["retry_max_attempts"] == Config.DATABASE_RETRY_MAX_ATTEMPTS
    assert "database_scheme" in summary
    assert all("rallypoint:rallypoint@" not in str(value) for value in summary.values())
