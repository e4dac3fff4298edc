"""Tests for environment overrides."""

import pytest

from exemption_wizard.config import env_int, env_log_level


class TestEnvInt:
    """Tests for integer overrides."""

    def test_unset_uses_default(self, monkeypatch):
        monkeypatch.delenv("EXEMPTION_TEST_DAYS", raising=False)

        assert env_int("EXEMPTION_TEST_DAYS", 30) == 30

    def test_valid_value(self, monkeypatch):
        monkeypatch.setenv("EXEMPTION_TEST_DAYS", " 14 ")

        assert env_int("EXEMPTION_TEST_DAYS", 30) == 14

    @pytest.mark.parametrize("value", ["thirty", "1.5", ""])
    def test_malformed_value_uses_default(self, monkeypatch, value):
        """Test that a bad override never breaks startup."""
        monkeypatch.setenv("EXEMPTION_TEST_DAYS", value)

        assert env_int("EXEMPTION_TEST_DAYS", 30) == 30


class TestEnvLogLevel:
    """Tests for the log level override."""

    def test_case_insensitive(self, monkeypatch):
        monkeypatch.setenv("EXEMPTION_TEST_LEVEL", "debug")

        assert env_log_level("EXEMPTION_TEST_LEVEL") == "DEBUG"

    @pytest.mark.parametrize("value", ["LOUD", "10", ""])
    def test_unknown_level_uses_default(self, monkeypatch, value):
        monkeypatch.setenv("EXEMPTION_TEST_LEVEL", value)

        assert env_log_level("EXEMPTION_TEST_LEVEL") == "INFO"
