"""Tests for environment-driven configuration."""

import pytest

from config import DEFAULT_MODEL, Config


class TestConfigLoad:
    def test_defaults(self, monkeypatch):
        for key in ("SELECTION_THRESHOLD", "TARGET_COUNT", "TICK_SECONDS", "DEFAULT_MODEL", "DEFAULT_TIMEZONE"):
            monkeypatch.delenv(key, raising=False)
        config = Config.load()

        assert config.selection_threshold == 10
        assert config.target_count == 10
        assert config.tick_seconds == 60
        assert config.default_model == DEFAULT_MODEL
        assert config.default_timezone == "UTC"
        assert config.validate() is None

    def test_overrides(self, monkeypatch):
        monkeypatch.setenv("SELECTION_THRESHOLD", "25")
        monkeypatch.setenv("RUN_TIMEOUT_SECONDS", "90.5")
        monkeypatch.setenv("ENABLE_LOGFIRE", "yes")
        monkeypatch.setenv("LOG_LEVEL", "debug")
        monkeypatch.setenv("SMTP_PORT", "465")
        config = Config.load()

        assert config.selection_threshold == 25
        assert config.run_timeout_seconds == 90.5
        assert config.enable_logfire is True
        assert config.log_level == "DEBUG"
        assert config.smtp_port == 465

    def test_bad_integer(self, monkeypatch):
        monkeypatch.setenv("MAX_WORKERS", "four")
        with pytest.raises(ValueError, match="MAX_WORKERS"):
            Config.load()


class TestConfigValidate:
    @pytest.mark.parametrize(
        "overrides, fragment",
        [
            ({"max_workers": 0}, "MAX_WORKERS"),
            ({"tick_seconds": -1}, "TICK_SECONDS"),
            ({"default_timezone": "Atlantis/Capital"}, "DEFAULT_TIMEZONE"),
            ({"smtp_port": 70000}, "SMTP_PORT"),
            ({"log_format": "xml"}, "LOG_FORMAT"),
            ({"default_model": ""}, "DEFAULT_MODEL"),
        ],
    )
    def test_invalid(self, overrides, fragment):
        assert fragment in Config(**overrides).validate()

    def test_valid_default_instance(self):
        assert Config().validate() is None
