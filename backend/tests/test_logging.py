"""
Unit tests for settings and logging setup.
"""

import json
import logging

import pytest
import structlog

from printshop.config import Settings
from printshop.logging import configure_logging


@pytest.fixture
def restore_logging():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
    structlog.reset_defaults()


class TestSettings:
    """Tests for environment-driven settings."""

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("API_URL", "http://shop.test/api")
        monkeypatch.setenv("SYNC_MAX_RECONNECT_ATTEMPTS", "9")
        monkeypatch.setenv("STRICT_STATUS_TRANSITIONS", "true")

        settings = Settings(_env_file=None)

        assert settings.api_url == "http://shop.test/api"
        assert settings.sync_max_reconnect_attempts == 9
        assert settings.strict_status_transitions is True
        assert settings.request_timeout == 5.0


class TestConfigureLogging:
    """Tests for configure_logging()."""

    def test_json_lines(self, restore_logging, capsys):
        configure_logging("debug", "json")

        structlog.get_logger("printshop.test").info("Channel connected", lifetime=2)

        line = capsys.readouterr().err.strip().splitlines()[-1]
        record = json.loads(line)
        assert record["event"] == "Channel connected"
        assert record["lifetime"] == 2
        assert record["level"] == "info"
        assert logging.getLogger().level == logging.DEBUG

    def test_third_party_loggers_quieted(self, restore_logging):
        configure_logging("debug", "console")

        assert logging.getLogger("httpx").level == logging.WARNING
