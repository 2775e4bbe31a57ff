"""Tests for environment configuration and logging setup."""

import json
import logging

import pytest

from cedarintake.config import Config, ConfigError
from cedarintake.logging_utils import StructuredFormatter, setup_logging

CONFIG_KEYS = (
    "APP_ENV", "DEBUG", "LOG_LEVEL", "LOG_FORMAT", "HOST", "PORT", "CORS_ORIGINS",
    "RECAPTCHA_SITE_KEY", "RECAPTCHA_SECRET_KEY", "RECAPTCHA_MIN_SCORE",
    "CLICKUP_API_TOKEN", "CLICKUP_LIST_ID",
    "SENDGRID_API_KEY", "SENDGRID_FROM_EMAIL", "SENDGRID_FROM_NAME",
    "HTTP_TIMEOUT_SECONDS",
)


@pytest.fixture
def env(monkeypatch):
    for key in CONFIG_KEYS:
        monkeypatch.delenv(key, raising=False)
    return monkeypatch


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield root
    root.handlers[:] = handlers
    root.setLevel(level)


class TestConfig:
    """Test Config loading."""

    def test_defaults(self, env):
        """Should start with every integration disabled."""
        config = Config()

        assert config.APP_ENV == "dev"
        assert config.DEBUG is False
        assert config.PORT == 5000
        assert config.HOST == "0.0.0.0"
        assert config.CORS_ORIGINS == ["*"]
        assert config.RECAPTCHA_MIN_SCORE == 0.5
        assert config.SENDGRID_FROM_NAME == "Cedar Intake"
        assert not config.recaptcha_enabled
        assert not config.clickup_enabled
        assert not config.sendgrid_enabled

    def test_overrides(self, env):
        """Should read values and lists from the environment."""
        env.setenv("PORT", "8080")
        env.setenv("DEBUG", "true")
        env.setenv("LOG_LEVEL", "debug")
        env.setenv("CORS_ORIGINS", "https://example.com, https://www.example.com")
        env.setenv("RECAPTCHA_MIN_SCORE", "0.7")

        config = Config()

        assert config.PORT == 8080
        assert config.DEBUG is True
        assert config.LOG_LEVEL == "DEBUG"
        assert config.CORS_ORIGINS == ["https://example.com", "https://www.example.com"]
        assert config.RECAPTCHA_MIN_SCORE == 0.7

    def test_integration_flags_need_all_credentials(self, env):
        """Should enable an integration only when every credential is set."""
        env.setenv("RECAPTCHA_SECRET_KEY", "secret")
        env.setenv("CLICKUP_API_TOKEN", "tok")
        env.setenv("SENDGRID_API_KEY", "key")

        config = Config()

        assert config.recaptcha_enabled
        assert not config.clickup_enabled
        assert not config.sendgrid_enabled

    def test_bad_port(self, env):
        """Should raise ConfigError for a non-numeric port."""
        env.setenv("PORT", "eighty")

        with pytest.raises(ConfigError, match="PORT"):
            Config()

    def test_bad_log_format(self, env):
        """Should raise ConfigError for an unknown log format."""
        env.setenv("LOG_FORMAT", "xml")

        with pytest.raises(ConfigError, match="LOG_FORMAT"):
            Config()

    def test_summary_warns_without_recaptcha(self, env, caplog):
        """Should warn when bot verification is disabled."""
        with caplog.at_level(logging.INFO, logger="cedarintake.config"):
            Config().log_summary()

        assert "recaptcha=False" in caplog.text
        assert "bot verification is disabled" in caplog.text


class TestLogging:
    """Test logging setup."""

    def test_structured_formatter(self):
        """Should emit one JSON object with extras."""
        record = logging.LogRecord("cedarintake.app", logging.WARNING, __file__, 1, "Slot %s taken", ("09:00",), None)
        record.form = "booking"

        data = json.loads(StructuredFormatter().format(record))

        assert data["level"] == "WARNING"
        assert data["logger"] == "cedarintake.app"
        assert data["service"] == "cedarintake"
        assert data["message"] == "Slot 09:00 taken"
        assert data["extra"] == {"form": "booking"}

    def test_setup_json_logging(self, restore_root_logger):
        """Should install a single JSON handler and quiet noisy loggers."""
        logger = setup_logging("debug", "json")

        assert logger.name == "cedarintake"
        assert restore_root_logger.level == logging.DEBUG
        assert len(restore_root_logger.handlers) == 1
        assert isinstance(restore_root_logger.handlers[0].formatter, StructuredFormatter)
        assert logging.getLogger("urllib3").level == logging.WARNING

    def test_setup_text_logging(self, restore_root_logger):
        """Should fall back to INFO for an unknown level name."""
        setup_logging("chatty", "text")

        assert restore_root_logger.level == logging.INFO
        assert not isinstance(restore_root_logger.handlers[0].formatter, StructuredFormatter)
