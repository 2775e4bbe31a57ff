"""Cedar Intake service configuration.

Configuration is loaded from:
1. .env file (if present)
2. Environment variables

Integrations are optional. A missing reCAPTCHA secret disables bot
verification, and a missing ClickUp or SendGrid credential turns that
delivery step into a skipped outcome. The service starts either way.

Usage:
    >>> config = Config()
    >>> config.PORT
    5000
"""

import logging
import os
from typing import List

from dotenv import load_dotenv

load_dotenv()


class ConfigError(Exception):
    """Raised when a configuration value is malformed."""

    pass


class Config:
    """Application configuration loaded from environment variables.

    Attributes:
        APP_ENV: Deployment environment name (dev, staging, production)
        DEBUG: Enables FastAPI debug mode
        LOG_LEVEL: Root log level
        LOG_FORMAT: "text" or "json"
        HOST: Interface uvicorn binds to
        PORT: Port uvicorn listens on
        CORS_ORIGINS: Allowed browser origins
        RECAPTCHA_SITE_KEY: Public key handed to the browser
        RECAPTCHA_SECRET_KEY: Server-side key for token verification
        RECAPTCHA_MIN_SCORE: Lowest accepted reCAPTCHA v3 score
        CLICKUP_API_TOKEN: Token for creating lead tasks
        CLICKUP_LIST_ID: List new lead tasks are created in
        SENDGRID_API_KEY: SendGrid API key for confirmation emails
        SENDGRID_FROM_EMAIL: Sender address for confirmation emails
        SENDGRID_FROM_NAME: Sender display name
        HTTP_TIMEOUT_SECONDS: Timeout for outbound HTTP calls
    """

    def __init__(self) -> None:
        """Initialize configuration by loading from environment variables."""
        self.logger = logging.getLogger(__name__)

        # Application environment
        self.APP_ENV = self._get_optional("APP_ENV", "dev")
        self.DEBUG = self._get_bool("DEBUG")
        self.LOG_LEVEL = self._get_optional("LOG_LEVEL", "INFO").upper()
        self.LOG_FORMAT = self._get_optional("LOG_FORMAT", "text").lower()

        # API server
        self.HOST = self._get_optional("HOST", "0.0.0.0")
        self.PORT = self._get_int("PORT", 5000)
        self.CORS_ORIGINS = self._get_list("CORS_ORIGINS", "*")

        # reCAPTCHA
        self.RECAPTCHA_SITE_KEY = self._get_optional("RECAPTCHA_SITE_KEY")
        self.RECAPTCHA_SECRET_KEY = self._get_optional("RECAPTCHA_SECRET_KEY")
        self.RECAPTCHA_MIN_SCORE = self._get_float("RECAPTCHA_MIN_SCORE", 0.5)

        # ClickUp
        self.CLICKUP_API_TOKEN = self._get_optional("CLICKUP_API_TOKEN")
        self.CLICKUP_LIST_ID = self._get_optional("CLICKUP_LIST_ID")

        # SendGrid
        self.SENDGRID_API_KEY = self._get_optional("SENDGRID_API_KEY")
        self.SENDGRID_FROM_EMAIL = self._get_optional("SENDGRID_FROM_EMAIL")
        self.SENDGRID_FROM_NAME = self._get_optional("SENDGRID_FROM_NAME", "Cedar Intake")

        self.HTTP_TIMEOUT_SECONDS = self._get_float("HTTP_TIMEOUT_SECONDS", 10.0)

        if self.LOG_FORMAT not in ("text", "json"):
            raise ConfigError(f"LOG_FORMAT must be 'text' or 'json', got {self.LOG_FORMAT!r}")

    def _get_optional(self, name: str, default: str = "") -> str:
        """Get an optional configuration value from environment variables."""
        if name in os.environ:
            return os.environ[name]
        return default

    def _get_bool(self, name: str) -> bool:
        """True if the environment variable exists and is set to 'true' or '1'."""
        return name in os.environ and os.environ[name].lower() in ["true", "1"]

    def _get_int(self, name: str, default: int) -> int:
        raw = self._get_optional(name, str(default))
        try:
            return int(raw)
        except ValueError:
            raise ConfigError(f"{name} must be an integer, got {raw!r}") from None

    def _get_float(self, name: str, default: float) -> float:
        raw = self._get_optional(name, str(default))
        try:
            return float(raw)
        except ValueError:
            raise ConfigError(f"{name} must be a number, got {raw!r}") from None

    def _get_list(self, name: str, default: str = "") -> List[str]:
        raw = self._get_optional(name, default)
        return [item.strip() for item in raw.split(",") if item.strip()]

    @property
    def recaptcha_enabled(self) -> bool:
        return bool(self.RECAPTCHA_SECRET_KEY)

    @property
    def clickup_enabled(self) -> bool:
        return bool(self.CLICKUP_API_TOKEN and self.CLICKUP_LIST_ID)

    @property
    def sendgrid_enabled(self) -> bool:
        return bool(self.SENDGRID_API_KEY and self.SENDGRID_FROM_EMAIL)

    def log_summary(self) -> None:
        """Log which integrations are active, never their secrets."""
        self.logger.info(
            "Config loaded (env=%s, recaptcha=%s, clickup=%s, sendgrid=%s)",
            self.APP_ENV,
            self.recaptcha_enabled,
            self.clickup_enabled,
            self.sendgrid_enabled,
        )
        if not self.recaptcha_enabled:
            self.logger.warning("RECAPTCHA_SECRET_KEY not set; bot verification is disabled")


__all__ = [
    "Config",
    "ConfigError",
]
