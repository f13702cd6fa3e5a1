"""
Runtime settings for the procurement negotiator.
Loads settings from environment variables (and a ``.env`` file) and provides
the logging configuration.
"""

import logging
import logging.config
import os
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv


class Settings:
    """Application settings loaded from environment variables."""

    def __init__(self, env_file: Optional[Path] = None):
        """Read settings, loading ``env_file`` (or ``./.env``) first if present."""
        load_dotenv(dotenv_path=env_file)

        # Monitoring & Logging
        self.LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()
        self.LOG_FILE: Optional[str] = os.getenv("LOG_FILE") or None

        # Negotiation Settings
        self.PROCUREMENT_CONFIG: Optional[str] = os.getenv("PROCUREMENT_CONFIG") or None
        self.RESPONSE_TIMEOUT: Optional[float] = _optional_float("RESPONSE_TIMEOUT")
        self.POLL_INTERVAL: Optional[float] = _optional_float("POLL_INTERVAL")

        # Development/Production
        self.ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")

        self._validate_settings()

    def _validate_settings(self):
        """Validate critical settings."""
        if not isinstance(logging.getLevelName(self.LOG_LEVEL), int):
            raise ValueError(f"Unknown LOG_LEVEL '{self.LOG_LEVEL}'")
        for name in ("RESPONSE_TIMEOUT", "POLL_INTERVAL"):
            value = getattr(self, name)
            if value is not None and value <= 0:
                raise ValueError(f"{name} must be positive")

    def to_dict(self) -> Dict[str, Any]:
        """Convert settings to dictionary."""
        return {
            key: getattr(self, key)
            for key in vars(self)
            if key.isupper() and not key.startswith("_")
        }

    def timing_overrides(self) -> Dict[str, float]:
        """Negotiation timing fields overridden from the environment."""
        overrides = {}
        if self.RESPONSE_TIMEOUT is not None:
            overrides["response_timeout"] = self.RESPONSE_TIMEOUT
        if self.POLL_INTERVAL is not None:
            overrides["poll_interval"] = self.POLL_INTERVAL
        return overrides

    def get_logging_config(self) -> dict:
        """Get logging configuration."""
        handlers: Dict[str, dict] = {
            'console': {
                'class': 'logging.StreamHandler',
                'formatter': 'default',
            },
        }
        if self.LOG_FILE:
            handlers['file'] = {
                'class': 'logging.handlers.RotatingFileHandler',
                'filename': self.LOG_FILE,
                'maxBytes': 10485760,  # 10MB
                'backupCount': 5,
                'formatter': 'json' if self.ENVIRONMENT == 'production' else 'default',
            }
        formatters: Dict[str, dict] = {
            'default': {
                'format': '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            },
        }
        if self.ENVIRONMENT == 'production':
            formatters['json'] = {
                'class': 'pythonjsonlogger.jsonlogger.JsonFormatter',
                'format': '%(asctime)s %(name)s %(levelname)s %(message)s'
            }
        return {
            'version': 1,
            'disable_existing_loggers': False,
            'formatters': formatters,
            'handlers': handlers,
            'root': {
                'level': self.LOG_LEVEL,
                'handlers': list(handlers),
            },
        }


def _optional_float(name: str) -> Optional[float]:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return None
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got '{raw}'") from None


def configure_logging(settings: Settings) -> None:
    """Apply the logging configuration described by ``settings``."""
    logging.config.dictConfig(settings.get_logging_config())
