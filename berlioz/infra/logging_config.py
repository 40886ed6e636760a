"""Process-wide logging setup shared by the API and the event worker."""

from __future__ import annotations

import logging
import logging.config
from typing import Optional

from berlioz.config import get_settings

DEFAULT_LOGGER_NAME = "berlioz"
LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


class LoggingConfig:
    """Apply the dictConfig once per process at the configured level."""

    _configured = False

    def __init__(self, level: Optional[str] = None) -> None:
        if LoggingConfig._configured:
            return
        level = (level or get_settings().log_level or "INFO").upper()
        logging.config.dictConfig(
            {
                "version": 1,
                "disable_existing_loggers": False,
                "formatters": {"default": {"format": LOG_FORMAT}},
                "handlers": {
                    "console": {
                        "class": "logging.StreamHandler",
                        "formatter": "default",
                    }
                },
                "loggers": {
                    DEFAULT_LOGGER_NAME: {"level": level},
                    # Slack and HTTP clients are chatty at DEBUG
                    "slack_sdk": {"level": "WARNING"},
                    "urllib3": {"level": "WARNING"},
                },
                "root": {"handlers": ["console"], "level": "WARNING"},
            }
        )
        LoggingConfig._configured = True


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Return a logger under the berlioz namespace."""
    if not name:
        return logging.getLogger(DEFAULT_LOGGER_NAME)
    if name.startswith(DEFAULT_LOGGER_NAME):
        return logging.getLogger(name)
    return logging.getLogger(f"{DEFAULT_LOGGER_NAME}.{name}")
