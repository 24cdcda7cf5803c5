from __future__ import annotations

import logging.config
from pathlib import Path

from webgate.config.settings import Settings

ACCESS_LOGGER = "webgate.access"


def build_logging_config(settings: Settings) -> dict:
    """Return a dictConfig mapping for the application and access loggers.

    Production writes the access log in combined format to a file rotated at
    midnight; every other environment prints the short dev format.
    """
    handlers: dict[str, dict] = {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "default",
        },
    }
    if settings.is_production:
        log_dir = Path(settings.log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)
        handlers["access"] = {
            "class": "logging.handlers.TimedRotatingFileHandler",
            "formatter": "access",
            "filename": str(log_dir / "access.log"),
            "when": "midnight",
            "encoding": "utf-8",
        }
    else:
        handlers["access"] = {
            "class": "logging.StreamHandler",
            "formatter": "access",
        }

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {
                "format": "%(asctime)s %(levelname)s [%(name)s] %(message)s",
            },
            "access": {"format": "%(message)s"},
        },
        "handlers": handlers,
        "loggers": {
            "webgate": {
                "handlers": ["console"],
                "level": settings.log_level.upper(),
                "propagate": False,
            },
            ACCESS_LOGGER: {
                "handlers": ["access"],
                "level": "INFO",
                "propagate": False,
            },
        },
    }


def configure_logging(settings: Settings) -> None:
    logging.config.dictConfig(build_logging_config(settings))
