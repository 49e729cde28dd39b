"""
Logging Configuration Module.

Centralised stdlib logging setup: one console handler, a selectable format
(simple, detailed or json) and quieter levels for chatty third-party loggers.
"""
from __future__ import annotations

import logging
import logging.config
from typing import Optional

from .config import settings

SIMPLE_FORMAT = "%(levelname)s - %(name)s - %(message)s"

DETAILED_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(funcName)s() - %(message)s"

JSON_FORMAT = (
    '{"timestamp": "%(asctime)s", "level": "%(levelname)s", "logger": "%(name)s", '
    '"module": "%(filename)s", "function": "%(funcName)s", "line": %(lineno)d, '
    '"message": "%(message)s"}'
)

FORMATS = {
    "simple": SIMPLE_FORMAT,
    "detailed": DETAILED_FORMAT,
    "json": JSON_FORMAT,
}

# Module-specific log levels
MODULE_LOG_LEVELS = {
    "sqlalchemy.engine": "WARNING",
    "uvicorn.access": "INFO",
    "passlib": "ERROR",
}

_configured = False


def build_logging_config(level: Optional[str] = None, fmt: Optional[str] = None) -> dict:
    level = (level or settings.log_level).upper()
    fmt = fmt or settings.log_format

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {"format": FORMATS.get(fmt, DETAILED_FORMAT)},
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "default",
                "stream": "ext://sys.stdout",
            },
        },
        "loggers": {
            "tea_inventory": {"level": level, "handlers": ["console"], "propagate": False},
            **{name: {"level": lvl} for name, lvl in MODULE_LOG_LEVELS.items()},
        },
        "root": {"level": "WARNING", "handlers": ["console"]},
    }


def setup_logging(level: Optional[str] = None, fmt: Optional[str] = None, force: bool = False) -> None:
    """Apply the logging configuration once per process (or again with ``force``)."""
    global _configured
    if _configured and not force:
        return
    logging.config.dictConfig(build_logging_config(level, fmt))
    _configured = True


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
