"""Logging for applications built with ``create_app``.

Installs one stdout handler on the root logger unless the host process has
already configured logging.
"""
from __future__ import annotations
import logging
from logging.config import dictConfig

_DICT_CONFIG = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "default": {"format": "%(asctime)s %(levelname)s:%(name)s:%(message)s"},
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "default",
            "stream": "ext://sys.stdout",
        }
    },
    "root": {"level": "INFO", "handlers": ["console"]},
}


def configure_logging() -> None:
    """Configure logging once; a root logger with handlers is left alone."""
    if logging.getLogger().handlers:
        return
    dictConfig(_DICT_CONFIG)
