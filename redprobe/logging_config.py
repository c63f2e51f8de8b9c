"""Logging setup for redprobe.

Probe results go to stdout, so diagnostics always go to stderr and stay
quiet (WARNING) unless REDPROBE_LOG_LEVEL asks for more.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import Any

import orjson

LOG_LEVEL_ENV = "REDPROBE_LOG_LEVEL"
LOG_FORMAT_ENV = "REDPROBE_LOG_FORMAT"  # "json" | "text" (default)
DEFAULT_LOG_LEVEL = "WARNING"
ROOT_LOGGER_NAME = "redprobe"


def get_logger(name: str) -> logging.Logger:
    """Return the logger for a redprobe module, configuring the package root on first use."""
    logger = logging.getLogger(ROOT_LOGGER_NAME if name == ROOT_LOGGER_NAME else f"{ROOT_LOGGER_NAME}.{name}")
    if not logger.handlers and logger.level == logging.NOTSET:
        _configure_root_logger()
    return logger


def _configure_root_logger() -> None:
    root = logging.getLogger(ROOT_LOGGER_NAME)
    if root.handlers:
        return
    level_name = (os.environ.get(LOG_LEVEL_ENV) or DEFAULT_LOG_LEVEL).upper()
    root.setLevel(getattr(logging, level_name, logging.WARNING))
    handler = logging.StreamHandler(sys.stderr)
    if (os.environ.get(LOG_FORMAT_ENV) or "text").lower() == "json":
        handler.setFormatter(_JsonFormatter())
    else:
        handler.setFormatter(
            logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s", datefmt="%Y-%m-%d %H:%M:%S")
        )
    root.addHandler(handler)


class _JsonFormatter(logging.Formatter):
    """One JSON object per line, for log shippers."""

    def format(self, record: logging.LogRecord) -> str:
        obj: dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt or "%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            obj["exception"] = self.formatException(record.exc_info)
        return orjson.dumps(obj, default=str).decode("utf-8")
