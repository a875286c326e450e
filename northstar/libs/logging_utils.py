"""Structured logging for NorthStar services and scripts.

Events are logged as short snake_case names with details in ``extra``::

    logger.warning("provider_transient_failure", extra={"label": label, "attempt": 2})

``JsonFormatter`` flattens those extras into the emitted object, so the event
name and its fields stay queryable in log storage.
"""

from __future__ import annotations

import json
import logging
import os
from datetime import datetime, timezone
from logging.config import dictConfig
from typing import Any, Dict, Mapping

_RECORD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime"}
_SECRET_FIELDS = frozenset({"api_key", "authorization", "password", "dsn", "token"})
_REDACTED = "***"
_DEV_ENVIRONMENTS = frozenset({"local", "dev", "development", "test"})

# Client libraries log every request at INFO; keep them to warnings.
_NOISY_LOGGERS = ("httpx", "httpcore", "openai", "asyncpg")

_ANSI = {"red": "31", "yellow": "33", "green": "32", "cyan": "36"}


def _environment() -> str:
    return os.getenv("NORTHSTAR_ENVIRONMENT", os.getenv("ENVIRONMENT", "dev")).lower()


def color_enabled() -> bool:
    flag = os.getenv("NORTHSTAR_LOG_COLOR", "")
    if flag:
        return flag == "1"
    return _environment() in _DEV_ENVIRONMENTS


def colorize(text: str, color: str = "red") -> str:
    code = _ANSI.get(color)
    if code is None or not color_enabled():
        return text
    return f"\033[{code}m{text}\033[0m"


def record_fields(record: logging.LogRecord) -> Dict[str, Any]:
    """Return the ``extra`` fields attached to ``record``, secrets masked."""

    fields: Dict[str, Any] = {}
    for key, value in record.__dict__.items():
        if key in _RECORD_ATTRS or key.startswith("_"):
            continue
        fields[key] = _REDACTED if key.lower() in _SECRET_FIELDS else value
    return fields


class JsonFormatter(logging.Formatter):
    """One JSON object per line: timestamp, level, logger, event name and extras."""

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(record_fields(record))
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


class ColorTextFormatter(logging.Formatter):
    """Console formatter: warnings in yellow, errors in red, extras appended as ``k=v``."""

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        fields = record_fields(record)
        if fields:
            line = f"{line} " + " ".join(f"{key}={value}" for key, value in fields.items())
        if record.levelno >= logging.ERROR:
            return colorize(line, "red")
        if record.levelno >= logging.WARNING:
            return colorize(line, "yellow")
        return line


def _logging_config(level: str, formatter: str) -> Mapping[str, Any]:
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "json": {"()": JsonFormatter},
            "text": {
                "()": ColorTextFormatter,
                "format": "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            },
        },
        "handlers": {
            "console": {"class": "logging.StreamHandler", "formatter": formatter, "level": level},
        },
        "loggers": {name: {"level": "WARNING"} for name in _NOISY_LOGGERS},
        "root": {"handlers": ["console"], "level": level},
    }


def configure_logging(level: str | None = None, fmt: str | None = None) -> None:
    """Install the console handler.

    ``level`` and ``fmt`` default to ``NORTHSTAR_LOG_LEVEL`` (DEBUG in
    development, INFO elsewhere) and ``NORTHSTAR_LOG_FORMAT`` (``json``).
    """

    default_level = "DEBUG" if _environment() in _DEV_ENVIRONMENTS else "INFO"
    level = (level or os.getenv("NORTHSTAR_LOG_LEVEL", default_level)).upper()
    fmt = (fmt or os.getenv("NORTHSTAR_LOG_FORMAT", "json")).lower()
    dictConfig(_logging_config(level, "json" if fmt == "json" else "text"))


__all__ = [
    "ColorTextFormatter",
    "JsonFormatter",
    "color_enabled",
    "colorize",
    "configure_logging",
    "record_fields",
]
