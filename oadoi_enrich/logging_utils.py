"""Logging setup for the enrichment CLI with JSON output and redaction.

Records are written to standard error so that the CSV stream on standard
output stays clean.  A :class:`RedactingFilter` masks the contact address
embedded in oaDOI lookup URLs (``?email=...``) as well as obvious credentials
such as ``token=`` or ``password=`` before any handler formats the record.
"""

from __future__ import annotations

import json
import logging
import logging.config
import re
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any, Literal

__all__ = [
    "JsonFormatter",
    "RedactingFilter",
    "configure_logging",
]

LogFormat = Literal["human", "json"]

MASK = "***"

_SENSITIVE_KEY = r"(?:email|mailto|token|secret|password|api[_-]?key)"
_SENSITIVE_VALUE_REGEX = re.compile(
    rf"(?i)(?P<prefix>\b{_SENSITIVE_KEY}\b\s*[:=]\s*)(?P<value>[^&\"',;\s]+)"
)
_SENSITIVE_NAME_REGEX = re.compile(rf"(?i)^{_SENSITIVE_KEY}$")

# Attributes every LogRecord carries; anything else was passed via ``extra``.
_STANDARD_ATTRIBUTES = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None))
) | {"message", "asctime"}


def _redact(value: Any) -> Any:
    if isinstance(value, str):
        return _SENSITIVE_VALUE_REGEX.sub(lambda m: f"{m.group('prefix')}{MASK}", value)
    if isinstance(value, Mapping):
        return {
            key: MASK
            if isinstance(key, str) and _SENSITIVE_NAME_REGEX.match(key)
            else _redact(item)
            for key, item in value.items()
        }
    if isinstance(value, list):
        return [_redact(item) for item in value]
    if isinstance(value, tuple):
        return tuple(_redact(item) for item in value)
    return value


class RedactingFilter(logging.Filter):
    """Mask contact addresses and credentials in messages and extras."""

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: D401
        record.msg = _redact(record.getMessage())
        # The message is fully rendered now; clearing ``args`` stops the
        # formatter from applying %-formatting a second time.
        record.args = ()
        for attr in list(vars(record)):
            if attr in _STANDARD_ATTRIBUTES:
                continue
            if _SENSITIVE_NAME_REGEX.match(attr):
                setattr(record, attr, MASK)
            else:
                setattr(record, attr, _redact(getattr(record, attr)))
        return True


class JsonFormatter(logging.Formatter):
    """Render log records as one JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:  # noqa: D401
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc)
            .isoformat()
            .replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "thread": record.threadName,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        extras = {
            key: value
            for key, value in vars(record).items()
            if key not in _STANDARD_ATTRIBUTES and not key.startswith("_")
        }
        if extras:
            payload["extra"] = extras
        return json.dumps(payload, default=repr, ensure_ascii=False)


def configure_logging(
    log_level: str = "INFO", *, log_format: LogFormat = "human"
) -> None:
    """Configure root logging for the command line entry point.

    Args:
        log_level: Level name such as ``"INFO"`` or ``"DEBUG"``.
        log_format: ``"human"`` for text lines, ``"json"`` for JSON lines.

    Raises:
        ValueError: If ``log_level`` or ``log_format`` is not recognised.
    """

    if log_format not in ("human", "json"):
        msg = f"Unsupported log format: {log_format!r}"
        raise ValueError(msg)
    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        msg = f"Unknown log level: {log_level!r}"
        raise ValueError(msg)

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "filters": {"redact": {"()": RedactingFilter}},
            "formatters": {
                "human": {
                    "format": "%(asctime)s %(levelname)s [%(threadName)s] "
                    "%(name)s: %(message)s",
                    "datefmt": "%Y-%m-%dT%H:%M:%S%z",
                },
                "json": {"()": JsonFormatter},
            },
            "handlers": {
                "stderr": {
                    "class": "logging.StreamHandler",
                    "level": level,
                    "filters": ["redact"],
                    "formatter": log_format,
                    "stream": "ext://sys.stderr",
                }
            },
            "root": {"level": level, "handlers": ["stderr"]},
        }
    )
