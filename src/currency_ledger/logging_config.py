"""Logging setup for the ``currency_ledger`` logger hierarchy.

Three output formats are supported, selected by ``[logging] format`` or
``LEDGER_LOG_FORMAT``:

- ``simple``:   ``LEVEL message``
- ``detailed``: timestamp, level, logger name and message
- ``json``:     one JSON object per line, for log shippers

Modules never configure logging themselves; they call
``logging.getLogger(__name__)`` and the CLI calls :func:`configure_logging`
once at startup.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import UTC, datetime
from typing import Any, TextIO

from currency_ledger.config import LoggingSettings

_LOGGER_PREFIX = "currency_ledger"

_FORMATS = {
    "simple": "%(levelname)s %(message)s",
    "detailed": "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
}

_STDLIB_KEYS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None)).keys()
) | {"message", "taskName"}


class JSONFormatter(logging.Formatter):
    """Formats each log record as a single JSON line."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        # Structured ``extra=`` fields
        for key, val in vars(record).items():
            if key not in _STDLIB_KEYS and key not in payload:
                payload[key] = val

        if record.exc_info and record.exc_info[1] is not None:
            exc = record.exc_info[1]
            payload["exc_type"] = type(exc).__name__
            payload["exc_message"] = str(exc)
            if hasattr(exc, "code"):
                payload["exc_code"] = exc.code
            payload["traceback"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=str)


def build_formatter(fmt: str) -> logging.Formatter:
    """Return the formatter for ``fmt``; unknown names fall back to ``detailed``."""
    if fmt == "json":
        return JSONFormatter()
    return logging.Formatter(_FORMATS.get(fmt, _FORMATS["detailed"]))


def configure_logging(
    settings: LoggingSettings | None = None,
    *,
    stream: TextIO | None = None,
) -> logging.Logger:
    """Install one stream handler on the ``currency_ledger`` logger.

    Calling this again replaces the previous handler, so the CLI and tests
    can reconfigure freely.

    Args:
        settings: Level and format; defaults to the loaded configuration.
        stream: Destination stream; defaults to ``sys.stderr``.

    Returns:
        The configured package logger.
    """
    if settings is None:
        from currency_ledger.config import config

        settings = config.logging

    level = logging.getLevelName(settings.level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    root_logger = logging.getLogger(_LOGGER_PREFIX)
    root_logger.setLevel(level)
    root_logger.propagate = False
    for existing in list(root_logger.handlers):
        root_logger.removeHandler(existing)

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(build_formatter(settings.format))
    root_logger.addHandler(handler)
    return root_logger


def reset_logging() -> None:
    """Remove installed handlers and restore propagation. For tests."""
    root_logger = logging.getLogger(_LOGGER_PREFIX)
    for existing in list(root_logger.handlers):
        root_logger.removeHandler(existing)
    root_logger.setLevel(logging.NOTSET)
    root_logger.propagate = True
