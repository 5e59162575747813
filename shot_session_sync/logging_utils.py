"""
Structured JSON logging utilities.

Sync components log through module loggers under the ``shot_session_sync``
namespace. Applications that ship logs to a collector can switch the
output to single-line JSON with :func:`configure_structured_logging`;
anything passed through ``extra`` (``session_id``, ``op_type``, ...)
becomes a top-level field.
"""

import json
import logging
import sys
from datetime import UTC, datetime
from typing import Any, TextIO

PACKAGE_LOGGER = "shot_session_sync"

# Attributes every LogRecord carries; anything else came in through ``extra``.
_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {
    "message",
    "asctime",
}


def _jsonable(value: Any) -> Any:
    try:
        json.dumps(value)
    except (TypeError, ValueError):
        return str(value)
    return value


class StructuredJsonFormatter(logging.Formatter):
    """Formats each record as one JSON object per line.

    Fixed fields are ``timestamp`` (UTC, ISO 8601), ``level``, ``logger``
    and ``message``, plus ``exception`` when exc_info is set. Values that
    JSON cannot encode are stringified.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        entry.update(
            (key, _jsonable(value))
            for key, value in vars(record).items()
            if key not in _RECORD_ATTRS and not key.startswith("_")
        )
        return json.dumps(entry)


def configure_structured_logging(
    level: int = logging.INFO,
    logger_name: str | None = PACKAGE_LOGGER,
    stream: TextIO | None = None,
) -> logging.Logger:
    """Send a logger's output to ``stream`` as JSON lines.

    Calling it again replaces the handler instead of adding a second one.

    Args:
        level: Minimum level to emit
        logger_name: Logger to configure (``None`` for the root logger)
        stream: Destination (default: stdout)

    Returns:
        The configured logger
    """
    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(StructuredJsonFormatter())

    target = logging.getLogger(logger_name)
    for existing in list(target.handlers):
        target.removeHandler(existing)
    target.addHandler(handler)
    target.setLevel(level)
    return target


def get_sync_logger(name: str) -> logging.Logger:
    """Logger named ``shot_session_sync.<name>``."""
    return logging.getLogger(f"{PACKAGE_LOGGER}.{name}")


class SyncLoggerAdapter(logging.LoggerAdapter):
    """Tags every record with fixed context, e.g. the session being changed.

    Per-call ``extra`` values are kept alongside the adapter's context.
    """

    def process(self, msg: str, kwargs: dict[str, Any]) -> tuple[str, dict[str, Any]]:
        kwargs["extra"] = {**kwargs.get("extra", {}), **(self.extra or {})}
        return msg, kwargs
