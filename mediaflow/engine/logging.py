"""
MediaFlow Logging — Structured JSON log records on top of the standard logging module.

Implements:
- JsonFormatter: one JSON object per line (timestamp, level, logger, message, extras)
- RequestContextFilter: stamps request_id / principal_id from the request context
- access_event(): builder for the structured fields attached to denial records
- init_logging() / shutdown_logging(): install and remove the "mediaflow" handler
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional, TextIO

from mediaflow.engine.context import get_request_context

logger = logging.getLogger("mediaflow.engine.logging")

ROOT_LOGGER = "mediaflow"

# LogRecord attributes that are not user-supplied extras
_RESERVED_ATTRS = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None)).keys()
) | {"message", "asctime"}

_handler: Optional[logging.Handler] = None


class JsonFormatter(logging.Formatter):
    """Formats a record as a compact JSON line, including any ``extra=`` fields."""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS and not key.startswith("_"):
                entry[key] = value
        if record.exc_info:
            entry["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str, separators=(",", ":"))


class RequestContextFilter(logging.Filter):
    """Adds request_id and principal_id when a request context is active."""

    def filter(self, record: logging.LogRecord) -> bool:
        ctx = get_request_context()
        if ctx is not None:
            if not hasattr(record, "request_id"):
                record.request_id = ctx.request_id
            if not hasattr(record, "principal_id"):
                record.principal_id = ctx.principal_id
        return True


def access_event(
    event: str,
    folder_id: Optional[int],
    action: Optional[str] = None,
    principal_id: Optional[int] = None,
    **extra: Any,
) -> Dict[str, Any]:
    """Build the structured fields for an access log record (pass as ``extra=``)."""
    fields: Dict[str, Any] = {"event": event, "folder_id": folder_id}
    if action is not None:
        fields["action"] = action
    if principal_id is not None:
        fields["principal_id"] = principal_id
    fields.update(extra)
    return fields


def init_logging(
    level: str = "INFO",
    fmt: str = "json",
    stream: Optional[TextIO] = None,
) -> logging.Handler:
    """
    Install a single stream handler on the "mediaflow" logger.

    Safe to call multiple times — replaces the previously installed handler.
    """
    global _handler

    root = logging.getLogger(ROOT_LOGGER)
    if _handler is not None:
        root.removeHandler(_handler)

    handler = logging.StreamHandler(stream or sys.stderr)
    if fmt == "json":
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter(
            "%(asctime)s %(levelname)s %(name)s: %(message)s"
        ))
    handler.addFilter(RequestContextFilter())

    root.addHandler(handler)
    root.setLevel(level.upper())
    _handler = handler
    logger.debug(f"Logging initialised (level={level}, format={fmt})")
    return handler


def shutdown_logging() -> None:
    """Remove the handler installed by init_logging()."""
    global _handler
    if _handler is not None:
        logging.getLogger(ROOT_LOGGER).removeHandler(_handler)
        _handler.flush()
        _handler = None
