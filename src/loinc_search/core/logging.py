"""
Logging utilities for the LOINC search module.

Log records can carry run context (run_id, batch_index, offset, query_id)
so an import can be followed batch by batch, across restarts, and a query
can be followed from embedding to explanation.
"""

import json
import logging
import sys
import threading
from datetime import datetime, timezone
from typing import IO, Any, Dict, Optional


CONTEXT_FIELDS = ("run_id", "batch_index", "offset", "query_id")

PACKAGE_LOGGER = "loinc_search"

_local = threading.local()


def _record_context(record: logging.LogRecord) -> Dict[str, Any]:
    context = {}
    for name in CONTEXT_FIELDS:
        value = getattr(record, name, None)
        if value is not None:
            context[name] = value
    return context


class StructuredFormatter(logging.Formatter):
    """One JSON object per line: level, logger, message, timestamp and context fields."""

    def __init__(self, include_timestamp: bool = True):
        super().__init__()
        self.include_timestamp = include_timestamp

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if self.include_timestamp:
            entry["timestamp"] = datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat()
        entry.update(_record_context(record))
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class HumanReadableFormatter(logging.Formatter):
    """
    Plain text lines with the run context appended.

    Format: TIMESTAMP - LOGGER - LEVEL - MESSAGE [run_id=X batch_index=Y]
    """

    def __init__(self, include_timestamp: bool = True):
        fmt = "%(name)s - %(levelname)s - %(message)s"
        if include_timestamp:
            fmt = "%(asctime)s - " + fmt
        super().__init__(fmt)

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = _record_context(record)
        if not context:
            return line
        suffix = " ".join(f"{key}={value}" for key, value in context.items())
        return f"{line} [{suffix}]"


def configure_logging(
    level: int = logging.INFO,
    structured: bool = False,
    include_timestamp: bool = True,
    stream: Optional[IO[str]] = None,
) -> logging.Handler:
    """
    Send the loinc_search package logs to a stream (stderr by default).

    stdout is left to the command-line tools for their results. Calling this
    again replaces the handler installed by the previous call.

    Example:
        >>> configure_logging(level=logging.DEBUG, structured=True)
    """
    package_logger = logging.getLogger(PACKAGE_LOGGER)
    package_logger.setLevel(level)

    for existing in list(package_logger.handlers):
        if getattr(existing, "_loinc_search_handler", False):
            package_logger.removeHandler(existing)

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setLevel(level)
    if structured:
        handler.setFormatter(StructuredFormatter(include_timestamp=include_timestamp))
    else:
        handler.setFormatter(HumanReadableFormatter(include_timestamp=include_timestamp))
    handler._loinc_search_handler = True
    package_logger.addHandler(handler)
    return handler


class LogContext:
    """
    Adds context fields to records logged through ``log_with_context``.

    Contexts nest: an inner context merges over the outer one and the outer
    fields come back on exit. Each thread sees its own context.

    Example:
        >>> with LogContext(run_id="abc"), LogContext(batch_index=3):
        ...     log_with_context(logger, logging.INFO, "Batch persisted")
    """

    def __init__(self, **fields: Any):
        self.fields = {k: v for k, v in fields.items() if v is not None}
        self._previous: Dict[str, Any] = {}

    def __enter__(self) -> "LogContext":
        self._previous = getattr(_local, "context", {})
        merged = dict(self._previous)
        merged.update(self.fields)
        _local.context = merged
        return self

    def __exit__(self, *args) -> None:
        _local.context = self._previous

    @staticmethod
    def get_current() -> Dict[str, Any]:
        return dict(getattr(_local, "context", {}))


def log_with_context(logger: logging.Logger, level: int, message: str, **extra: Any) -> None:
    """Log ``message`` with the current LogContext fields (and ``extra``) attached."""
    context = LogContext.get_current()
    context.update(extra)
    logger.log(level, message, extra=context)
