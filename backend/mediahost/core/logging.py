"""Structured logging with correlation IDs.

Every request and every background conversion carries a correlation ID so
that the remote steps of one folder or conversion operation can be followed
across the API process and the Celery worker. Host, folder and job
identifiers passed as extra fields are lifted to the top level of the JSON
record so log queries can filter on them directly.
"""

import json
import logging
import sys
import traceback
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Optional

correlation_id_var: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)

# Extra fields promoted next to the message
CONTEXT_FIELDS = ("host_id", "folder_id", "video_id", "job_id", "account_id", "operation")

# Attributes every LogRecord has; anything else came in through ``extra``
_RECORD_ATTRIBUTES = frozenset(
    logging.LogRecord("", 0, "", 0, "", (), None).__dict__
) | {"message", "asctime", "correlation_id"}


def get_correlation_id() -> str:
    """Current correlation ID, created on first use in a context."""
    cid = correlation_id_var.get()
    if cid is None:
        cid = str(uuid.uuid4())
        correlation_id_var.set(cid)
    return cid


def set_correlation_id(correlation_id: str) -> None:
    correlation_id_var.set(correlation_id)


def clear_correlation_id() -> None:
    correlation_id_var.set(None)


def _jsonable(value: Any) -> Any:
    try:
        json.dumps(value)
    except (TypeError, ValueError):
        return str(value)
    return value


class StructuredFormatter(logging.Formatter):
    """One JSON object per record."""

    def __init__(self, include_stack_trace: bool = True, service: str = "mediahost"):
        super().__init__()
        self.include_stack_trace = include_stack_trace
        self.service = service

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "service": self.service,
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "correlation_id": getattr(record, "correlation_id", None) or get_correlation_id(),
            "location": f"{record.module}:{record.funcName}:{record.lineno}",
        }

        extra = {
            key: _jsonable(value)
            for key, value in record.__dict__.items()
            if key not in _RECORD_ATTRIBUTES
        }
        for key in CONTEXT_FIELDS:
            if key in extra:
                entry[key] = extra.pop(key)
        if extra:
            entry["extra"] = extra

        if record.exc_info and record.exc_info[0] is not None:
            exc_type, exc_value, exc_tb = record.exc_info
            entry["exception"] = {"type": exc_type.__name__, "message": str(exc_value)}
            if self.include_stack_trace and exc_tb is not None:
                entry["exception"]["stack_trace"] = traceback.format_exception(
                    exc_type, exc_value, exc_tb
                )

        return json.dumps(entry, default=str)


class CorrelationIdFilter(logging.Filter):
    """Stamps the context's correlation ID on each record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = get_correlation_id()
        return True


def setup_logging(
    level: str = "INFO",
    json_format: bool = True,
    include_stack_trace: bool = True,
) -> None:
    """Install a single stdout handler on the root logger.

    Args:
        level: Log level name
        json_format: JSON records instead of plain text lines
        include_stack_trace: Add formatted tracebacks to JSON error records
    """
    log_level = logging.getLevelName(level.upper())

    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(CorrelationIdFilter())
    if json_format:
        handler.setFormatter(StructuredFormatter(include_stack_trace=include_stack_trace))
    else:
        handler.setFormatter(logging.Formatter(
            "%(asctime)s %(levelname)-8s %(name)s [%(correlation_id)s] %(message)s"
        ))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(log_level)

    # Library chatter
    for name in ("uvicorn.access", "sqlalchemy.engine", "paramiko.transport"):
        logging.getLogger(name).setLevel(logging.WARNING)


def _log(logger: logging.Logger, level: int, message: str, extra: dict, **kwargs: Any) -> None:
    extra["correlation_id"] = get_correlation_id()
    logger.log(level, message, extra=extra, stacklevel=3, **kwargs)


def log_error(
    logger: logging.Logger,
    message: str,
    exception: Optional[BaseException] = None,
    **extra: Any,
) -> None:
    """Log an error, with the exception's traceback when one is given."""
    if exception is not None:
        _log(logger, logging.ERROR, message, extra, exc_info=exception)
    else:
        _log(logger, logging.ERROR, message, extra)


def log_warning(logger: logging.Logger, message: str, **extra: Any) -> None:
    _log(logger, logging.WARNING, message, extra)


def log_info(logger: logging.Logger, message: str, **extra: Any) -> None:
    _log(logger, logging.INFO, message, extra)
