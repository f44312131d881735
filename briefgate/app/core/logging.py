"""Logging setup.

Standard library logging configured through ``dictConfig``. Three output
formats are available via ``LOG_FORMAT``: ``text``, ``structured`` (text with
the gate context appended) and ``json`` (one object per line for log
shippers). Gate decisions attach ``client_id``, ``operation`` and ``code`` so
a rejected or failed request can be traced to one client.
"""

import json
import logging
import logging.config
import sys
import traceback
from datetime import datetime
from typing import Any, Dict, Optional

from briefgate.app.core.config import settings

# Context attached to records through ``extra=``; rendered at top level in JSON
CONTEXT_FIELDS = (
    "request_id",
    "client_id",
    "operation",
    "code",
    "path",
    "method",
    "status_code",
    "duration_ms",
)

# LogRecord internals that never belong in the "extra" object
_RECORD_INTERNALS = frozenset((
    "name", "msg", "args", "levelname", "levelno", "pathname",
    "filename", "module", "exc_info", "exc_text", "stack_info",
    "lineno", "funcName", "created", "msecs", "relativeCreated",
    "thread", "threadName", "processName", "process", "message",
    "asctime", "taskName",
))

TEXT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
STRUCTURED_FORMAT = (
    TEXT_FORMAT
    + " - request_id=%(request_id)s - client_id=%(client_id)s"
    + " - operation=%(operation)s - code=%(code)s"
)


class JSONFormatter(logging.Formatter):
    """Render each record as a single JSON object.

    Known context fields go to the top level when set; anything else passed
    through ``extra=`` is grouped under ``"extra"``.
    """

    def format(self, record: logging.LogRecord) -> str:
        record.message = record.getMessage()
        payload: Dict[str, Any] = {
            "timestamp": datetime.now().astimezone().isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.message,
            "source": {
                "file": record.pathname,
                "line": record.lineno,
                "function": record.funcName,
            },
        }

        for name in CONTEXT_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                payload[name] = value

        extra = {
            key: value
            for key, value in record.__dict__.items()
            if key not in _RECORD_INTERNALS and key not in CONTEXT_FIELDS
        }
        if extra:
            payload["extra"] = extra

        if record.exc_info and record.exc_info[0] is not None:
            payload["exception"] = traceback.format_exception(*record.exc_info)

        return json.dumps(payload, default=str, ensure_ascii=False)


class ContextFilter(logging.Filter):
    """Give every record the context attributes so format strings never fail."""

    def filter(self, record: logging.LogRecord) -> bool:
        for name in CONTEXT_FIELDS:
            if not hasattr(record, name):
                setattr(record, name, None)
        return True


def _formatter_for(log_format: str) -> Dict[str, Any]:
    if log_format == "json":
        return {"()": "briefgate.app.core.logging.JSONFormatter"}
    if log_format == "structured":
        return {"format": STRUCTURED_FORMAT}
    return {"format": TEXT_FORMAT}


def get_logging_config() -> Dict[str, Any]:
    """Build the ``dictConfig`` mapping from settings.

    Records at ERROR and above are additionally written to stderr.
    """
    log_format = str(getattr(settings, "log_format", "text")).lower()
    if log_format not in ("text", "structured", "json"):
        log_format = "text"
    log_level = str(getattr(settings, "log_level", "INFO")).upper()

    def stream_handler(stream: Any, level: str) -> Dict[str, Any]:
        return {
            "class": "logging.StreamHandler",
            "level": level,
            "formatter": log_format,
            "stream": stream,
            "filters": ["context"],
        }

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {log_format: _formatter_for(log_format)},
        "filters": {"context": {"()": "briefgate.app.core.logging.ContextFilter"}},
        "handlers": {
            "console": stream_handler(sys.stdout, log_level),
            "error_console": stream_handler(sys.stderr, "ERROR"),
        },
        "loggers": {
            "briefgate": {
                "level": log_level,
                "handlers": ["console", "error_console"],
                "propagate": False,
            },
            "uvicorn": {"level": log_level, "handlers": ["console"], "propagate": False},
        },
        "root": {"level": log_level, "handlers": ["console"]},
    }


def setup_logging() -> None:
    """Configure logging for the application."""
    logging.config.dictConfig(get_logging_config())

    # Access lines and per-request httpx logs drown out gate decisions
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


def get_logger(name: str = "briefgate") -> logging.Logger:
    return logging.getLogger(name)


def get_log_context(
    request_id: Optional[str] = None,
    client_id: Optional[str] = None,
    operation: Optional[str] = None,
    code: Optional[str] = None,
    **extra: Any,
) -> Dict[str, Any]:
    """Build an ``extra=`` mapping, dropping unset values.

    Example:
        >>> logger.info(
        ...     "Gate rejected request",
        ...     extra=get_log_context(client_id="203.0.113.7", operation="image", code="COOLDOWN")
        ... )
    """
    context: Dict[str, Any] = {
        "request_id": request_id,
        "client_id": client_id,
        "operation": operation,
        "code": code,
        **extra,
    }
    return {key: value for key, value in context.items() if value is not None}
