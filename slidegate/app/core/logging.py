"""Structured logging configuration for the rate limiter.

This module provides a structured logging setup using Python's standard
logging module with JSON formatting for production environments.
"""

import json
import logging
import logging.config
import sys
import traceback
from datetime import datetime
from typing import Any, Dict, Optional

from slidegate.app.core.config import settings

# Attributes every LogRecord carries; anything else came in through extra=
_RECORD_ATTRIBUTES = frozenset((
    "name", "msg", "args", "levelname", "levelno", "pathname",
    "filename", "module", "exc_info", "exc_text", "stack_info",
    "lineno", "funcName", "created", "msecs", "relativeCreated",
    "thread", "threadName", "processName", "process", "taskName",
    "message", "asctime", "timestamp", "logger", "level", "source",
))


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging.

    Outputs log records as JSON objects for consumption by log aggregation
    systems like ELK Stack or Grafana Loki.

    Attributes:
        fields: List of fields to include in JSON output
    """

    # Standard fields always included
    STANDARD_FIELDS = ["name", "levelname", "message", "timestamp"]

    # Contextual fields for rate limit decisions
    CONTEXT_FIELDS = [
        "identity",      # Rate limited subject (hashed key, user, route)
        "limit",         # Configured capacity
        "hits",          # Hits requested by this call
        "hit_count",     # Weighted sliding window count after the call
        "accepted",      # Decision outcome
        "remaining",     # Remaining tokens reported to the caller
        "storage",       # Storage backend name (memory, redis)
    ]

    def __init__(
        self,
        fields: Optional[list] = None,
        datefmt: Optional[str] = None,
    ):
        """Initialize JSON formatter.

        Args:
            fields: Custom fields to include (defaults to all standard + context)
            datefmt: Date format string (ISO8601 by default)
        """
        super().__init__(datefmt=datefmt)
        self.fields = fields or (self.STANDARD_FIELDS + self.CONTEXT_FIELDS)

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON.

        Args:
            record: Log record to format

        Returns:
            JSON string representation of the log record
        """
        log_data: Dict[str, Any] = {}

        record.message = record.getMessage()

        log_data["timestamp"] = datetime.now().astimezone().isoformat()
        log_data["level"] = record.levelname
        log_data["logger"] = record.name
        log_data["message"] = record.message

        log_data["source"] = {
            "file": record.pathname,
            "line": record.lineno,
            "function": record.funcName,
        }

        for field in self.CONTEXT_FIELDS:
            if hasattr(record, field):
                value = getattr(record, field)
                if value is not None:
                    log_data[field] = value

        for key, value in record.__dict__.items():
            if key in _RECORD_ATTRIBUTES or key in self.CONTEXT_FIELDS:
                continue
            log_data.setdefault("extra", {})[key] = value

        if record.exc_info and record.exc_info != (None, None, None):
            log_data["exception"] = traceback.format_exception(*record.exc_info)

        return json.dumps(log_data, default=str, ensure_ascii=False)


class ContextFilter(logging.Filter):
    """Logging filter that adds contextual fields to log records.

    Adds default values for identity, limit and the other decision
    fields if not already present in the log record, so that the
    structured text format never fails on a missing attribute.
    """

    CONTEXT_DEFAULTS = {
        "identity": None,
        "limit": None,
        "hits": None,
        "hit_count": None,
        "accepted": None,
        "remaining": None,
        "storage": None,
    }

    def filter(self, record: logging.LogRecord) -> bool:
        """Add context fields to log record if not present.

        Args:
            record: Log record to enrich

        Returns:
            True to allow the record through
        """
        for field, default in self.CONTEXT_DEFAULTS.items():
            if not hasattr(record, field):
                setattr(record, field, default)
        return True


def get_logging_config() -> Dict[str, Any]:
    """Get logging configuration dictionary.

    Returns:
        Logging configuration dict compatible with logging.config.dictConfig
    """
    log_format = getattr(settings, "log_format", "text").lower()
    log_level = getattr(settings, "log_level", "INFO").upper()

    formatters = {
        "standard": {
            "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        },
        "structured": {
            "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s - identity=%(identity)s - accepted=%(accepted)s - remaining=%(remaining)s"
        },
    }

    if log_format == "json":
        formatters["json"] = {
            "()": "slidegate.app.core.logging.JSONFormatter",
        }
        default_formatter = "json"
    else:
        default_formatter = "structured" if log_format == "structured" else "standard"

    handlers = {
        "console": {
            "class": "logging.StreamHandler",
            "level": log_level,
            "formatter": default_formatter,
            "stream": sys.stdout,
            "filters": ["context"],
        },
        "error_console": {
            "class": "logging.StreamHandler",
            "level": "ERROR",
            "formatter": default_formatter,
            "stream": sys.stderr,
            "filters": ["context"],
        },
    }

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": formatters,
        "filters": {
            "context": {
                "()": "slidegate.app.core.logging.ContextFilter",
            },
        },
        "handlers": handlers,
        "loggers": {
            "slidegate": {
                "level": log_level,
                "handlers": ["console", "error_console"],
                "propagate": False,
            },
        },
        "root": {
            "level": log_level,
            "handlers": ["console"],
        },
    }


def setup_logging() -> None:
    """Configure logging for the application."""
    logging.config.dictConfig(get_logging_config())

    # Reduce noise from third-party libraries
    logging.getLogger("redis").setLevel(logging.WARNING)


def get_logger(name: str = "slidegate") -> logging.Logger:
    """Get a logger instance with the specified name.

    Args:
        name: Logger name, defaults to "slidegate"

    Returns:
        Configured logger instance
    """
    return logging.getLogger(name)


def get_log_context(
    identity: Optional[str] = None,
    limit: Optional[int] = None,
    storage: Optional[str] = None,
    **extra
) -> Dict[str, Any]:
    """Create a log context dictionary for use with extra parameter.

    Args:
        identity: Rate limited subject
        limit: Configured capacity
        storage: Storage backend name
        **extra: Additional custom fields (hits, hit_count, accepted, ...)

    Returns:
        Dictionary suitable for passing as extra= parameter to logging calls

    Example:
        >>> logger.info(
        ...     "Rate limit exceeded",
        ...     extra=get_log_context(identity="user-1", limit=10, accepted=False)
        ... )
    """
    context = {
        "identity": identity,
        "limit": limit,
        "storage": storage,
    }
    context.update(extra)
    return {k: v for k, v in context.items() if v is not None}
