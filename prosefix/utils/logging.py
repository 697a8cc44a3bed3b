"""
Unified Logging Module for Prosefix

Provides structured JSON logging with consistent formatting across all modules.
Supports both development (pretty print) and production (JSON) modes.

Usage:
    from prosefix.utils.logging import get_logger, setup_logging

    # Initialize at app startup
    setup_logging()

    # Get logger in any module
    logger = get_logger(__name__)
    logger.info("Dispatch finished", extra={"request_id": "abc", "total": 5})
"""

import json
import logging
import logging.handlers
import sys
import traceback
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from ..core.config import settings

# Attributes present on every LogRecord; anything else came in via `extra`
_RESERVED_ATTRS = frozenset(
    logging.LogRecord("", 0, "", 0, "", None, None).__dict__.keys()
) | {"message", "asctime", "taskName"}

# Fields surfaced inline by the pretty formatter
_PRETTY_FIELDS = ("request_id", "model", "index", "total", "duration_ms", "status_code")


def _extra_fields(record: logging.LogRecord) -> dict[str, Any]:
    return {
        key: value
        for key, value in record.__dict__.items()
        if key not in _RESERVED_ATTRS and not key.startswith("_")
    }


# =============================================================================
# Formatters
# =============================================================================


class JSONFormatter(logging.Formatter):
    """JSON log formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        log_data.update(_extra_fields(record))

        if record.exc_info:
            log_data["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "traceback": traceback.format_exception(*record.exc_info),
            }

        return json.dumps(log_data, default=str)


class PrettyFormatter(logging.Formatter):
    """Human-readable formatter for development."""

    COLORS = {
        "DEBUG": "\033[36m",  # Cyan
        "INFO": "\033[32m",  # Green
        "WARNING": "\033[33m",  # Yellow
        "ERROR": "\033[31m",  # Red
        "CRITICAL": "\033[35m",  # Magenta
        "RESET": "\033[0m",
    }

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, self.COLORS["RESET"])
        reset = self.COLORS["RESET"]

        timestamp = datetime.now().strftime("%H:%M:%S.%f")[:-3]
        message = (
            f"{color}{timestamp} [{record.levelname:^8}]{reset} "
            f"{record.name}: {record.getMessage()}"
        )

        extras = {k: getattr(record, k) for k in _PRETTY_FIELDS if hasattr(record, k)}
        if extras:
            rendered = " | ".join(f"{k}={v}" for k, v in extras.items())
            message += f" {color}({rendered}){reset}"

        if record.exc_info:
            message += f"\n{self.formatException(record.exc_info)}"

        return message


# =============================================================================
# Logger Factory
# =============================================================================


class ContextAdapter(logging.LoggerAdapter):
    """Logger adapter that adds context to all log messages."""

    def process(self, msg: str, kwargs: dict[str, Any]) -> tuple:
        extra = dict(kwargs.get("extra") or {})
        extra.update(self.extra)
        kwargs["extra"] = extra
        return msg, kwargs


_logging_configured = False


def setup_logging(
    level: str | None = None,
    format_type: str | None = None,
    log_file: str | None = None,
    environment: str | None = None,
    force: bool = False,
) -> None:
    """
    Configure the root logger for the application.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        format_type: Format type (json or pretty)
        log_file: Path to a rotating log file (None/empty for stdout only)
        environment: Deployment environment; production always logs JSON
        force: Reconfigure even if logging was already set up
    """
    global _logging_configured

    if _logging_configured and not force:
        return

    level = (level or settings.LOG_LEVEL).upper()
    format_type = format_type or settings.LOG_FORMAT
    log_file = settings.LOG_FILE if log_file is None else log_file
    environment = environment or settings.ENVIRONMENT

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level, logging.INFO))
    root_logger.handlers.clear()

    if format_type == "json" or environment == "production":
        formatter: logging.Formatter = JSONFormatter()
    else:
        formatter = PrettyFormatter()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.handlers.RotatingFileHandler(
            log_path,
            maxBytes=settings.LOG_MAX_BYTES,
            backupCount=settings.LOG_BACKUP_COUNT,
            encoding="utf-8",
        )
        file_handler.setFormatter(JSONFormatter())  # Always JSON for files
        root_logger.addHandler(file_handler)

    # Reduce noise from third-party libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

    _logging_configured = True

    get_logger(__name__).info(
        "Logging configured",
        extra={
            "level": level,
            "format": format_type,
            "environment": environment,
            "log_file": log_file or None,
        },
    )


def get_logger(name: str, **context) -> logging.LoggerAdapter:
    """
    Get a logger with optional context.

    Usage:
        logger = get_logger(__name__, request_id="abc123")
        logger.info("Chunk dispatched", extra={"index": 3})
    """
    return ContextAdapter(logging.getLogger(name), context)


def log_request(
    method: str,
    path: str,
    status_code: int,
    duration_ms: float,
    request_id: str | None = None,
    **extra,
) -> None:
    """Log an HTTP request."""
    level = logging.WARNING if status_code >= 500 else logging.INFO
    get_logger("prosefix.http").log(
        level,
        f"{method} {path} {status_code}",
        extra={
            "method": method,
            "path": path,
            "status_code": status_code,
            "duration_ms": round(duration_ms, 2),
            "request_id": request_id,
            **extra,
        },
    )


__all__ = [
    "ContextAdapter",
    "JSONFormatter",
    "PrettyFormatter",
    "get_logger",
    "log_request",
    "setup_logging",
]
