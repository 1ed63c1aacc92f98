"""
Structured logging configuration for orderdesk.

Provides JSON-formatted logging with automatic context propagation and
configurable output handlers. The read path swallows backend failures by
design, so these logs are the only record of which candidate endpoints
failed and why.

Usage:
    from orderdesk.logging_config import configure_logging, get_logger

    # Configure at application entry point
    configure_logging(level="INFO", json_output=True)

    # Get a structured logger
    logger = get_logger(__name__)
    logger.info("Fetched page", view="browse", returned=20)

    # Automatic context propagation
    with LogContext(sequence="browse", generation=4):
        logger.info("Applying result")  # Includes sequence and generation
"""

import json
import logging
import logging.handlers
import os
import sys
import threading
import time
from contextvars import ContextVar, Token
from dataclasses import dataclass, field
from datetime import datetime, timezone
from functools import wraps
from typing import Any, Callable, Dict, Optional

# Context variables for automatic field injection
_log_context: ContextVar[Dict[str, Any]] = ContextVar("log_context", default={})

# Environment configuration
LOG_LEVEL = os.environ.get("ORDERDESK_LOG_LEVEL", "INFO").upper()
LOG_FORMAT = os.environ.get("ORDERDESK_LOG_FORMAT", "text")  # "json" or "text"
LOG_FILE = os.environ.get("ORDERDESK_LOG_FILE", "")

# Log rotation configuration (for file logging)
LOG_MAX_BYTES = int(os.environ.get("ORDERDESK_LOG_MAX_BYTES", 10 * 1024 * 1024))  # 10MB default
LOG_BACKUP_COUNT = int(os.environ.get("ORDERDESK_LOG_BACKUP_COUNT", 5))  # Keep 5 backups


@dataclass
class LogRecord:
    """Structured log record with all context fields."""
    timestamp: str
    level: str
    logger: str
    message: str
    fields: Dict[str, Any] = field(default_factory=dict)
    sequence: Optional[str] = None
    generation: Optional[int] = None
    exception: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result: Dict[str, Any] = {
            "ts": self.timestamp,
            "level": self.level,
            "logger": self.logger,
            "msg": self.message,
        }
        if self.sequence:
            result["sequence"] = self.sequence
        if self.generation is not None:
            result["generation"] = self.generation
        if self.fields:
            result.update(self.fields)
        if self.exception:
            result["exception"] = self.exception
        return result

    def to_json(self) -> str:
        """Serialize to JSON string."""
        return json.dumps(self.to_dict(), default=str)

    def to_text(self) -> str:
        """Format as human-readable text."""
        parts = [
            self.timestamp,
            f"[{self.level}]",
            f"[{self.logger}]",
        ]
        if self.sequence:
            tag = self.sequence
            if self.generation is not None:
                tag += f"#{self.generation}"
            parts.append(f"[{tag}]")
        parts.append(self.message)
        if self.fields:
            field_str = " ".join(f"{k}={v}" for k, v in self.fields.items())
            parts.append(field_str)
        if self.exception:
            parts.append(f"\n{self.exception.get('traceback', '')}")
        return " ".join(parts)


def _context_fields(record: logging.LogRecord) -> Dict[str, Any]:
    ctx = _log_context.get()
    return {
        "sequence": ctx.get("sequence") or getattr(record, "sequence", None),
        "generation": ctx.get("generation", getattr(record, "generation", None)),
    }


class JSONFormatter(logging.Formatter):
    """JSON log formatter with structured field support."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_record = LogRecord(
            timestamp=datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            level=record.levelname,
            logger=record.name,
            message=record.getMessage(),
            fields=getattr(record, "structured_fields", {}),
            **_context_fields(record),
        )

        if record.exc_info:
            log_record.exception = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else "Unknown",
                "message": str(record.exc_info[1]) if record.exc_info[1] else "",
                "traceback": self.formatException(record.exc_info),
            }

        return log_record.to_json()


class TextFormatter(logging.Formatter):
    """Human-readable text formatter with structured field support."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as text."""
        log_record = LogRecord(
            timestamp=datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S"),
            level=record.levelname,
            logger=record.name.split(".")[-1],  # Short name
            message=record.getMessage(),
            fields=getattr(record, "structured_fields", {}),
            **_context_fields(record),
        )

        if record.exc_info:
            log_record.exception = {
                "traceback": self.formatException(record.exc_info),
            }

        return log_record.to_text()


class StructuredLogger:
    """
    Structured logger wrapper with automatic context propagation.

    Provides methods for logging with structured fields that are
    automatically serialized to JSON or text format.
    """

    def __init__(self, name: str):
        self._logger = logging.getLogger(name)
        self._name = name

    def _log(
        self,
        level: int,
        message: str,
        exc_info: bool = False,
        **fields: Any,
    ) -> None:
        """Internal log method with structured fields."""
        if not self._logger.isEnabledFor(level):
            return

        extra = {"structured_fields": fields}
        self._logger.log(level, message, exc_info=exc_info, extra=extra)

    def debug(self, message: str, **fields: Any) -> None:
        """Log at DEBUG level with optional structured fields."""
        self._log(logging.DEBUG, message, **fields)

    def info(self, message: str, **fields: Any) -> None:
        """Log at INFO level with optional structured fields."""
        self._log(logging.INFO, message, **fields)

    def warning(self, message: str, **fields: Any) -> None:
        """Log at WARNING level with optional structured fields."""
        self._log(logging.WARNING, message, **fields)

    def error(self, message: str, exc_info: bool = False, **fields: Any) -> None:
        """Log at ERROR level with optional structured fields and exception."""
        self._log(logging.ERROR, message, exc_info=exc_info, **fields)

    def exception(self, message: str, **fields: Any) -> None:
        """Log at ERROR level with exception info."""
        self._log(logging.ERROR, message, exc_info=True, **fields)

    @property
    def level(self) -> int:
        """Get current log level."""
        return self._logger.level

    def isEnabledFor(self, level: int) -> bool:
        """Check if logger is enabled for level."""
        return self._logger.isEnabledFor(level)


class LogContext:
    """
    Context manager for setting log context fields.

    All logs within the context will automatically include the specified fields.
    """

    def __init__(self, **fields: Any):
        self._fields = fields
        self._token: Optional[Token[Dict[str, Any]]] = None

    def __enter__(self) -> "LogContext":
        current = _log_context.get()
        merged = {**current, **self._fields}
        self._token = _log_context.set(merged)
        return self

    def __exit__(self, *args) -> None:
        if self._token is not None:
            _log_context.reset(self._token)


def set_context(**fields: Any) -> None:
    """Set log context fields for the current async context."""
    current = _log_context.get()
    _log_context.set({**current, **fields})


def get_context() -> Dict[str, Any]:
    """Get current log context fields."""
    return _log_context.get()


def clear_context() -> None:
    """Clear all log context fields."""
    _log_context.set({})


# Logger cache (thread-safe)
_loggers: Dict[str, StructuredLogger] = {}
_loggers_lock = threading.Lock()


def get_logger(name: str) -> StructuredLogger:
    """
    Get or create a structured logger by name (thread-safe).

    Args:
        name: Logger name (typically __name__)

    Returns:
        StructuredLogger instance
    """
    with _loggers_lock:
        if name not in _loggers:
            _loggers[name] = StructuredLogger(name)
        return _loggers[name]


def configure_logging(
    level: str | None = None,
    json_output: bool | None = None,
    log_file: str | None = None,
    propagate: bool = True,
) -> None:
    """
    Configure logging for the application.

    Should be called once at application startup.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_output: If True, output JSON format; if False, text format
        log_file: Optional file path for log output
        propagate: Whether to propagate to root logger
    """
    log_level = getattr(logging, (level or LOG_LEVEL).upper(), logging.INFO)
    use_json = json_output if json_output is not None else (LOG_FORMAT == "json")
    file_path = log_file or LOG_FILE

    formatter = JSONFormatter() if use_json else TextFormatter()

    root = logging.getLogger()
    root.setLevel(log_level)

    for handler in root.handlers[:]:
        root.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)
    console_handler.setLevel(log_level)
    root.addHandler(console_handler)

    if file_path:
        file_handler = logging.handlers.RotatingFileHandler(
            file_path,
            maxBytes=LOG_MAX_BYTES,
            backupCount=LOG_BACKUP_COUNT,
        )
        file_handler.setFormatter(formatter)
        file_handler.setLevel(log_level)
        root.addHandler(file_handler)

    package_logger = logging.getLogger("orderdesk")
    package_logger.setLevel(log_level)
    package_logger.propagate = propagate


def log_function(
    level: str = "DEBUG",
    log_duration: bool = True,
):
    """
    Decorator to log coroutine completion and duration.

    Failures are logged at ERROR with the exception and re-raised.

    Args:
        level: Log level for the completion record
        log_duration: Whether to log execution duration
    """
    log_level = getattr(logging, level.upper(), logging.DEBUG)

    def decorator(func: Callable) -> Callable:
        logger = get_logger(func.__module__)

        @wraps(func)
        async def async_wrapper(*args, **kwargs):
            fields: Dict[str, Any] = {"function": func.__name__}
            start = time.monotonic()
            try:
                result = await func(*args, **kwargs)
                if log_duration:
                    fields["duration_ms"] = round((time.monotonic() - start) * 1000, 2)
                logger._log(log_level, f"Function completed: {func.__name__}", **fields)
                return result
            except Exception as e:
                fields["duration_ms"] = round((time.monotonic() - start) * 1000, 2)
                fields["error"] = str(e)
                logger.error(f"Function failed: {func.__name__}", exc_info=True, **fields)
                raise

        return async_wrapper
    return decorator
