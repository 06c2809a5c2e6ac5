"""
Structured JSON logging with correlation IDs and operation timing.

Provides:
- JSON format for log aggregation
- Correlation IDs carried through a context variable
- Structured metadata attached through the 'extra_fields' record attribute
- Timing of store operations
"""

import logging
import json
import time
import uuid
from contextvars import ContextVar
from typing import Optional
from datetime import datetime, timezone

# Context variable for the correlation ID (thread and task safe)
request_id_ctx: ContextVar[Optional[str]] = ContextVar(
    "request_id", default=None)


class StructuredFormatter(logging.Formatter):
    """
    JSON formatter for structured logging.

    Outputs logs in JSON format with standardized fields.
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        request_id = request_id_ctx.get()
        if request_id:
            log_data["request_id"] = request_id

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        # Keys, hashes and durations passed via extra={"extra_fields": {...}}
        if hasattr(record, "extra_fields"):
            log_data.update(record.extra_fields)

        return json.dumps(log_data, default=str)


class PerformanceTracker:
    """
    Context manager for timing a store operation.

    Usage:
        with PerformanceTracker("write", logger, key=key):
            backend.write(key, data, visibility)
    """

    def __init__(
        self,
        operation: str,
        logger: logging.Logger,
        log_level: int = logging.DEBUG,
        **extra_fields,
    ):
        """
        Initialize performance tracker.

        Args:
            operation: Operation name
            logger: Logger instance
            log_level: Log level for completion message
            **extra_fields: Additional structured fields
        """
        self.operation = operation
        self.logger = logger
        self.log_level = log_level
        self.extra_fields = extra_fields
        self.start_time: Optional[float] = None
        self.duration_ms: Optional[float] = None

    def __enter__(self):
        self.start_time = time.time()
        self.logger.debug(
            f"Starting operation: {self.operation}",
            extra={"extra_fields": {"operation": self.operation, **self.extra_fields}},
        )
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.duration_ms = round((time.time() - self.start_time) * 1000, 2)
        extra = {
            "operation": self.operation,
            "duration_ms": self.duration_ms,
            **self.extra_fields,
        }

        if exc_type:
            extra["error"] = str(exc_val)
            extra["error_type"] = exc_type.__name__
            self.logger.error(
                f"Operation failed: {self.operation}",
                extra={"extra_fields": extra},
            )
        else:
            self.logger.log(
                self.log_level,
                f"Operation completed: {self.operation}",
                extra={"extra_fields": extra},
            )
        return False


def setup_logging(log_level: str = "INFO", json_format: bool = True):
    """
    Configure application logging.

    Args:
        log_level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: Use JSON formatting if True, standard format if False
    """
    level = getattr(logging, log_level.upper())
    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)

    if json_format:
        formatter = StructuredFormatter()
    else:
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        )

    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    # Set AWS SDK loggers to WARNING to reduce noise
    for name in ("boto3", "botocore", "s3transfer", "urllib3"):
        logging.getLogger(name).setLevel(logging.WARNING)


def set_request_id(request_id: Optional[str] = None) -> str:
    """
    Set correlation ID in context.

    Args:
        request_id: Correlation ID (generated if not provided)

    Returns:
        Correlation ID
    """
    if request_id is None:
        request_id = str(uuid.uuid4())
    request_id_ctx.set(request_id)
    return request_id


def get_request_id() -> Optional[str]:
    """Get current correlation ID from context."""
    return request_id_ctx.get()


def clear_request_id():
    """Clear correlation ID from context."""
    request_id_ctx.set(None)
