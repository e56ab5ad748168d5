"""
Structured JSON logging configuration.

This module sets up application-wide JSON logging with:
- Consistent field names across all logs
- Per-submission context (user id, display name, message text)
- Moderation outcome and classifier diagnostics

Logs are output to stdout in JSON format so the submission audit trail
can be collected by any log aggregation system.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict


# Attributes every LogRecord carries; anything else came in through extra={...}
_RESERVED_ATTRS = frozenset({
    "name", "msg", "args", "created", "filename", "funcName",
    "levelname", "levelno", "lineno", "module", "msecs",
    "message", "pathname", "process", "processName", "relativeCreated",
    "thread", "threadName", "exc_info", "exc_text", "stack_info",
    "taskName",
})


class JSONFormatter(logging.Formatter):
    """
    Custom JSON formatter for structured logging.

    Outputs log records as single-line JSON objects with consistent fields:
    - timestamp: ISO 8601 format with microseconds (UTC)
    - level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    - message: Log message
    - logger: Logger name (module path)
    - user_id, display_name, message_text: submission context (if available)
    - outcome: terminal pipeline state (if available)
    - classifier_answer / error: diagnostics (if available)
    - exception: Exception details (if exception occurred)

    Example output:
        {"timestamp": "2025-03-01T10:30:00.123456+00:00", "level": "INFO",
         "message": "Submission rejected", "logger": "cryout.bot.pipeline",
         "user_id": 42, "display_name": "anon", "message_text": "...",
         "outcome": "rejected_duplicate"}
    """

    def format(self, record: logging.LogRecord) -> str:
        """
        Format log record as JSON string.

        Args:
            record: LogRecord to format

        Returns:
            JSON string representation of log record
        """
        log_data: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "message": record.getMessage(),
            "logger": record.name,
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if record.stack_info:
            log_data["stack_info"] = self.formatStack(record.stack_info)

        # Fields passed via logger.info("msg", extra={...})
        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS and key not in log_data:
                log_data[key] = value

        # ensure_ascii off: submissions are mostly Cyrillic
        return json.dumps(log_data, default=str, ensure_ascii=False)


def setup_logging(
    level: str = "INFO",
    json_format: bool = True
) -> None:
    """
    Configure application logging.

    Sets up:
    - Root logger with specified level
    - JSON formatter (if json_format=True)
    - StreamHandler to stdout
    - Removes default handlers

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: Use JSON formatter (True) or simple formatter (False)

    Note:
        Call this once at startup, before any logging occurs.
    """
    root_logger = logging.getLogger()

    log_level = getattr(logging, level.upper(), logging.INFO)
    root_logger.setLevel(log_level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)

    if json_format:
        formatter = JSONFormatter()
    else:
        # Simple format for development/debugging
        formatter = logging.Formatter(
            fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S"
        )

    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    # Suppress noisy third-party loggers
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)
    logging.getLogger("telegram").setLevel(logging.WARNING)
    logging.getLogger("openai").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
