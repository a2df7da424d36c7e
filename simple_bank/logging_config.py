"""
Structured Logging Configuration Module

Provides JSON-formatted structured logging for banking operations. Every
transfer logs under one correlation ID, so its rejection, retries and commit
can be followed across lines.
"""

import logging
import json
from datetime import datetime, timezone
from typing import Optional


TEXT_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

# Fields set by log_action, in output order
STRUCTURED_FIELDS = ("correlation_id", "user_id", "action", "resource", "extra")


class JSONFormatter(logging.Formatter):
    """One JSON object per record; structured fields appear only when set"""

    def format(self, record):
        log_entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for field in STRUCTURED_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                log_entry[field] = value

        if record.exc_info:
            log_entry['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str)


class TextFormatter(logging.Formatter):
    """Plain log lines with the action and correlation ID appended"""

    def __init__(self):
        super().__init__(TEXT_FORMAT)

    def format(self, record):
        line = super().format(record)
        tags = [
            f"{field}={getattr(record, field)}"
            for field in ("action", "resource", "correlation_id")
            if getattr(record, field, None)
        ]
        return f"{line} [{' '.join(tags)}]" if tags else line


def setup_logging(level: str = "INFO", logger_name: str = "simple_bank",
                  log_format: str = "json") -> logging.Logger:
    """
    Setup structured logging for the application.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        logger_name: Name of the root application logger
        log_format: "json" for structured output, "text" for plain lines

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(logger_name)

    # Remove existing handlers to avoid duplicates
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setFormatter(TextFormatter() if log_format == "text" else JSONFormatter())

    logger.addHandler(handler)
    logger.setLevel(getattr(logging, level.upper()))
    logger.propagate = False

    return logger


def get_logger(name: str = "simple_bank") -> logging.Logger:
    """Get logger instance"""
    return logging.getLogger(name)


def log_action(logger: logging.Logger, level: str, message: str,
               user_id: Optional[str] = None, action: Optional[str] = None,
               resource: Optional[str] = None, correlation_id: Optional[str] = None,
               extra: Optional[dict] = None, exc_info: bool = False):
    """
    Log a banking action with structured fields.

    Args:
        logger: Logger instance
        level: Log level (info, warning, error, etc.)
        message: Log message
        user_id: Acting owner performing the action
        action: Action name, e.g. transfer_committed
        resource: Record acted upon, e.g. account:7 or transfer:12
        correlation_id: ID shared by all lines of one transfer
        extra: Additional structured data
        exc_info: Attach the exception currently being handled
    """
    fields = {
        field: value for field, value in (
            ("user_id", user_id), ("action", action), ("resource", resource),
            ("correlation_id", correlation_id), ("extra", extra),
        ) if value
    }
    logger.log(getattr(logging, level.upper()), message, extra=fields, exc_info=exc_info)
