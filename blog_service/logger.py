"""Centralized logging configuration for the blog service."""

import json
import logging
import sys
from datetime import datetime, timezone
from .config import settings


class JSONFormatter(logging.Formatter):
    """One JSON object per log line, for log shippers."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_data)


def setup_logger() -> logging.Logger:
    """Configure and return the service logger with console and optional file handlers."""
    logger = logging.getLogger("blog_service")
    logger.setLevel(getattr(logging, settings.LOG_LEVEL.upper()))

    # Importing twice must not double every line
    if logger.handlers:
        return logger

    console_format = logging.Formatter(
        fmt='%(asctime)s %(levelname)-8s [%(name)s] %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(
        JSONFormatter() if settings.LOG_FORMAT == "json" else console_format
    )
    logger.addHandler(console_handler)

    if settings.LOG_FILE:
        try:
            file_handler = logging.FileHandler(settings.LOG_FILE)
            file_handler.setFormatter(
                JSONFormatter() if settings.LOG_FORMAT == "json" else console_format
            )
            logger.addHandler(file_handler)
        except OSError as e:
            logger.error(f"Failed to create file handler for {settings.LOG_FILE}: {e}")

    return logger


logger = setup_logger()
