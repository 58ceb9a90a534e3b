"""Structured logging configuration.

Log output goes to stderr: stdout belongs to the program driving trapmail.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Optional, TextIO

from .capture_context import get_capture_id


class CaptureIDFilter(logging.Filter):
    """Add capture_id to all log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.capture_id = get_capture_id()
        return True


class JSONFormatter(logging.Formatter):
    """Format log records as JSON."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "capture_id": getattr(record, "capture_id", "no-capture-id"),
            "module": record.module,
            "function": record.funcName,
            "message": record.getMessage(),
        }

        if record.exc_info:
            log_data["error"] = str(record.exc_info[1])
            log_data["traceback"] = self.formatException(record.exc_info)

        if hasattr(record, "store_dir"):
            log_data["store_dir"] = str(record.store_dir)

        return json.dumps(log_data)


def configure_logging(
    level: str = "WARNING",
    json_format: bool = False,
    stream: Optional[TextIO] = None,
) -> None:
    """Configure process-wide logging.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        json_format: If True, use JSON formatter; otherwise use simple format
        stream: Output stream (default stderr)
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))
    root_logger.handlers.clear()

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setLevel(getattr(logging, level.upper()))

    if json_format:
        formatter = JSONFormatter()
    else:
        formatter = logging.Formatter(
            "trapmail: %(levelname)s - %(capture_id)s - %(module)s.%(funcName)s - %(message)s"
        )

    handler.setFormatter(formatter)
    handler.addFilter(CaptureIDFilter())
    root_logger.addHandler(handler)

    logging.getLogger("mail.log").setLevel(logging.WARNING)
