"""Observability: log configuration and capture-id correlation."""

from .capture_context import get_capture_id, set_capture_id, NO_CAPTURE_ID
from .logging_config import configure_logging, JSONFormatter, CaptureIDFilter

__all__ = [
    "get_capture_id",
    "set_capture_id",
    "NO_CAPTURE_ID",
    "configure_logging",
    "JSONFormatter",
    "CaptureIDFilter",
]
