"""Capture ID management for log correlation.

The capture id of a capture is the stem of its allocated filename, so log
lines can be matched to the record they describe.
"""

from contextvars import ContextVar
from typing import Optional

NO_CAPTURE_ID = "no-capture-id"

capture_id_var: ContextVar[Optional[str]] = ContextVar("capture_id", default=None)


def get_capture_id() -> str:
    """Get current capture ID from context.

    Returns:
        str: Current capture ID or "no-capture-id" if not set
    """
    return capture_id_var.get() or NO_CAPTURE_ID


def set_capture_id(capture_id: Optional[str]) -> None:
    capture_id_var.set(capture_id)
