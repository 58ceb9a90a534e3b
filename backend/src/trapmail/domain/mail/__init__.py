"""Mail domain module - record model, filename allocation, filtering."""

from .errors import (
    TrapmailError,
    ProcessInfoUnavailable,
    StoreDirectoryMissing,
    RecordCollision,
    RecordCorrupt,
)
from .models import (
    Mail,
    Envelope,
    MailBody,
    ProcessInfo,
    Invocation,
    IgnoreDots,
    InlineRecipients,
    Sender,
    FullName,
    Verbose,
    Debug,
    IgnoredFlag,
    encode_mail,
    decode_mail,
)
from .filename import (
    Allocation,
    allocate,
    snapshot_process,
    format_filename,
    filename_for,
    parse_filename,
    is_mail_filename,
    FILENAME_RE,
)
from .filters import MailFilter, sort_by_timestamp

__all__ = [
    "TrapmailError",
    "ProcessInfoUnavailable",
    "StoreDirectoryMissing",
    "RecordCollision",
    "RecordCorrupt",
    "Mail",
    "Envelope",
    "MailBody",
    "ProcessInfo",
    "Invocation",
    "IgnoreDots",
    "InlineRecipients",
    "Sender",
    "FullName",
    "Verbose",
    "Debug",
    "IgnoredFlag",
    "encode_mail",
    "decode_mail",
    "Allocation",
    "allocate",
    "snapshot_process",
    "format_filename",
    "filename_for",
    "parse_filename",
    "is_mail_filename",
    "FILENAME_RE",
    "MailFilter",
    "sort_by_timestamp",
]
