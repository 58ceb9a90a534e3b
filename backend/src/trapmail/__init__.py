"""trapmail - a sendmail replacement for integration testing.

trapmail captures the mail an application "sends" and stores each message,
with its envelope and invocation metadata, as a JSON file named
`trapmail_<PPID>_<PID>_<TIMESTAMP>.json` in the directory named by
TRAPMAIL_STORE (default: the platform temp directory). Test code reads the
store back with this library:

    from trapmail import MailStoreReader

    for mail in MailStoreReader("/tmp/trapmail-test").find(ppid=app_pid):
        assert "b@example.com" in mail.recipients
"""

from .capture import CaptureResult, capture_mail, capture_with_retry
from .config import ENV_MAIL_STORE_PATH, Settings, get_settings, resolve_store_dir
from .domain.mail import (
    TrapmailError,
    ProcessInfoUnavailable,
    StoreDirectoryMissing,
    RecordCollision,
    RecordCorrupt,
    Mail,
    Envelope,
    MailBody,
    ProcessInfo,
    Invocation,
    IgnoredFlag,
    MailFilter,
    sort_by_timestamp,
)
from .infrastructure.store import MailStoreReader, MailStoreWriter, open_store

__all__ = [
    "CaptureResult",
    "capture_mail",
    "capture_with_retry",
    "ENV_MAIL_STORE_PATH",
    "Settings",
    "get_settings",
    "resolve_store_dir",
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
    "IgnoredFlag",
    "MailFilter",
    "sort_by_timestamp",
    "MailStoreReader",
    "MailStoreWriter",
    "open_store",
]
