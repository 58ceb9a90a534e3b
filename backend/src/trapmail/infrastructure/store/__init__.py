"""Filesystem mail store: atomic writer and lock-free reader."""

from .mail_store_writer import MailStoreWriter, publish_atomically
from .mail_store_reader import MailStoreReader, MailResult, open_store

__all__ = [
    "MailStoreWriter",
    "publish_atomically",
    "MailStoreReader",
    "MailResult",
    "open_store",
]
