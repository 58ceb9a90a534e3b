"""Pytest fixtures for trapmail tests.

Provides reusable test fixtures for:
- An empty mail store directory exported as TRAPMAIL_STORE
- A factory for Mail records with explicit process identity
- Isolation of the root logger between tests

Usage:
    def test_reader_sees_mail(store_dir, make_mail):
        MailStoreWriter(store_dir).add(make_mail(pid=10))
        assert len(list(MailStoreReader(store_dir).find(pid=10))) == 1
"""

import logging
import sys
from pathlib import Path
from typing import List, Optional

import pytest

backend_src = Path(__file__).parent.parent / "src"
if str(backend_src) not in sys.path:
    sys.path.insert(0, str(backend_src))

from trapmail.config import ENV_MAIL_STORE_PATH
from trapmail.domain.mail.models import (
    Envelope,
    IgnoreDots,
    IgnoredFlag,
    InlineRecipients,
    Invocation,
    Mail,
    MailBody,
    ProcessInfo,
)

# 2019-12-09 17:05:47.000313 UTC
BASE_TIMESTAMP_US = 1575911147000313


@pytest.fixture
def store_dir(tmp_path, monkeypatch) -> Path:
    """Empty store directory, also exported as TRAPMAIL_STORE."""
    directory = tmp_path / "store"
    directory.mkdir()
    monkeypatch.setenv(ENV_MAIL_STORE_PATH, str(directory))
    return directory


@pytest.fixture
def no_store_env(monkeypatch):
    """Make sure TRAPMAIL_STORE is not set."""
    monkeypatch.delenv(ENV_MAIL_STORE_PATH, raising=False)


@pytest.fixture
def make_mail():
    """Factory for Mail records with explicit (ppid, pid, timestamp)."""

    def _make(
        pid: int = 6299,
        ppid: int = 5913,
        timestamp_us: int = BASE_TIMESTAMP_US,
        sender: Optional[str] = "marc@example.com",
        recipients: Optional[List[str]] = None,
        raw: bytes = b"To: Santa Clause <santa@example.com>\nSubject: Naughty list\n\nExample body.\n",
    ) -> Mail:
        if recipients is None:
            recipients = ["santa@example.com"]
        return Mail(
            envelope=Envelope(sender=sender, recipients=recipients),
            raw_message=MailBody.from_raw(raw),
            invocation=Invocation(
                argv=["-i", "-t", "-odb", *recipients],
                flags=[IgnoreDots(), InlineRecipients(), IgnoredFlag(token="-odb")],
                addresses=list(recipients),
                working_directory="/srv/app",
                environment={"TRAPMAIL_STORE": "/tmp/trapmail-test"},
            ),
            process_info=ProcessInfo(pid=pid, ppid=ppid, timestamp_us=timestamp_us),
        )

    return _make


@pytest.fixture(autouse=True)
def restore_root_logger():
    """Undo configure_logging() calls made by code under test."""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
