"""Unit tests for the capture service, including the end-to-end scenario."""

import os
import threading

import pytest

from trapmail import capture as capture_module
from trapmail.capture import capture_mail, capture_with_retry
from trapmail.domain.mail.errors import (
    ProcessInfoUnavailable,
    RecordCollision,
    RecordCorrupt,
    StoreDirectoryMissing,
)
from trapmail.domain.mail.filename import FILENAME_RE
from trapmail.domain.mail.models import Invocation, Mail, ProcessInfo
from trapmail.infrastructure.store.mail_store_reader import MailStoreReader
from trapmail.observability.capture_context import get_capture_id


class TestCaptureMail:
    """Test capture of one message into the store."""

    def test_end_to_end(self, tmp_path, monkeypatch):
        store = tmp_path / "trapmail-test"
        store.mkdir()
        monkeypatch.setenv("TRAPMAIL_STORE", str(store))

        result = capture_mail(
            sender="a@example.com",
            recipients=["b@example.com", "c@example.com"],
            raw_message=b"Subject: hi\n\nhello",
        )

        files = list(store.iterdir())
        assert len(files) == 1
        match = FILENAME_RE.match(files[0].name)
        assert match is not None
        assert int(match.group(1)) == os.getppid()
        assert int(match.group(2)) == os.getpid()

        mail = Mail.load(files[0])
        assert mail.sender == "a@example.com"
        assert mail.recipients == ["b@example.com", "c@example.com"]
        assert mail.message == b"Subject: hi\n\nhello"
        assert mail == result.mail
        assert result.path == files[0]

    def test_records_resolved_store_path(self, store_dir):
        result = capture_mail(None, [], b"", invocation=Invocation(environment={"LANG": "C"}))

        assert result.mail.invocation.environment == {
            "LANG": "C",
            "TRAPMAIL_STORE": str(store_dir),
        }

    def test_explicit_store_dir(self, tmp_path, store_dir):
        other = tmp_path / "other"
        other.mkdir()

        result = capture_mail("a@example.com", ["b@example.com"], b"x", store_dir=other)

        assert result.path.parent == other
        assert list(store_dir.iterdir()) == []

    def test_sets_capture_id(self, store_dir):
        result = capture_mail("a@example.com", [], b"x")

        assert get_capture_id() == result.path.stem

    def test_missing_store_writes_nothing(self, tmp_path, monkeypatch):
        monkeypatch.setenv("TRAPMAIL_STORE", str(tmp_path / "missing"))

        with pytest.raises(StoreDirectoryMissing):
            capture_mail("a@example.com", [], b"x")

        assert list(tmp_path.iterdir()) == []

    def test_process_info_failure_writes_nothing(self, store_dir, monkeypatch):
        def unavailable(store_dir, process_info=None):
            raise ProcessInfoUnavailable("no parent")

        monkeypatch.setattr(capture_module, "allocate", unavailable)

        with pytest.raises(ProcessInfoUnavailable):
            capture_mail("a@example.com", [], b"x")

        assert list(store_dir.iterdir()) == []


class TestCaptureWithRetry:
    """Test retry on same-microsecond collisions."""

    def test_retries_with_new_timestamp(self, store_dir, monkeypatch):
        from trapmail.domain.mail import filename as filename_module

        clock = iter([100, 100, 101])
        monkeypatch.setattr(filename_module, "current_timestamp_us", lambda: next(clock))

        first = capture_with_retry("a@example.com", [], b"one")
        second = capture_with_retry("a@example.com", [], b"two")

        assert first.mail.timestamp_us == 100
        assert second.mail.timestamp_us == 101
        assert len(list(store_dir.iterdir())) == 2

    def test_gives_up_after_attempts(self, store_dir, monkeypatch):
        from trapmail.domain.mail import filename as filename_module

        monkeypatch.setattr(filename_module, "current_timestamp_us", lambda: 100)
        capture_mail("a@example.com", [], b"one")

        with pytest.raises(RecordCollision):
            capture_with_retry("a@example.com", [], b"two", attempts=2)

        assert Mail.load(next(store_dir.iterdir())).message == b"one"

    def test_rejects_zero_attempts(self, store_dir):
        with pytest.raises(ValueError):
            capture_with_retry("a@example.com", [], b"x", attempts=0)


def test_reader_never_sees_partial_records(store_dir):
    """Concurrent writers and a reader: no entry is ever seen half-written."""
    stop = threading.Event()
    corrupt = []

    def write(n):
        for i in range(50):
            capture_with_retry(f"writer{n}@example.com", ["x@example.com"], b"Subject: load\n\n" + b"x" * 4096)

    def read():
        reader = MailStoreReader(store_dir)
        while not stop.is_set():
            corrupt.extend(r for r in reader.iter_mails() if isinstance(r, RecordCorrupt))

    reader_thread = threading.Thread(target=read)
    reader_thread.start()
    writers = [threading.Thread(target=write, args=(n,)) for n in range(4)]
    for t in writers:
        t.start()
    for t in writers:
        t.join()
    stop.set()
    reader_thread.join()

    assert corrupt == []
    assert len(list(MailStoreReader(store_dir).find())) == 200
