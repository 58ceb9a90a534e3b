"""Unit tests for TrapmailSMTPHandler.

Drives handle_DATA directly with aiosmtpd envelopes; no sockets involved.
"""

from unittest.mock import Mock

import pytest
from aiosmtpd.smtp import Envelope

from trapmail.domain.mail import filename as filename_module
from trapmail.domain.mail.models import Mail
from trapmail.infrastructure.ingest.smtp_handler import TrapmailSMTPHandler


def make_envelope(content: bytes, mail_from="a@example.com", rcpt_tos=None) -> Envelope:
    envelope = Envelope()
    envelope.mail_from = mail_from
    envelope.rcpt_tos = list(rcpt_tos or ["b@example.com", "c@example.com"])
    envelope.content = content
    envelope.original_content = content
    return envelope


class TestTrapmailSMTPHandler:
    """Test suite for TrapmailSMTPHandler."""

    @pytest.mark.asyncio
    async def test_message_is_stored(self, store_dir):
        handler = TrapmailSMTPHandler()

        reply = await handler.handle_DATA(Mock(), Mock(), make_envelope(b"Subject: hi\r\n\r\nhello"))

        assert reply == "250 Message accepted"
        mail = Mail.load(next(store_dir.iterdir()))
        assert mail.sender == "a@example.com"
        assert mail.recipients == ["b@example.com", "c@example.com"]
        assert mail.message == b"Subject: hi\r\n\r\nhello"
        assert mail.invocation.source == "smtp"
        assert mail.invocation.addresses == ["b@example.com", "c@example.com"]

    @pytest.mark.asyncio
    async def test_fixed_store_dir(self, tmp_path, store_dir):
        fixed = tmp_path / "fixed"
        fixed.mkdir()
        handler = TrapmailSMTPHandler(store_dir=fixed)

        reply = await handler.handle_DATA(Mock(), Mock(), make_envelope(b"x"))

        assert reply.startswith("250")
        assert len(list(fixed.iterdir())) == 1
        assert list(store_dir.iterdir()) == []

    @pytest.mark.asyncio
    async def test_missing_store_is_temporary_failure(self, tmp_path):
        handler = TrapmailSMTPHandler(store_dir=tmp_path / "missing")

        reply = await handler.handle_DATA(Mock(), Mock(), make_envelope(b"x"))

        assert reply.startswith("451")

    @pytest.mark.asyncio
    async def test_persistent_collision_is_temporary_failure(self, store_dir, monkeypatch):
        monkeypatch.setattr(filename_module, "current_timestamp_us", lambda: 100)
        handler = TrapmailSMTPHandler(attempts=2)

        first = await handler.handle_DATA(Mock(), Mock(), make_envelope(b"one"))
        second = await handler.handle_DATA(Mock(), Mock(), make_envelope(b"two"))

        assert first.startswith("250")
        assert second == "451 Temporary error: record collision"
        assert Mail.load(next(store_dir.iterdir())).message == b"one"

    @pytest.mark.asyncio
    async def test_messages_in_same_process_get_distinct_files(self, store_dir):
        handler = TrapmailSMTPHandler()

        for n in range(5):
            reply = await handler.handle_DATA(Mock(), Mock(), make_envelope(f"mail {n}".encode()))
            assert reply.startswith("250")

        assert len(list(store_dir.iterdir())) == 5
