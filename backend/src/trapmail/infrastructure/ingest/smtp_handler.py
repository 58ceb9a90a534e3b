"""SMTP handler that captures every accepted message into the mail store.

Implements an aiosmtpd handler: each DATA transaction becomes one stored
record, exactly as if the application had piped the message into the
trapmail command. Nothing is relayed or delivered.
"""

import asyncio
import logging
import os
from pathlib import Path
from typing import Optional, Union

from aiosmtpd.smtp import Envelope, Session, SMTP

from ...capture import DEFAULT_CAPTURE_ATTEMPTS, capture_with_retry
from ...domain.mail.errors import (
    ProcessInfoUnavailable,
    RecordCollision,
    StoreDirectoryMissing,
)
from ...domain.mail.models import Invocation

logger = logging.getLogger(__name__)


class TrapmailSMTPHandler:
    """aiosmtpd handler storing messages instead of delivering them.

    Replies:
        '250 Message accepted' - Stored
        '451 ...'              - Could not be stored; the client may retry
    """

    def __init__(
        self,
        store_dir: Optional[Union[str, Path]] = None,
        attempts: int = DEFAULT_CAPTURE_ATTEMPTS,
    ):
        """Initialize SMTP handler.

        Args:
            store_dir: Fixed store directory; resolved from TRAPMAIL_STORE
                per message if omitted
            attempts: Capture attempts per message on filename collision
        """
        self.store_dir = Path(store_dir) if store_dir is not None else None
        self.attempts = attempts

    def build_invocation(self, envelope: Envelope) -> Invocation:
        return Invocation(
            source="smtp",
            addresses=list(envelope.rcpt_tos),
            working_directory=os.getcwd(),
        )

    async def handle_DATA(
        self,
        server: SMTP,
        session: Session,
        envelope: Envelope,
    ) -> str:
        """Handle email DATA command (main SMTP handler entry point).

        Args:
            server: SMTP server instance
            session: SMTP session
            envelope: Email envelope (content, sender, recipients)

        Returns:
            str: SMTP response code and message
        """
        content = envelope.original_content or envelope.content or b""
        if isinstance(content, str):
            content = content.encode("utf-8")

        logger.info(
            f"Received email: from={envelope.mail_from}, "
            f"rcpt={len(envelope.rcpt_tos)}, size={len(content)} bytes"
        )

        try:
            # Filesystem write; keep it off the event loop.
            result = await asyncio.to_thread(
                capture_with_retry,
                envelope.mail_from,
                list(envelope.rcpt_tos),
                content,
                self.build_invocation(envelope),
                self.store_dir,
                self.attempts,
            )
        except RecordCollision as e:
            logger.error(f"Filename collision persisted after {self.attempts} attempts: {e}")
            return "451 Temporary error: record collision"
        except StoreDirectoryMissing as e:
            logger.error(str(e))
            return "451 Temporary error: mail store missing"
        except (ProcessInfoUnavailable, OSError) as e:
            logger.error(f"Could not store mail: {e}", exc_info=True)
            return "451 Temporary error: could not store mail"

        logger.info(f"Stored email as {result.path.name}")
        return "250 Message accepted"
