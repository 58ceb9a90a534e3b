"""Capture service - turns one ingress hand-off into one stored record.

Data flow: ingress shim -> Mail construction -> filename allocation ->
store writer -> filesystem. Process identity and the clock are read at the
moment of capture, never at process start.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence, Union

from .config import ENV_MAIL_STORE_PATH, resolve_store_dir
from .domain.mail.errors import RecordCollision
from .domain.mail.filename import allocate
from .domain.mail.models import Envelope, Invocation, Mail, MailBody
from .infrastructure.store.mail_store_writer import MailStoreWriter
from .observability.capture_context import set_capture_id

logger = logging.getLogger(__name__)

DEFAULT_CAPTURE_ATTEMPTS = 3


@dataclass(frozen=True)
class CaptureResult:
    """Outcome of a successful capture.

    Attributes:
        mail: The record as written
        path: Final path of the record in the store
    """
    mail: Mail
    path: Path


def capture_mail(
    sender: Optional[str],
    recipients: Sequence[str],
    raw_message: bytes,
    invocation: Optional[Invocation] = None,
    store_dir: Optional[Union[str, Path]] = None,
) -> CaptureResult:
    """Capture one message into the store.

    Args:
        sender: Envelope sender, if known
        recipients: Envelope recipients in order received
        raw_message: Verbatim message bytes (headers and body)
        invocation: Normalized invocation from the ingress shim
        store_dir: Store directory; resolved from TRAPMAIL_STORE if omitted

    Returns:
        CaptureResult with the record and its stored path

    Raises:
        ProcessInfoUnavailable: If pid/ppid cannot be determined
        StoreDirectoryMissing: If the store directory does not exist
        RecordCollision: If the allocated name is already taken
        OSError: Any other I/O failure
    """
    root = Path(store_dir) if store_dir is not None else resolve_store_dir()
    allocation = allocate(root)
    set_capture_id(allocation.capture_id)

    invocation = invocation or Invocation()
    environment = dict(invocation.environment)
    environment[ENV_MAIL_STORE_PATH] = str(root)

    mail = Mail(
        envelope=Envelope(sender=sender, recipients=list(recipients)),
        raw_message=MailBody.from_raw(raw_message),
        invocation=invocation.model_copy(update={"environment": environment}),
        process_info=allocation.process_info,
    )

    path = MailStoreWriter(root).add(mail)
    return CaptureResult(mail=mail, path=path)


def capture_with_retry(
    sender: Optional[str],
    recipients: Sequence[str],
    raw_message: bytes,
    invocation: Optional[Invocation] = None,
    store_dir: Optional[Union[str, Path]] = None,
    attempts: int = DEFAULT_CAPTURE_ATTEMPTS,
) -> CaptureResult:
    """Capture, retrying only on RecordCollision.

    Each attempt takes a new process snapshot and so a new timestamp.

    Raises:
        RecordCollision: If every attempt collided
        ValueError: If attempts is less than 1
    """
    if attempts < 1:
        raise ValueError(f"attempts must be at least 1, got {attempts}")

    attempt = 1
    while True:
        try:
            return capture_mail(sender, recipients, raw_message, invocation, store_dir)
        except RecordCollision as e:
            if attempt >= attempts:
                raise
            logger.warning(f"Capture attempt {attempt}/{attempts} collided: {e}. Retrying.")
            attempt += 1
