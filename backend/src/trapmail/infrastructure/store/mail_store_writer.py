"""Store writer - atomic publish of mail records into a store directory.

Records are written to a temporary file inside the store directory, flushed
to disk, then published under their final name with a hard link. Linking
fails if the final name exists, so a same-microsecond collision is rejected
instead of overwriting the earlier record, and a reader listing the
directory either sees the complete file or no file at all. The temporary
name never matches the record naming convention.
"""

import logging
import os
import uuid
from pathlib import Path
from typing import Optional, Union

from ...config import resolve_store_dir
from ...domain.mail.errors import RecordCollision, StoreDirectoryMissing
from ...domain.mail.filename import filename_for
from ...domain.mail.models import Mail, encode_mail

logger = logging.getLogger(__name__)

TEMP_PREFIX = ".trapmail-"
TEMP_SUFFIX = ".tmp"

# Filtered by the process umask at creation, like any newly created file.
RECORD_MODE = 0o666


class MailStoreWriter:
    """Writes Mail records into a store directory.

    The store directory is resolved on every write unless one was given at
    construction. Directories are never created here; provisioning the store
    is the caller's job.

    Example:
        writer = MailStoreWriter()
        path = writer.add(mail)
    """

    def __init__(self, root: Optional[Union[str, Path]] = None):
        """Initialize writer.

        Args:
            root: Fixed store directory; resolved from TRAPMAIL_STORE per
                write if omitted
        """
        self._root = Path(root) if root is not None else None

    def store_dir(self) -> Path:
        """Resolve and validate the store directory for one write.

        Raises:
            StoreDirectoryMissing: If the directory does not exist
        """
        root = self._root if self._root is not None else resolve_store_dir()
        if not root.is_dir():
            raise StoreDirectoryMissing(root)
        return root

    def add(self, mail: Mail, store_dir: Optional[Union[str, Path]] = None) -> Path:
        """Publish a mail into the store.

        Args:
            mail: Record to write
            store_dir: Already resolved store directory; overrides the
                writer's own resolution

        Returns:
            Path: Final path of the stored record

        Raises:
            StoreDirectoryMissing: If the store directory does not exist
            RecordCollision: If a record with the same name already exists
            OSError: Any other I/O failure, unchanged
        """
        if store_dir is not None:
            root = Path(store_dir)
            if not root.is_dir():
                raise StoreDirectoryMissing(root)
        else:
            root = self.store_dir()

        final_path = root / filename_for(mail.process_info)
        publish_atomically(final_path, encode_mail(mail))

        logger.info(f"Mail written to {final_path}", extra={"store_dir": root})
        return final_path


def publish_atomically(final_path: Path, content: bytes) -> None:
    """Write content to final_path without ever exposing a partial file.

    Raises:
        RecordCollision: If final_path already exists
        OSError: Any other I/O failure; the temporary file is removed
    """
    tmp_path = final_path.parent / f"{TEMP_PREFIX}{uuid.uuid4().hex}{TEMP_SUFFIX}"
    fd = os.open(tmp_path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, RECORD_MODE)
    try:
        with os.fdopen(fd, "wb") as tmp_file:
            tmp_file.write(content)
            tmp_file.flush()
            os.fsync(tmp_file.fileno())

        logger.debug(f"Linking {tmp_path} -> {final_path}")
        try:
            os.link(tmp_path, final_path)
        except FileExistsError as e:
            raise RecordCollision(final_path) from e
    finally:
        try:
            tmp_path.unlink()
        except FileNotFoundError:
            pass
