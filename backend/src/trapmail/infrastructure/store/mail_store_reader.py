"""Store reader - lock-free enumeration, filtering and clearing of records.

The directory listing is the only index. Every enumeration re-lists the
directory, so results reflect the store at the time of the call and no state
is kept between calls. Entries that fail to decode are reported in-stream as
RecordCorrupt values and never abort the enumeration.

Clearing is best-effort and racy against concurrent writers: it deletes the
matching entries of one listing snapshot, and files written after that
snapshot survive. Tests needing isolation should use separate store
directories.
"""

import logging
import os
from pathlib import Path
from typing import Iterator, List, Optional, Union

from ...config import resolve_store_dir
from ...domain.mail.errors import RecordCorrupt, StoreDirectoryMissing
from ...domain.mail.filename import is_mail_filename
from ...domain.mail.filters import MailFilter, MailPredicate, TimeBound
from ...domain.mail.models import Mail

logger = logging.getLogger(__name__)

MailResult = Union[Mail, RecordCorrupt]


class MailStoreReader:
    """Reads Mail records from a store directory.

    Example:
        reader = MailStoreReader("/tmp/trapmail-test")

        for result in reader.iter_mails():
            if isinstance(result, RecordCorrupt):
                continue
            print(result.render())

        sent_by_app = list(reader.find(ppid=app_pid))
    """

    def __init__(self, root: Optional[Union[str, Path]] = None):
        """Initialize reader.

        Args:
            root: Store directory; resolved from TRAPMAIL_STORE if omitted
        """
        self.root = Path(root) if root is not None else resolve_store_dir()

    def list_paths(self) -> List[Path]:
        """Snapshot the paths of all entries following the naming convention.

        Raises:
            StoreDirectoryMissing: If the store directory does not exist
        """
        try:
            with os.scandir(self.root) as entries:
                names = [entry.name for entry in entries if is_mail_filename(entry.name)]
        except FileNotFoundError as e:
            raise StoreDirectoryMissing(self.root) from e
        except NotADirectoryError as e:
            raise StoreDirectoryMissing(self.root) from e

        names.sort()
        return [self.root / name for name in names]

    def iter_mails(self) -> Iterator[MailResult]:
        """Enumerate the store.

        The directory is listed eagerly, so a missing store raises here
        rather than on first iteration. Entries are decoded lazily.

        Returns:
            Iterator yielding a Mail or a RecordCorrupt per entry

        Raises:
            StoreDirectoryMissing: If the store directory does not exist
        """
        return self._load_all(self.list_paths())

    def _load_all(self, paths: List[Path]) -> Iterator[MailResult]:
        for path in paths:
            try:
                yield Mail.load(path)
            except RecordCorrupt as e:
                logger.debug(f"Skipping undecodable entry {path.name}: {e.reason}")
                yield e
            except FileNotFoundError:
                # Removed between listing and reading.
                logger.debug(f"Entry vanished during enumeration: {path.name}")
            except OSError as e:
                logger.debug(f"Skipping unreadable entry {path.name}: {e}")
                yield RecordCorrupt(path, str(e))

    def find(
        self,
        pid: Optional[int] = None,
        ppid: Optional[int] = None,
        since: Optional[TimeBound] = None,
        until: Optional[TimeBound] = None,
        where: Optional[MailPredicate] = None,
        strict: bool = False,
    ) -> Iterator[Mail]:
        """Enumerate the mails matching all given criteria.

        Args:
            pid: Capturing process id
            ppid: Parent process id of the capturing process
            since: Inclusive lower time bound (datetime or microseconds)
            until: Exclusive upper time bound (datetime or microseconds)
            where: Arbitrary predicate over a decoded Mail
            strict: Raise the first RecordCorrupt instead of skipping it

        Raises:
            StoreDirectoryMissing: If the store directory does not exist
            RecordCorrupt: On an undecodable entry, only if strict
        """
        criteria = MailFilter(pid=pid, ppid=ppid, since=since, until=until, where=where)
        return self._select(self.iter_mails(), criteria, strict)

    @staticmethod
    def _select(results: Iterator[MailResult], criteria: MailFilter, strict: bool) -> Iterator[Mail]:
        for result in results:
            if isinstance(result, RecordCorrupt):
                if strict:
                    raise result
                continue
            if criteria.matches(result):
                yield result

    def clear(self, where: Optional[MailPredicate] = None) -> int:
        """Remove records from the store, best-effort.

        Entries that cannot be removed are logged and left in place.

        Args:
            where: Only remove mails matching this predicate; without one,
                every entry following the naming convention is removed,
                undecodable ones included

        Returns:
            int: Number of files removed by this call

        Raises:
            StoreDirectoryMissing: If the store directory does not exist
        """
        removed = 0
        paths = self.list_paths()

        if where is None:
            targets = paths
        else:
            targets = []
            for path in paths:
                result = self._load_one(path)
                if isinstance(result, Mail) and where(result):
                    targets.append(path)

        for path in targets:
            try:
                path.unlink()
                removed += 1
            except FileNotFoundError:
                # Already gone counts as cleared.
                pass
            except OSError as e:
                logger.warning(f"Could not remove {path.name}: {e}")

        logger.info(f"Cleared {removed} mail(s) from {self.root}")
        return removed

    @staticmethod
    def _load_one(path: Path) -> Optional[MailResult]:
        try:
            return Mail.load(path)
        except RecordCorrupt as e:
            return e
        except FileNotFoundError:
            return None
        except OSError as e:
            return RecordCorrupt(path, str(e))


def open_store(path: Optional[Union[str, Path]] = None) -> Iterator[MailResult]:
    """Enumerate a store directory (TRAPMAIL_STORE if path is omitted)."""
    return MailStoreReader(path).iter_mails()
