"""Filename allocation for stored mail.

Files are named `trapmail_<PPID>_<PID>_<TIMESTAMP>.json`: the parent pid,
the capturing pid and a microsecond UNIX timestamp taken at the moment of
capture. Uniqueness is probabilistic and keyed on that triple; the allocator
neither locks nor retries. Two captures by one process within the same
microsecond produce the same name, which the store writer rejects with
RecordCollision.
"""

import logging
import os
import re
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple, Union

from .errors import ProcessInfoUnavailable
from .models import ProcessInfo

logger = logging.getLogger(__name__)

FILENAME_PREFIX = "trapmail_"
FILENAME_SUFFIX = ".json"
FILENAME_RE = re.compile(r"^trapmail_([0-9]+)_([0-9]+)_([0-9]+)\.json$")


def current_timestamp_us() -> int:
    """Microseconds since the UNIX epoch, read from the wall clock."""
    return time.time_ns() // 1000


def snapshot_process() -> ProcessInfo:
    """Read pid, parent pid and the current time.

    Process state is re-read on every call, never cached, so a process that
    captures more than once always gets a fresh snapshot.

    Raises:
        ProcessInfoUnavailable: If pid or parent pid cannot be determined
    """
    try:
        pid = os.getpid()
        ppid = os.getppid()
    except (AttributeError, OSError) as e:
        raise ProcessInfoUnavailable(f"Could not determine process ids: {e}") from e

    # A parent pid of 0 means there is no parent to report.
    if pid <= 0 or ppid <= 0:
        raise ProcessInfoUnavailable(f"Could not determine parent pid (pid={pid}, ppid={ppid})")

    return ProcessInfo(pid=pid, ppid=ppid, timestamp_us=current_timestamp_us())


def format_filename(ppid: int, pid: int, timestamp_us: int) -> str:
    return f"{FILENAME_PREFIX}{ppid}_{pid}_{timestamp_us}{FILENAME_SUFFIX}"


def filename_for(process_info: ProcessInfo) -> str:
    return format_filename(process_info.ppid, process_info.pid, process_info.timestamp_us)


def parse_filename(name: str) -> Optional[Tuple[int, int, int]]:
    """Split a store filename into (ppid, pid, timestamp_us).

    Returns:
        The key triple, or None if name does not follow the naming convention
    """
    match = FILENAME_RE.fullmatch(name)
    if not match:
        return None
    ppid, pid, timestamp_us = (int(g) for g in match.groups())
    return ppid, pid, timestamp_us


def is_mail_filename(name: str) -> bool:
    return FILENAME_RE.fullmatch(name) is not None


@dataclass(frozen=True)
class Allocation:
    """Result of a filename allocation.

    Attributes:
        process_info: Snapshot the name was derived from
        store_dir: Target store directory
        filename: Bare filename (no directory)
    """
    process_info: ProcessInfo
    store_dir: Path
    filename: str

    @property
    def path(self) -> Path:
        return self.store_dir / self.filename

    @property
    def capture_id(self) -> str:
        return self.filename[: -len(FILENAME_SUFFIX)]


def allocate(store_dir: Union[str, Path], process_info: Optional[ProcessInfo] = None) -> Allocation:
    """Allocate the filename for a capture into store_dir.

    Args:
        store_dir: Resolved store directory
        process_info: Snapshot to derive the name from; taken now if omitted

    Raises:
        ProcessInfoUnavailable: If no snapshot was given and one cannot be taken
    """
    if process_info is None:
        process_info = snapshot_process()
    filename = filename_for(process_info)
    logger.debug(f"Allocated filename {filename} in {store_dir}")
    return Allocation(process_info=process_info, store_dir=Path(store_dir), filename=filename)
