"""Error taxonomy for mail capture and store access.

Every failure of the capture path is raised to the immediate caller.
RecordCorrupt is the one exception that the store reader yields instead of
raising, so one broken entry never aborts an enumeration.
"""

from pathlib import Path
from typing import Union


class TrapmailError(Exception):
    """Base exception for trapmail operations."""
    pass


class ProcessInfoUnavailable(TrapmailError):
    """The pid or parent pid of the capturing process cannot be determined."""
    pass


class StoreDirectoryMissing(TrapmailError):
    """The resolved store directory does not exist."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        super().__init__(f"Mail store directory does not exist: {self.path}")


class RecordCollision(TrapmailError):
    """A record with the allocated filename already exists.

    Safe to retry: a new capture attempt takes a new timestamp.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        super().__init__(f"Mail record already exists: {self.path}")


class RecordCorrupt(TrapmailError):
    """A stored entry could not be decoded into a Mail."""

    def __init__(self, path: Union[str, Path], reason: str):
        self.path = Path(path)
        self.reason = reason
        super().__init__(f"Could not decode mail record {self.path.name}: {reason}")

    @property
    def filename(self) -> str:
        return self.path.name
