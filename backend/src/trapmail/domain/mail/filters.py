"""Record filtering for store queries.

Filters apply to decoded Mail records only. Time bounds take either an aware
datetime or integer microseconds since the UNIX epoch; `since` is inclusive
and `until` is exclusive.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Iterable, Iterator, List, Optional, Union

from .models import Mail

TimeBound = Union[datetime, int]
MailPredicate = Callable[[Mail], bool]


def to_timestamp_us(value: TimeBound) -> int:
    """Convert a time bound to microseconds since the UNIX epoch.

    Naive datetimes are taken to be UTC.
    """
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        delta = value - datetime(1970, 1, 1, tzinfo=timezone.utc)
        return (delta.days * 86_400 + delta.seconds) * 1_000_000 + delta.microseconds
    return int(value)


@dataclass(frozen=True)
class MailFilter:
    """Conjunction of optional criteria; an empty filter matches everything."""
    pid: Optional[int] = None
    ppid: Optional[int] = None
    since: Optional[TimeBound] = None
    until: Optional[TimeBound] = None
    where: Optional[MailPredicate] = None

    def matches(self, mail: Mail) -> bool:
        if self.pid is not None and mail.pid != self.pid:
            return False
        if self.ppid is not None and mail.ppid != self.ppid:
            return False
        if self.since is not None and mail.timestamp_us < to_timestamp_us(self.since):
            return False
        if self.until is not None and mail.timestamp_us >= to_timestamp_us(self.until):
            return False
        if self.where is not None and not self.where(mail):
            return False
        return True

    def apply(self, mails: Iterable[Mail]) -> Iterator[Mail]:
        return (m for m in mails if self.matches(m))


def sort_by_timestamp(mails: Iterable[Mail]) -> List[Mail]:
    """Order mails by capture time (then pid) for deterministic assertions."""
    return sorted(mails, key=lambda m: (m.timestamp_us, m.ppid, m.pid))
