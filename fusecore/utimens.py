"""Conversion of access and modification times for utimes()."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone

from fusecore.types import Attr

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_NS_PER_SECOND = 1_000_000_000


@dataclass(frozen=True)
class Timeval:
    """Seconds and microseconds since the Unix epoch; usec is never negative."""

    sec: int
    usec: int

    @property
    def ns(self) -> int:
        """The time in nanoseconds, as os.utime(ns=...) takes it."""
        return self.sec * _NS_PER_SECOND + self.usec * 1000

    @classmethod
    def from_datetime(cls, t: datetime) -> "Timeval":
        # Exact integer arithmetic, which also holds for times before 1970.
        if t.tzinfo is None:
            t = t.astimezone()
        delta = t - _EPOCH
        return cls(delta.days * 86400 + delta.seconds, delta.microseconds)

    @classmethod
    def from_unix(cls, sec: int, nsec: int) -> "Timeval":
        sec += nsec // _NS_PER_SECOND
        return cls(sec, (nsec % _NS_PER_SECOND) // 1000)


def fill(
    atime: datetime | None, mtime: datetime | None, attr: Attr
) -> tuple[Timeval, Timeval]:
    """Return (atime, mtime) as Timevals; missing values are taken from ``attr``."""
    a = Timeval.from_datetime(atime) if atime is not None else Timeval.from_unix(attr.atime, attr.atimensec)
    m = Timeval.from_datetime(mtime) if mtime is not None else Timeval.from_unix(attr.mtime, attr.mtimensec)
    return a, m