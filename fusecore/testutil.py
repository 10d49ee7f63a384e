"""Helpers shared by file system tests."""

from __future__ import annotations

import inspect
import logging
import os
import sys
import tempfile
from datetime import datetime, timezone
from typing import Callable, Optional

from fusecore.types import Status

_T0_SEC = 1525291058  # 05/02/2018 @ 7:57pm (UTC)
_NS_PER_SECOND = 1_000_000_000


class _MicrosecondFormatter(logging.Formatter):
    """For tests the date is irrelevant, but microseconds are."""

    def formatTime(self, record, datefmt=None):
        return datetime.fromtimestamp(record.created).strftime("%H:%M:%S.%f")


def _configure_logging() -> None:
    logger = logging.getLogger("fusecore")
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(_MicrosecondFormatter("%(asctime)s %(message)s"))
        logger.addHandler(handler)


_configure_logging()


def _is_test_name(name: str) -> bool:
    return name.startswith(("test_", "Test"))


def temp_dir() -> str:
    """Create a temporary directory named after the calling test function."""
    name = ""
    for frame in inspect.stack()[1:]:
        if _is_test_name(frame.function):
            name = frame.function
            break
    return tempfile.mkdtemp(prefix=name)


def verbose_test() -> bool:
    """Tell whether the test run was started in verbose mode."""
    for frame in inspect.stack()[1:]:
        if "test_non_verbose" in frame.function or "TestNonVerbose" in frame.function:
            return False
    return any(
        arg == "--verbose" or (arg.startswith("-v") and set(arg[1:]) == {"v"})
        for arg in sys.argv[1:]
    )


def _stat_times(path: str | os.PathLike) -> tuple[int, int]:
    st = os.stat(path)
    return st.st_atime_ns // _NS_PER_SECOND, st.st_mtime_ns // _NS_PER_SECOND


def _at(sec: int) -> datetime:
    return datetime.fromtimestamp(sec, tz=timezone.utc)


def check_loopback_utimens(
    path: str | os.PathLike,
    utimens_fn: Callable[[Optional[datetime], Optional[datetime]], int],
) -> None:
    """Check that ``utimens_fn`` sets atime and mtime of ``path`` as asked.

    ``utimens_fn(atime, mtime)`` acts on the backing file; a None argument
    must leave that time unchanged. Raises AssertionError on any mismatch.
    """
    errors: list[str] = []

    def call(atime, mtime):
        status = Status(int(utimens_fn(atime, mtime)))
        if not status.ok:
            raise AssertionError(f"utimens_fn {status}")

    _, mtime1 = _stat_times(path)

    # Change atime, keep mtime.
    t0 = _T0_SEC
    call(_at(t0), None)
    atime2, mtime2 = _stat_times(path)
    if mtime1 != mtime2:
        errors.append(f"mtime has changed: {mtime1} -> {mtime2}")
    if atime2 != t0:
        errors.append(f"wrong atime: got {atime2} want {t0}")

    # Change mtime, keep atime.
    t1 = _T0_SEC + 123
    call(None, _at(t1))
    atime3, mtime3 = _stat_times(path)
    if atime2 != atime3:
        errors.append(f"atime has changed: {atime2} -> {atime3}")
    if mtime3 != t1:
        errors.append(f"got mtime {mtime3}, want {t1}")

    # Change both.
    ta = _T0_SEC + 456
    tm = _T0_SEC + 789
    call(_at(ta), _at(tm))
    atime4, mtime4 = _stat_times(path)
    if atime4 != ta:
        errors.append(f"got atime {atime4}, want {ta}")
    if mtime4 != tm:
        errors.append(f"got mtime {mtime4}, want {tm}")

    if errors:
        raise AssertionError("; ".join(errors))