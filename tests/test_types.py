import errno
import fcntl
import os
from datetime import datetime, timedelta, timezone

import pytest

from fusecore.types import (
    FATTR_CTIME,
    FATTR_FH,
    FATTR_GID,
    FATTR_MODE,
    FATTR_MTIME,
    FATTR_MTIME_NOW,
    FATTR_SIZE,
    FATTR_UID,
    AttrOut,
    EntryOut,
    FileLock,
    Flock,
    Owner,
    SetAttrIn,
    StatfsOut,
    Status,
)

MAX_OFFSET = (1 << 63) - 1


def test_status_values_follow_errno():
    assert Status(0) is Status.OK
    assert Status(errno.ENOENT) is Status.ENOENT
    assert Status(errno.EROFS) is Status.EROFS
    assert Status(errno.ENODATA) is Status.ENOATTR


def test_status_ok_property():
    assert Status(0).ok
    assert not Status(errno.EIO).ok


def test_status_accepts_unknown_codes():
    s = Status(4242)
    assert int(s) == 4242
    assert not s.ok


def test_setattr_getters_absent_without_valid_bits():
    s = SetAttrIn(fh=7, mode=0o100644, size=10, owner=Owner(uid=3, gid=4))
    assert s.get_fh() is None
    assert s.get_mode() is None
    assert s.get_uid() is None
    assert s.get_gid() is None
    assert s.get_size() is None
    assert s.get_mtime() is None
    assert s.get_atime() is None
    assert s.get_ctime() is None


def test_setattr_getters_present():
    s = SetAttrIn(
        valid=FATTR_FH | FATTR_MODE | FATTR_UID | FATTR_GID | FATTR_SIZE,
        fh=7,
        mode=0o100644,
        size=10,
        owner=Owner(uid=3, gid=4),
    )
    assert s.get_fh() == 7
    assert s.get_mode() == 0o644
    assert s.get_uid() == 3
    assert s.get_gid() == 4
    assert s.get_size() == 10


def test_setattr_mtime_and_ctime():
    s = SetAttrIn(valid=FATTR_MTIME | FATTR_CTIME, mtime=1525291058, ctime=1525291058 + 123)
    assert s.get_mtime() == datetime.fromtimestamp(1525291058, tz=timezone.utc)
    assert s.get_ctime() - s.get_mtime() == timedelta(seconds=123)


def test_setattr_mtime_now():
    s = SetAttrIn(valid=FATTR_MTIME | FATTR_MTIME_NOW, mtime=1525291058)
    before = datetime.now(timezone.utc)
    got = s.get_mtime()
    after = datetime.now(timezone.utc)
    assert before <= got <= after


def test_filelock_roundtrip():
    lock = FileLock(start=100, end=199, typ=fcntl.F_WRLCK, pid=5)
    fl = lock.to_flock()
    assert fl.start == 100
    assert fl.len == 100
    assert fl.whence == os.SEEK_SET
    back = FileLock.from_flock(Flock(type=fl.type, whence=fl.whence, start=fl.start, len=fl.len, pid=5))
    assert back == lock


def test_filelock_to_eof():
    lock = FileLock(start=10, end=MAX_OFFSET, typ=fcntl.F_RDLCK)
    assert lock.to_flock().len == 0
    back = FileLock.from_flock(Flock(type=fcntl.F_RDLCK, start=10, len=0))
    assert back.end == MAX_OFFSET


def test_filelock_unlock_keeps_range_empty():
    back = FileLock.from_flock(Flock(type=fcntl.F_UNLCK, start=10, len=5, pid=9))
    assert back.start == 0
    assert back.end == 0
    assert back.typ == fcntl.F_UNLCK
    assert back.pid == 9


def test_entry_out_timeouts_roundtrip():
    out = EntryOut()
    out.set_entry_timeout(1.5)
    out.set_attr_timeout(2.0)
    assert out.entry_valid == 1
    assert out.entry_valid_nsec == 500_000_000
    assert out.entry_timeout() == 1.5
    assert out.attr_timeout() == 2.0


def test_attr_out_timeout_roundtrip():
    out = AttrOut()
    out.set_timeout(3.25)
    assert out.timeout() == 3.25
    assert out.attr_valid == 3


def test_negative_timeout_rejected():
    with pytest.raises(ValueError):
        AttrOut().set_timeout(-1)


def test_statfs_from_statvfs(tmp_path):
    st = os.statvfs(tmp_path)
    out = StatfsOut.from_statvfs(st)
    assert out.blocks == st.f_blocks
    assert out.bsize == st.f_bsize
    assert out.frsize == st.f_frsize
    assert out.name_len == st.f_namemax
    assert out.files == st.f_files
    assert out.spare == (0, 0, 0, 0, 0, 0)