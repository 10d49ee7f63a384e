"""Wire-level FUSE protocol types and helpers for building replies."""

from __future__ import annotations

import enum
import errno
import fcntl
import os
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

DEFAULT_BACKGROUND_TASKS = 12

_NS_PER_SECOND = 1_000_000_000
_MAX_OFFSET = (1 << 63) - 1


class Status(enum.IntEnum):
    """The errno number that a FUSE call returns to the kernel."""

    OK = 0
    EACCES = errno.EACCES
    EBUSY = errno.EBUSY
    EAGAIN = errno.EAGAIN
    EINTR = errno.EINTR
    EINVAL = errno.EINVAL
    EIO = errno.EIO
    ENOENT = errno.ENOENT
    ENOSYS = errno.ENOSYS
    ENODATA = getattr(errno, "ENODATA", errno.ENOENT)
    ENOTDIR = errno.ENOTDIR
    ENOTSUP = errno.ENOTSUP
    EISDIR = errno.EISDIR
    EPERM = errno.EPERM
    ERANGE = errno.ERANGE
    EXDEV = errno.EXDEV
    EBADF = errno.EBADF
    ENODEV = errno.ENODEV
    EROFS = errno.EROFS
    # ENOATTR is an alias for ENODATA.
    ENOATTR = getattr(errno, "ENODATA", errno.ENOENT)
    EREMOTEIO = getattr(errno, "EREMOTEIO", errno.EIO)

    @classmethod
    def _missing_(cls, value):
        if isinstance(value, int):
            member = int.__new__(cls, value)
            member._name_ = f"ERRNO_{value}"
            member._value_ = value
            return member
        return None

    @property
    def ok(self) -> bool:
        """True when the status signals success."""
        return self == 0

    def __str__(self) -> str:
        if self == 0:
            return "OK"
        return f"{int(self)}={os.strerror(int(self))}"


# SetAttrIn.valid
FATTR_MODE = 1 << 0
FATTR_UID = 1 << 1
FATTR_GID = 1 << 2
FATTR_SIZE = 1 << 3
FATTR_ATIME = 1 << 4
FATTR_MTIME = 1 << 5
FATTR_FH = 1 << 6
FATTR_ATIME_NOW = 1 << 7
FATTR_MTIME_NOW = 1 << 8
FATTR_LOCKOWNER = 1 << 9
FATTR_CTIME = 1 << 10

RELEASE_FLUSH = 1 << 0

# OpenOut.open_flags
FOPEN_DIRECT_IO = 1 << 0
FOPEN_KEEP_CACHE = 1 << 1
FOPEN_NONSEEKABLE = 1 << 2
FOPEN_CACHE_DIR = 1 << 3
FOPEN_STREAM = 1 << 4

# InitIn / InitOut flags, as in the kernel's fuse header.
CAP_ASYNC_READ = 1 << 0
CAP_POSIX_LOCKS = 1 << 1
CAP_FILE_OPS = 1 << 2
CAP_ATOMIC_O_TRUNC = 1 << 3
CAP_EXPORT_SUPPORT = 1 << 4
CAP_BIG_WRITES = 1 << 5
CAP_DONT_MASK = 1 << 6
CAP_SPLICE_WRITE = 1 << 7
CAP_SPLICE_MOVE = 1 << 8
CAP_SPLICE_READ = 1 << 9
CAP_FLOCK_LOCKS = 1 << 10
CAP_IOCTL_DIR = 1 << 11
CAP_AUTO_INVAL_DATA = 1 << 12
CAP_READDIRPLUS = 1 << 13
CAP_READDIRPLUS_AUTO = 1 << 14
CAP_ASYNC_DIO = 1 << 15
CAP_WRITEBACK_CACHE = 1 << 16
CAP_NO_OPEN_SUPPORT = 1 << 17
CAP_PARALLEL_DIROPS = 1 << 18
CAP_HANDLE_KILLPRIV = 1 << 19
CAP_POSIX_ACL = 1 << 20
CAP_ABORT_ERROR = 1 << 21
CAP_MAX_PAGES = 1 << 22
CAP_CACHE_SYMLINKS = 1 << 23
CAP_NO_OPENDIR_SUPPORT = 1 << 24
CAP_EXPLICIT_INVAL_DATA = 1 << 25

FUSE_IOCTL_COMPAT = 1 << 0
FUSE_IOCTL_UNRESTRICTED = 1 << 1
FUSE_IOCTL_RETRY = 1 << 2

# AccessIn.mask
X_OK = 1
W_OK = 2
R_OK = 4
F_OK = 0

NOTIFY_INVAL_INODE = -2
NOTIFY_INVAL_ENTRY = -3
NOTIFY_STORE_CACHE = -4
NOTIFY_RETRIEVE_CACHE = -5
NOTIFY_DELETE = -6

READ_LOCKOWNER = 1 << 1

WRITE_CACHE = 1 << 0
WRITE_LOCKOWNER = 1 << 1

# GetAttrIn.flags: set when the request carries a file handle.
FUSE_GETATTR_FH = 1 << 0


def _split_seconds(seconds: float) -> tuple[int, int]:
    if seconds < 0:
        raise ValueError(f"timeout must not be negative: {seconds}")
    ns = int(round(seconds * _NS_PER_SECOND))
    return ns // _NS_PER_SECOND, ns % _NS_PER_SECOND


def _join_seconds(sec: int, nsec: int) -> float:
    return sec + nsec / _NS_PER_SECOND


def _unix_time(sec: int, nsec: int) -> datetime:
    base = datetime.fromtimestamp(sec, tz=timezone.utc)
    return base + timedelta(microseconds=nsec // 1000)


@dataclass
class Owner:
    uid: int = 0
    gid: int = 0


@dataclass
class Caller:
    """The process making the file system call.

    uid and gid are effective ids, except for ACCESS, where they are real ids.
    """

    owner: Owner = field(default_factory=Owner)
    pid: int = 0


@dataclass
class InHeader:
    length: int = 0
    opcode: int = 0
    unique: int = 0
    node_id: int = 0
    caller: Caller = field(default_factory=Caller)
    padding: int = 0


@dataclass
class Attr:
    ino: int = 0
    size: int = 0
    # Number of 512-byte blocks that the file occupies on disk.
    blocks: int = 0
    atime: int = 0
    mtime: int = 0
    ctime: int = 0
    atimensec: int = 0
    mtimensec: int = 0
    ctimensec: int = 0
    mode: int = 0
    nlink: int = 0
    owner: Owner = field(default_factory=Owner)
    rdev: int = 0
    # Preferred size for file system operations.
    blksize: int = 0
    padding: int = 0


@dataclass
class SetAttrIn:
    """A SETATTR request; the getters return None for fields not marked valid."""

    header: InHeader = field(default_factory=InHeader)
    valid: int = 0
    padding: int = 0
    fh: int = 0
    size: int = 0
    lock_owner: int = 0
    atime: int = 0
    mtime: int = 0
    ctime: int = 0
    atimensec: int = 0
    mtimensec: int = 0
    ctimensec: int = 0
    mode: int = 0
    unused4: int = 0
    owner: Owner = field(default_factory=Owner)
    unused5: int = 0

    def _has(self, flag: int) -> bool:
        return bool(self.valid & flag)

    def get_fh(self) -> int | None:
        return self.fh if self._has(FATTR_FH) else None

    def get_mode(self) -> int | None:
        return self.mode & 0o7777 if self._has(FATTR_MODE) else None

    def get_uid(self) -> int | None:
        return self.owner.uid if self._has(FATTR_UID) else None

    def get_gid(self) -> int | None:
        return self.owner.gid if self._has(FATTR_GID) else None

    def get_size(self) -> int | None:
        return self.size if self._has(FATTR_SIZE) else None

    def get_mtime(self) -> datetime | None:
        if not self._has(FATTR_MTIME):
            return None
        if self._has(FATTR_MTIME_NOW):
            return datetime.now(timezone.utc)
        return _unix_time(self.mtime, self.mtimensec)

    def get_atime(self) -> datetime | None:
        if not self._has(FATTR_ATIME):
            return None
        if self._has(FATTR_ATIME_NOW):
            return datetime.now(timezone.utc)
        return _unix_time(self.atime, self.atimensec)

    def get_ctime(self) -> datetime | None:
        if not self._has(FATTR_CTIME):
            return None
        return _unix_time(self.ctime, self.ctimensec)


@dataclass
class GetAttrIn:
    header: InHeader = field(default_factory=InHeader)
    flags: int = 0
    dummy: int = 0
    fh: int = 0


@dataclass
class OpenOut:
    fh: int = 0
    open_flags: int = 0
    padding: int = 0


@dataclass
class Flock:
    """A POSIX record lock description, as passed to fcntl."""

    type: int = fcntl.F_UNLCK
    whence: int = os.SEEK_SET
    start: int = 0
    len: int = 0
    pid: int = 0


@dataclass
class FileLock:
    start: int = 0
    end: int = 0
    typ: int = 0
    pid: int = 0

    def to_flock(self) -> Flock:
        """Convert to a POSIX lock; an end at the maximum offset means 'to EOF'."""
        length = 0 if self.end == _MAX_OFFSET else self.end - self.start + 1
        return Flock(
            type=self.typ,
            whence=os.SEEK_SET,
            start=self.start,
            len=length,
            pid=0,
        )

    @classmethod
    def from_flock(cls, flock: Flock) -> "FileLock":
        lock = cls(typ=flock.type, pid=flock.pid)
        if flock.type != fcntl.F_UNLCK:
            lock.start = flock.start
            if flock.len == 0:
                lock.end = _MAX_OFFSET
            else:
                lock.end = flock.start + flock.len - 1
        return lock


@dataclass
class EntryOut:
    """Result of a (directory, name) lookup.

    The entry timeout also applies to negative (ENOENT) lookups.
    """

    node_id: int = 0
    generation: int = 0
    entry_valid: int = 0
    attr_valid: int = 0
    entry_valid_nsec: int = 0
    attr_valid_nsec: int = 0
    attr: Attr = field(default_factory=Attr)

    def entry_timeout(self) -> float:
        return _join_seconds(self.entry_valid, self.entry_valid_nsec)

    def attr_timeout(self) -> float:
        return _join_seconds(self.attr_valid, self.attr_valid_nsec)

    def set_entry_timeout(self, seconds: float) -> None:
        self.entry_valid, self.entry_valid_nsec = _split_seconds(seconds)

    def set_attr_timeout(self, seconds: float) -> None:
        self.attr_valid, self.attr_valid_nsec = _split_seconds(seconds)


@dataclass
class AttrOut:
    attr_valid: int = 0
    attr_valid_nsec: int = 0
    dummy: int = 0
    attr: Attr = field(default_factory=Attr)

    def timeout(self) -> float:
        return _join_seconds(self.attr_valid, self.attr_valid_nsec)

    def set_timeout(self, seconds: float) -> None:
        self.attr_valid, self.attr_valid_nsec = _split_seconds(seconds)


@dataclass
class StatfsOut:
    blocks: int = 0
    bfree: int = 0
    bavail: int = 0
    files: int = 0
    ffree: int = 0
    bsize: int = 0
    name_len: int = 0
    frsize: int = 0
    padding: int = 0
    spare: tuple[int, ...] = (0, 0, 0, 0, 0, 0)

    @classmethod
    def from_statvfs(cls, st: os.statvfs_result) -> "StatfsOut":
        return cls(
            blocks=st.f_blocks,
            bfree=st.f_bfree,
            bavail=st.f_bavail,
            files=st.f_files,
            ffree=st.f_ffree,
            bsize=st.f_bsize,
            name_len=st.f_namemax,
            frsize=st.f_frsize,
        )