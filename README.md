# fusecore

Building blocks for writing and testing FUSE file systems in Python,
with no dependencies beyond the standard library. Linux is the main
target: extended attributes and pipe resizing rely on Linux system calls.

## What is inside

- `fusecore.types`: FUSE wire structures as dataclasses and the protocol
  constants (`FATTR_*`, `FOPEN_*`, `CAP_*`, `NOTIFY_*` and others).
  - `Status`, an `IntEnum` of errno values with an `ok` property.
  - `Attr`, `Owner`, `Caller`, `InHeader`, `GetAttrIn`, `OpenOut`.
  - `SetAttrIn`, whose `get_fh()`, `get_mode()`, `get_uid()`, `get_gid()`,
    `get_size()`, `get_atime()`, `get_mtime()` and `get_ctime()` return the
    value when its `valid` bit is set and `None` otherwise.
  - `EntryOut` and `AttrOut`, with timeouts read and set in seconds.
  - `FileLock.to_flock()` and `FileLock.from_flock()`, converting to and
    from a POSIX `Flock`.
  - `StatfsOut.from_statvfs()`, built from an `os.statvfs()` result.
- `fusecore.sysio`: `writev()`, which skips empty buffers, and the
  extended-attribute helpers `get_xattr`, `list_xattr`, `set_xattr` and
  `remove_xattr`.
- `fusecore.access`: `has_access()`, the permission check a file system
  applies for a calling user, including the caller's supplementary groups.
- `fusecore.utimens`: `Timeval` and `fill()`, which turns optional access
  and modification times into a `Timeval` pair, taking what is missing
  from an `Attr`.
- `fusecore.splice`: `Pair`, a non-blocking pipe used as an in-kernel
  buffer (`grow()`, `max_grow()`, `load_from()`, `load_from_at()`,
  `write_to()`, `discard()`), plus `new_splice_pair()`, `resizable()` and
  `max_pipe_size()`. Where `os.splice` is missing, data moves through an
  ordinary read/write loop.
- `fusecore.splicepool`: `PairPool` and the module-level pool functions
  `get()`, `done()`, `drop()`, `used()`, `total()` and
  `clear_splice_pool()`.
- `fusecore.splicecopy`: `splice_copy()`, `copy_fds()` and `copy_file()`;
  `copy_fds()` uses a pooled pipe and falls back to a plain copy when no
  pipe pair can be had.
- `fusecore.listfds`: `list_fds()`, listing the open descriptors of a
  process from `/dev/fd` or `/proc/<pid>/fd`.
- `fusecore.testutil`: `temp_dir()`, `verbose_test()` and
  `check_loopback_utimens()`, helpers for file system tests.
- `fusecore.posixtest`: POSIX conformance checks to run against a mount
  point, collected by name in `posixtest.ALL`.

## Installing

```
pip install .
```

For the test suite:

```
pip install ".[test]"
pytest
```

## Examples

Checking permissions:

```python
from fusecore.access import has_access

# the owner may execute a file with mode 0o100
has_access(1000, 1000, 1000, 1000, 0o100, 0o1)  # True
```

Reading the fields a SETATTR request marks as valid:

```python
from fusecore.types import FATTR_SIZE, SetAttrIn

req = SetAttrIn(valid=FATTR_SIZE, size=42)
req.get_size()  # 42
req.get_mode()  # None
```

Copying a file through a splice pipe:

```python
from fusecore.splicecopy import copy_file

copy_file("/tmp/dst", "/tmp/src", 0o644)
```

Running conformance checks against a mount point:

```python
from fusecore import posixtest

posixtest.symlink_readlink("/mnt/myfs")
for name, check in posixtest.ALL.items():
    try:
        check("/mnt/myfs/" + name)  # each check wants its own empty directory
    except posixtest.PosixTestSkipped as exc:
        print(name, "skipped:", exc)
```

Each check raises `AssertionError` listing every problem it found when the
file system misbehaves, and `PosixTestSkipped` when the file system or
platform cannot run it.

## What it does not do

This package does not mount file systems, open `/dev/fuse` or serve FUSE
requests. It has no node or path file system layer, no loopback file
system and no request loop: it provides the protocol structures, helpers
and test checks that such a server would use.