"""Pipe pairs for moving data between file descriptors with splice(2)."""

from __future__ import annotations

import errno
import fcntl
import functools
import os

# Since Linux 2.6.11, the pipe capacity is 65536 bytes.
DEFAULT_PIPE_SIZE = 16 * 4096

F_SETPIPE_SZ = 1031
F_GETPIPE_SZ = 1032

_SPLICE_F_NONBLOCK = getattr(os, "SPLICE_F_NONBLOCK", 0x2)
_HAVE_SPLICE = hasattr(os, "splice")


def _write_all(fd: int, data: bytes) -> int:
    view = memoryview(data)
    while view:
        written = os.write(fd, view)
        view = view[written:]
    return len(data)


def _splice(src: int, dst: int, count: int, offset_src: int | None = None, flags: int = 0) -> int:
    """Move up to ``count`` bytes from ``src`` to ``dst``.

    Uses splice(2) where the platform has it, and a read/write loop otherwise.
    """
    if _HAVE_SPLICE:
        return os.splice(src, dst, count, offset_src=offset_src, flags=flags)
    if offset_src is None:
        data = os.read(src, count)
    else:
        data = os.pread(src, count, offset_src)
    if not data:
        return 0
    return _write_all(dst, data)


@functools.lru_cache(maxsize=None)
def max_pipe_size() -> int:
    """The largest pipe size the system allows."""
    try:
        with open("/proc/sys/fs/pipe-max-size", encoding="ascii") as f:
            return int(f.read().split()[0])
    except (OSError, ValueError, IndexError):
        return DEFAULT_PIPE_SIZE


@functools.lru_cache(maxsize=None)
def resizable() -> bool:
    """Whether pipe capacities can be queried and changed on this system."""
    r, w = os.pipe()
    try:
        try:
            size = fcntl.fcntl(r, F_GETPIPE_SZ)
        except OSError:
            return False
        try:
            fcntl.fcntl(r, F_SETPIPE_SZ, 2 * size)
        except OSError:
            return False
        return True
    finally:
        os.close(r)
        os.close(w)


@functools.lru_cache(maxsize=None)
def _dev_null_fd() -> int:
    # Pipes are emptied by splicing their contents into /dev/null.
    return os.open(os.devnull, os.O_WRONLY)


class Pair:
    """A non-blocking pipe used as an in-kernel buffer."""

    def __init__(self, read_fd: int, write_fd: int, size: int) -> None:
        self._r = read_fd
        self._w = write_fd
        self._size = size

    def __enter__(self) -> "Pair":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"Pair(r={self._r}, w={self._w}, size={self._size})"

    def max_grow(self) -> None:
        """Double the capacity until the system refuses."""
        while True:
            try:
                self.grow(2 * self._size)
            except (ValueError, OSError):
                return

    def grow(self, n: int) -> None:
        """Make the pipe hold at least ``n`` bytes."""
        if n <= self._size:
            return
        if not resizable():
            raise ValueError(f"splice: want {n} bytes, but not resizable")
        limit = max_pipe_size()
        if n > limit:
            raise ValueError(f"splice: want {n} bytes, max pipe size {limit}")
        self._size = fcntl.fcntl(self._r, F_SETPIPE_SZ, n)

    def cap(self) -> int:
        return self._size

    def close(self) -> None:
        """Close both ends; the first failure is raised."""
        first: OSError | None = None
        for fd in (self._r, self._w):
            try:
                os.close(fd)
            except OSError as exc:
                if first is None:
                    first = exc
        if first is not None:
            raise first

    def read(self, size: int) -> bytes:
        return os.read(self._r, size)

    def write(self, data: bytes) -> int:
        return os.write(self._w, data)

    def read_fd(self) -> int:
        return self._r

    def write_fd(self) -> int:
        return self._w

    def load_from_at(self, fd: int, size: int, offset: int) -> int:
        """Move up to ``size`` bytes at ``offset`` of ``fd`` into the pipe."""
        return _splice(fd, self._w, size, offset_src=offset)

    def load_from(self, fd: int, size: int) -> int:
        """Move up to ``size`` bytes from the current position of ``fd`` into the pipe."""
        if size > self._size:
            raise ValueError(f"LoadFrom: not enough space {size}, {self._size}")
        return _splice(fd, self._w, size)

    def write_to(self, fd: int, n: int) -> int:
        """Move up to ``n`` bytes from the pipe to ``fd``."""
        return _splice(self._r, fd, n)

    def discard(self) -> None:
        """Drop whatever data the pipe still holds."""
        try:
            while _splice(self._r, _dev_null_fd(), self._size, flags=_SPLICE_F_NONBLOCK) > 0:
                if _HAVE_SPLICE:
                    break
        except BlockingIOError:
            return
        except OSError as exc:
            if exc.errno == errno.EAGAIN:
                return
            # Something closed our fd inadvertently, e.g. a double close.
            r, w = self._r, self._w
            try:
                self.close()
            except OSError:
                pass
            raise RuntimeError(
                f"splicing into {os.devnull}: {exc} (pipe r={r}, w={w})"
            ) from exc


def _os_pipe() -> tuple[int, int]:
    if hasattr(os, "pipe2"):
        return os.pipe2(os.O_NONBLOCK)
    r, w = os.pipe()
    os.set_blocking(r, False)
    os.set_blocking(w, False)
    return r, w


def new_splice_pair() -> Pair:
    """Create a fresh non-blocking pipe pair."""
    r, w = _os_pipe()
    try:
        size = fcntl.fcntl(r, F_GETPIPE_SZ)
    except OSError as exc:
        if exc.errno == errno.EINVAL:
            return Pair(r, w, DEFAULT_PIPE_SIZE)
        os.close(r)
        os.close(w)
        raise
    return Pair(r, w, size)