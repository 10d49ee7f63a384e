"""Generic POSIX conformance checks to run against a mounted file system.

Each check takes the path of a mount point and raises AssertionError on a
failure, with every problem it found in the message. A check that cannot run
on the file system at hand raises PosixTestSkipped.
"""

from __future__ import annotations

import contextlib
import errno
import mmap
import os
import random
import stat
import sys
import threading
from typing import Callable, Iterator

from fusecore.listfds import list_fds


class PosixTestSkipped(Exception):
    """The file system or platform cannot run a check."""


class _Check:
    """Collects errors; fatal errors stop the check at once."""

    def __init__(self) -> None:
        self.errors: list[str] = []

    def error(self, msg: str) -> None:
        self.errors.append(msg)

    def fatal(self, msg: str) -> None:
        raise AssertionError("; ".join([*self.errors, msg]))

    @contextlib.contextmanager
    def step(self, label: str) -> Iterator[None]:
        """Turn an OSError raised inside the block into a fatal error."""
        try:
            yield
        except OSError as exc:
            self.fatal(f"{label}: {exc}")

    def __enter__(self) -> "_Check":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc_type is None and self.errors:
            raise AssertionError("; ".join(self.errors))


class _Fd:
    """An open descriptor that is closed on leaving the block unless closed before."""

    def __init__(self, fd: int) -> None:
        self.fd: int | None = fd

    def close(self) -> None:
        fd, self.fd = self.fd, None
        if fd is not None:
            os.close(fd)

    def __enter__(self) -> "_Fd":
        return self

    def __exit__(self, *exc_info) -> None:
        with contextlib.suppress(OSError):
            self.close()


def _write_file(path: str, data: bytes, mode: int) -> None:
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, mode)
    try:
        view = memoryview(data)
        while view:
            view = view[os.write(fd, view):]
    finally:
        os.close(fd)


def _read_file(path: str) -> bytes:
    with open(path, "rb") as f:
        return f.read()


def direct_io(mnt: str) -> None:
    """Write and read back a file opened with O_DIRECT."""
    o_direct = getattr(os, "O_DIRECT", None)
    if o_direct is None:
        raise PosixTestSkipped("platform has no O_DIRECT")
    fn = os.path.join(mnt, "file.txt")
    with _Check() as chk:
        try:
            fd = os.open(fn, os.O_TRUNC | os.O_CREAT | o_direct | os.O_WRONLY, 0o644)
        except OSError as exc:
            if exc.errno == errno.EINVAL:
                raise PosixTestSkipped("FS does not support O_DIRECT") from exc
            chk.fatal(f"Open: {exc}")
        data = b"bye" * 4096
        # O_DIRECT wants page-aligned buffers, which anonymous maps are.
        with mmap.mmap(-1, len(data)) as out_buf, _Fd(fd) as handle:
            out_buf[:] = data
            with chk.step("Write"):
                n = os.write(fd, out_buf)
            if n != len(data):
                chk.fatal(f"Write: short write ({n})")
            with chk.step("Close"):
                handle.close()

        with chk.step("Open 2"):
            fd = os.open(fn, o_direct | os.O_RDONLY, 0o644)
        with mmap.mmap(-1, len(data)) as in_buf, _Fd(fd):
            in_buf[:] = b"xxx" * 4096
            with chk.step("ReadAt"):
                n = os.readv(fd, [in_buf])
            if n != len(data):
                chk.fatal(f"ReadAt: short read ({n})")
            roundtrip = bytes(in_buf)
        if roundtrip != data:
            chk.error(
                f"roundtrip made changes: got {roundtrip[:10]!r}.., want {data[:10]!r}.."
            )


def symlink_readlink(mnt: str) -> None:
    """Create a symlink and read it back."""
    link_path = os.path.join(mnt, "link")
    with _Check() as chk:
        with chk.step("Symlink"):
            os.symlink("/foobar", link_path)
        with chk.step("Readlink"):
            val = os.readlink(link_path)
        if val != "/foobar":
            chk.error(f"symlink mismatch: {val}")


def file_basic(mnt: str) -> None:
    """Write a file, read it back and check its size and mode."""
    content = b"hello world"
    fn = os.path.join(mnt, "file")
    with _Check() as chk:
        with chk.step("WriteFile"):
            _write_file(fn, content, 0o755)
        with chk.step("ReadFile"):
            got = _read_file(fn)
        if got != content:
            chk.error(f"ReadFile: got {got!r}, want {content!r}")

        with chk.step("Open"):
            fd = os.open(fn, os.O_RDONLY)
        with _Fd(fd) as handle:
            with chk.step("Fstat"):
                st = os.fstat(fd)
            if st.st_size != len(content):
                chk.error(f"got size {st.st_size} want {len(content)}")
            want = stat.S_IFREG | 0o755
            if st.st_mode != want:
                chk.error(f"Fstat: got mode {st.st_mode:o}, want {want:o}")
            try:
                handle.close()
            except OSError as exc:
                chk.error(f"Close: {exc}")


def truncate_file(mnt: str) -> None:
    """Truncate an open file and check what remains."""
    content = b"hello world"
    trunc = 5
    fn = os.path.join(mnt, "file")
    with _Check() as chk:
        with chk.step("WriteFile"):
            _write_file(fn, content, 0o755)
        with chk.step("Open"):
            fd = os.open(fn, os.O_RDWR, 0o644)
        with _Fd(fd) as handle:
            try:
                os.ftruncate(fd, trunc)
            except OSError as exc:
                chk.error(f"Truncate: {exc}")
            try:
                handle.close()
            except OSError as exc:
                chk.error(f"Close: {exc}")
        with chk.step("ReadFile"):
            got = _read_file(fn)
        want = content[:trunc]
        if got != want:
            chk.error(f"got {got!r}, want {want!r}")


def truncate_no_file(mnt: str) -> None:
    """Truncate a file by path, without opening it."""
    fn = os.path.join(mnt, "file")
    with _Check() as chk:
        try:
            _write_file(fn, b"hello", 0o644)
        except OSError as exc:
            chk.error(f"WriteFile: {exc}")
        with chk.step("Truncate"):
            os.truncate(fn, 1)
        with chk.step("Lstat"):
            st = os.lstat(fn)
        if st.st_size != 1:
            chk.error(f"got size {st.st_size}, want 1")


def fd_leak(mnt: str) -> None:
    """Read a file many times and check that no descriptors leak."""
    fn = os.path.join(mnt, "file")
    with _Check() as chk:
        with chk.step("WriteFile"):
            _write_file(fn, b"hello world", 0o755)
        for _ in range(100):
            with chk.step("ReadFile"):
                _read_file(fn)
        if sys.platform.startswith("linux"):
            infos = list_fds(0, "")
            if len(infos) > 15:
                chk.error(
                    f"found {len(infos)} open file descriptors for 100x ReadFile: {infos}"
                )


def mkdir_rmdir(mnt: str) -> None:
    """Create a directory, check it, and remove it again."""
    fn = os.path.join(mnt, "dir")
    with _Check() as chk:
        with chk.step("Mkdir"):
            os.mkdir(fn, 0o755)
        with chk.step("Lstat"):
            st = os.lstat(fn)
        if not stat.S_ISDIR(st.st_mode):
            chk.fatal("is not a directory")
        with chk.step("Remove"):
            os.rmdir(fn)


def nlink_zero(mnt: str) -> None:
    """An open file overwritten by rename must report zero links."""
    src = os.path.join(mnt, "src")
    dst = os.path.join(mnt, "dst")
    with _Check() as chk:
        with chk.step("WriteFile"):
            _write_file(src, b"source", 0o644)
        with chk.step("WriteFile"):
            _write_file(dst, b"dst", 0o644)
        with chk.step("Open"):
            fd = os.open(dst, os.O_RDONLY)
        with _Fd(fd):
            try:
                st = os.fstat(fd)
            except OSError as exc:
                chk.error(f"Fstat before: {exc}")
            else:
                if st.st_nlink != 1:
                    chk.error(f"Nlink of file: got {st.st_nlink}, want 1")

            with chk.step("Rename"):
                os.rename(src, dst)

            try:
                st = os.fstat(fd)
            except OSError as exc:
                chk.error(f"Fstat after: {exc}")
            else:
                if st.st_nlink != 0:
                    chk.error(f"Nlink of overwritten file: got {st.st_nlink}, want 0")


def _stat_key(st: os.stat_result, nlink: int) -> tuple:
    # ctime is left out: it changes on unlink.
    return (
        st.st_mode,
        st.st_ino,
        st.st_dev,
        nlink,
        st.st_uid,
        st.st_gid,
        st.st_rdev,
        st.st_size,
        st.st_blksize,
        st.st_blocks,
        st.st_atime_ns,
        st.st_mtime_ns,
    )


def fstat_deleted(mnt: str) -> None:
    """Fstat several deleted files in random order and compare with an earlier stat."""
    i_max = 9
    with _Check() as chk, contextlib.ExitStack() as stack:
        files: dict[int, tuple[int, os.stat_result]] = {}
        for i in range(i_max + 1):
            path = os.path.join(mnt, str(i))
            with chk.step("WriteFile"):
                _write_file(path, bytes(i), 0o644)
            with chk.step("Stat"):
                st = os.stat(path)
            with chk.step("Open"):
                fd = os.open(path, os.O_RDONLY)
            stack.enter_context(_Fd(fd))
            files[i] = (fd, st)
            with chk.step("Unlink"):
                os.unlink(path)

        entries = list(files.values())
        random.shuffle(entries)
        for fd, before in entries:
            with chk.step("Fstat"):
                after = os.fstat(fd)
            # The link count should have dropped to zero; the rest stays.
            want = _stat_key(before, 0)
            have = _stat_key(after, after.st_nlink)
            if want != have:
                chk.error(f"stat mismatch: want={want} have={have}")


def parallel_file_open(mnt: str) -> None:
    """Open, read and write one file from several threads at once."""
    fn = os.path.join(mnt, "file")
    n = 10
    with _Check() as chk:
        with chk.step("WriteFile"):
            _write_file(fn, b"content", 0o644)

        results: list[OSError | None] = []
        lock = threading.Lock()

        def one(b: int) -> None:
            try:
                fd = os.open(fn, os.O_RDWR, 0o644)
            except OSError as exc:
                outcome: OSError | None = exc
            else:
                with contextlib.suppress(OSError):
                    buf = bytearray(10)
                    buf[: len(data := os.read(fd, 10))] = data
                    buf[0] = b
                    os.pwrite(fd, bytes(buf[:1]), 2)
                with contextlib.suppress(OSError):
                    os.close(fd)
                outcome = None
            with lock:
                results.append(outcome)

        threads = [threading.Thread(target=one, args=(i,)) for i in range(n)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        for outcome in results:
            if outcome is not None:
                chk.error(str(outcome))


def link(mnt: str) -> None:
    """Create a hard link and check inode and link count."""
    link_path = os.path.join(mnt, "link")
    target = os.path.join(mnt, "target")
    with _Check() as chk:
        with chk.step("WriteFile"):
            _write_file(target, b"hello", 0o644)
        with chk.step("Lstat before"):
            before_ino = os.lstat(target).st_ino
        try:
            os.link(target, link_path)
        except OSError as exc:
            chk.error(f"Link: {exc}")
        with chk.step("Lstat after"):
            st = os.lstat(link_path)
        if st.st_ino != before_ino:
            chk.error(f"Lstat after: got {st.st_ino}, want {before_ino}")
        if st.st_nlink != 2:
            chk.error(f"Expect 2 links, got {st.st_nlink}")


def rename_overwrite_dest_no_exist(mnt: str) -> None:
    rename_overwrite(mnt, False)


def rename_overwrite_dest_exist(mnt: str) -> None:
    rename_overwrite(mnt, True)


def rename_overwrite(mnt: str, dest_exists: bool) -> None:
    """Rename a file into a directory, optionally over an existing file."""
    dir_path = os.path.join(mnt, "dir")
    file_path = os.path.join(mnt, "file")
    renamed = os.path.join(dir_path, "renamed")
    with _Check() as chk:
        with chk.step("Mkdir"):
            os.mkdir(dir_path, 0o755)
        with chk.step("WriteFile"):
            _write_file(file_path, b"hello", 0o644)
        if dest_exists:
            with chk.step("WriteFile dest"):
                _write_file(renamed, b"xx", 0o644)

        with chk.step("Lstat before"):
            before_ino = os.lstat(file_path).st_ino
        try:
            os.rename(file_path, renamed)
        except OSError as exc:
            chk.error(f"Rename: {exc}")

        try:
            old = os.lstat(file_path)
        except OSError:
            pass
        else:
            chk.fatal(f"Lstat old: {old}")

        with chk.step("Lstat after"):
            got = os.lstat(renamed).st_ino
        if got != before_ino:
            chk.error(f"got ino {got}, want {before_ino}")


def rename_open_dir(mnt: str) -> None:
    """Rename a directory over another one that is held open."""
    dir1 = os.path.join(mnt, "dir1")
    dir2 = os.path.join(mnt, "dir2")
    with _Check() as chk:
        with chk.step("Mkdir"):
            os.mkdir(dir1, 0o755)
        # Different permissions so the directories are easier to tell apart.
        with chk.step("Mkdir"):
            os.mkdir(dir2, 0o700)
        with chk.step("Stat"):
            st1 = os.stat(dir2)
        with chk.step("Open"):
            fd = os.open(dir2, os.O_RDONLY)
        with _Fd(fd):
            with chk.step("Rename"):
                os.rename(dir1, dir2)
            try:
                st2 = os.fstat(fd)
            except OSError as exc:
                raise PosixTestSkipped(f"Fstat failed: {exc}. Known limitation") from exc
        if stat.S_IFMT(st2.st_mode) != stat.S_IFDIR:
            chk.error(f"got mode {st2.st_mode:o}, want {stat.S_IFDIR:o}")
        if st2.st_ino != st1.st_ino:
            chk.error(f"got ino {st2.st_ino}, want {st1.st_ino}")
        if st2.st_mode & 0o777 != st1.st_mode & 0o777:
            raise PosixTestSkipped(
                f"got permissions {st2.st_mode & 0o777:#o}, "
                f"want {st1.st_mode & 0o777:#o}. Known limitation"
            )


def read_dir(mnt: str) -> None:
    """Create 110 files one by one, listing the directory after each."""
    want: set[str] = set()
    with _Check() as chk:
        # 40 bytes of file name, so 110 entries overflow a 4096 byte page.
        for i in range(110):
            name = f"file{i:036x}"
            want.add(name)
            with chk.step(f"WriteFile {name!r}"):
                _write_file(os.path.join(mnt, name), b"hello", 0o644)
            with chk.step("ReadDir"):
                got = set(os.listdir(mnt))
            if len(got) != len(want):
                chk.error(f"mismatch got {len(got)} want {len(want)}")
            for extra in sorted(got - want):
                chk.error(f"got extra entry {extra!r}")
            for missing in sorted(want - got):
                chk.error(f"missing entry {missing!r}")


def read_dir_picks_up_create(mnt: str) -> None:
    """Reading a directory must show a file created after it was opened."""
    with _Check() as chk:
        with chk.step("Open"):
            it = os.scandir(mnt)
        with it:
            with chk.step("WriteFile"):
                _write_file(os.path.join(mnt, "file"), bytes([42]), 0o644)
            with chk.step("ReadDir"):
                names = [entry.name for entry in it]
        if names != ["file"]:
            chk.error("missing file created after opendir")


def link_unlink_rename(mnt: str) -> None:
    """Rename a file by linking it to the new name and unlinking the old one."""
    content = b"hello"
    tmp = os.path.join(mnt, "tmpfile")
    dest = os.path.join(mnt, "file")
    with _Check() as chk:
        with chk.step(f"WriteFile {tmp!r}"):
            _write_file(tmp, content, 0o644)
        with chk.step(f"Link {tmp!r} {dest!r}"):
            os.link(tmp, dest)
        with chk.step(f"Unlink {tmp!r}"):
            os.unlink(tmp)
        with chk.step(f"Read {dest!r}"):
            back = _read_file(dest)
        if back != content:
            chk.fatal(f"Read got {back!r} want {content!r}")


def append_write(mnt: str) -> None:
    """Write twice to a file opened with O_APPEND."""
    fn = os.path.join(mnt, "file")
    want = b"helloworld"
    with _Check() as chk:
        with chk.step("Open"):
            fd = os.open(fn, os.O_WRONLY | os.O_APPEND | os.O_CREAT, 0o644)
        with _Fd(fd) as handle:
            with chk.step("Write 1"):
                os.write(fd, b"hello")
            with chk.step("Write 2"):
                os.write(fd, b"world")
            with chk.step("Close"):
                handle.close()
        with chk.step("ReadFile"):
            got = _read_file(fn)
        if got != want:
            chk.error(f"got {got!r} want {want!r}")


def open_at(mnt: str) -> None:
    """Create a file relative to a directory descriptor after the directory moved."""
    dir1 = os.path.join(mnt, "dir1")
    dir2 = os.path.join(mnt, "dir2")
    with _Check() as chk:
        with chk.step("Mkdir"):
            os.mkdir(dir1, 0o777)
        with chk.step("Open"):
            dirfd = os.open(dir1, os.O_RDONLY)
        with _Fd(dirfd):
            with chk.step("Rename"):
                os.rename(dir1, dir2)
            with chk.step("Openat"):
                fd = os.open("file1", os.O_CREAT, 0o700, dir_fd=dirfd)
            with _Fd(fd):
                try:
                    os.stat(os.path.join(dir2, "file1"))
                except OSError as exc:
                    chk.error(str(exc))


def fallocate(mnt: str) -> None:
    """Preallocate space past the end of a file and check that it grew."""
    allocate = getattr(os, "posix_fallocate", None)
    if allocate is None:
        raise PosixTestSkipped("platform has no fallocate")
    fn = os.path.join(mnt, "file")
    offset, length = 1024, 4096
    with _Check() as chk:
        with chk.step("OpenFile failed"):
            fd = os.open(fn, os.O_CREAT | os.O_WRONLY | os.O_TRUNC, 0o666)
        with _Fd(fd):
            with chk.step("Fallocate failed"):
                allocate(fd, offset, length)
            with chk.step("Lstat failed"):
                size = os.lstat(fn).st_size
            if size < offset + length:
                chk.fatal(f"fallocate should have changed file size. Got {size} bytes")


ALL: dict[str, Callable[[str], None]] = {
    "AppendWrite": append_write,
    "SymlinkReadlink": symlink_readlink,
    "FileBasic": file_basic,
    "TruncateFile": truncate_file,
    "TruncateNoFile": truncate_no_file,
    "FdLeak": fd_leak,
    "MkdirRmdir": mkdir_rmdir,
    "NlinkZero": nlink_zero,
    "FstatDeleted": fstat_deleted,
    "ParallelFileOpen": parallel_file_open,
    "Link": link,
    "LinkUnlinkRename": link_unlink_rename,
    "RenameOverwriteDestNoExist": rename_overwrite_dest_no_exist,
    "RenameOverwriteDestExist": rename_overwrite_dest_exist,
    "RenameOpenDir": rename_open_dir,
    "ReadDir": read_dir,
    "ReadDirPicksUpCreate": read_dir_picks_up_create,
    "DirectIO": direct_io,
    "OpenAt": open_at,
    "Fallocate": fallocate,
}