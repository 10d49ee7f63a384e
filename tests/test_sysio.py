import errno
import os

import pytest

from fusecore.sysio import get_xattr, list_xattr, remove_xattr, set_xattr, writev


@pytest.fixture
def pipe():
    r, w = os.pipe()
    yield r, w
    for fd in (r, w):
        try:
            os.close(fd)
        except OSError:
            pass


def test_writev_writes_all_buffers_in_order(pipe):
    r, w = pipe
    packet = [b"hello", b" ", b"world"]
    n = writev(w, packet)
    assert n == sum(len(p) for p in packet)
    assert os.read(r, 100) == b"".join(packet)


def test_writev_skips_empty_buffers(pipe):
    r, w = pipe
    packet = [b"", b"abc", b"", b"def", b""]
    n = writev(w, packet)
    assert n == len(b"abcdef")
    assert os.read(r, 100) == b"abcdef"


def test_writev_accepts_bytearray_and_memoryview(pipe):
    r, w = pipe
    packet = [bytearray(b"xy"), memoryview(b"z")]
    assert writev(w, packet) == 3
    assert os.read(r, 10) == b"xyz"


def test_writev_nothing_to_write(pipe):
    r, w = pipe
    assert writev(w, [b"", b""]) == 0


def test_writev_bad_fd_raises(pipe):
    r, w = pipe
    os.close(w)
    with pytest.raises(OSError) as info:
        writev(w, [b"data"])
    assert info.value.errno == errno.EBADF


def test_get_xattr_missing_path(tmp_path):
    with pytest.raises(FileNotFoundError):
        get_xattr(tmp_path / "absent", "user.test")


def test_list_xattr_missing_path(tmp_path):
    with pytest.raises(FileNotFoundError):
        list_xattr(tmp_path / "absent")


def test_set_xattr_missing_path(tmp_path):
    with pytest.raises(FileNotFoundError):
        set_xattr(tmp_path / "absent", "user.test", b"value", 0)


def test_remove_xattr_missing_path(tmp_path):
    with pytest.raises(FileNotFoundError):
        remove_xattr(tmp_path / "absent", "user.test")


def test_get_xattr_absent_attribute(tmp_path):
    f = tmp_path / "file"
    f.write_bytes(b"x")
    with pytest.raises(OSError) as info:
        get_xattr(f, "user.fusecore.absent")
    assert info.value.errno in {
        getattr(errno, "ENODATA", errno.ENOENT),
        errno.ENOTSUP,
    }