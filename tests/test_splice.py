import os

import pytest

from fusecore.splice import (
    DEFAULT_PIPE_SIZE,
    Pair,
    max_pipe_size,
    new_splice_pair,
)


@pytest.fixture
def pair():
    p = new_splice_pair()
    yield p
    try:
        p.close()
    except OSError:
        pass


def test_max_pipe_size_is_page_multiple():
    size = max_pipe_size()
    assert size % 4096 == 0
    assert size >= 4096


def test_new_pair_has_capacity(pair):
    assert pair.cap() > 0


def test_write_read_roundtrip(pair):
    assert pair.write(b"hello") == 5
    assert pair.read(5) == b"hello"


def test_read_empty_pipe_would_block(pair):
    with pytest.raises(BlockingIOError):
        pair.read(1)


def test_discard_empties_pipe(pair):
    pair.write(b"hello")
    pair.discard()
    with pytest.raises(BlockingIOError):
        pair.read(1)


def test_discard_on_empty_pipe_is_harmless(pair):
    pair.discard()
    pair.write(b"x")
    assert pair.read(1) == b"x"


def test_grow_to_smaller_keeps_size(pair):
    before = pair.cap()
    pair.grow(1)
    assert pair.cap() == before


def test_grow_beyond_max_fails(pair):
    with pytest.raises(ValueError):
        pair.grow(max_pipe_size() + pair.cap() + 4096)


def test_max_grow_reaches_limit(pair):
    pair.max_grow()
    assert pair.cap() <= max(max_pipe_size(), DEFAULT_PIPE_SIZE)
    with pytest.raises((ValueError, OSError)):
        pair.grow(2 * pair.cap())


def test_load_from_over_capacity(pair, tmp_path):
    path = tmp_path / "data"
    path.write_bytes(b"x" * 10)
    with open(path, "rb") as f:
        with pytest.raises(ValueError):
            pair.load_from(f.fileno(), pair.cap() + 100)


def test_load_from_and_write_to_roundtrip(pair, tmp_path):
    src = tmp_path / "src"
    dst = tmp_path / "dst"
    src.write_bytes(b"hello world")
    with open(src, "rb") as fin, open(dst, "wb") as fout:
        n = pair.load_from(fin.fileno(), pair.cap())
        assert n == 11
        assert pair.write_to(fout.fileno(), n) == 11
    assert dst.read_bytes() == b"hello world"


def test_load_from_at_uses_offset(pair, tmp_path):
    src = tmp_path / "src"
    src.write_bytes(b"hello world")
    with open(src, "rb") as fin:
        n = pair.load_from_at(fin.fileno(), 5, 6)
    assert n == 5
    assert pair.read(5) == b"world"


def test_close_closes_both_fds():
    p = new_splice_pair()
    r, w = p.read_fd(), p.write_fd()
    assert r != w
    p.close()
    with pytest.raises(OSError):
        os.fstat(r)
    with pytest.raises(OSError):
        os.fstat(w)


def test_double_close_raises():
    p = new_splice_pair()
    p.close()
    with pytest.raises(OSError):
        p.close()


def test_context_manager_closes():
    with new_splice_pair() as p:
        fd = p.read_fd()
        assert isinstance(p, Pair)
    with pytest.raises(OSError):
        os.fstat(fd)