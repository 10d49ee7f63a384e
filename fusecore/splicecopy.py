"""File to file copying through splice pipes."""

from __future__ import annotations

import os
from typing import IO, Union

from fusecore import splicepool
from fusecore.splice import Pair

FileLike = Union[int, IO[bytes]]

_COPY_PIPE_SIZE = 256 * 1024
_FALLBACK_CHUNK = 64 * 1024


def _fileno(f: FileLike) -> int:
    return f if isinstance(f, int) else f.fileno()


def splice_copy(dst: FileLike, src: FileLike, pair: Pair) -> int:
    """Copy ``src`` to ``dst`` through ``pair``; return the bytes written."""
    src_fd = _fileno(src)
    dst_fd = _fileno(dst)
    total = 0
    while True:
        n = pair.load_from(src_fd, pair.cap())
        if n == 0:
            break
        m = pair.write_to(dst_fd, n)
        total += m
        if m < n:
            return total
        if n < pair.cap():
            break
    return total


def _plain_copy(dst_fd: int, src_fd: int) -> None:
    while True:
        chunk = os.read(src_fd, _FALLBACK_CHUNK)
        if not chunk:
            return
        view = memoryview(chunk)
        while view:
            view = view[os.write(dst_fd, view):]


def copy_file(dst_name: str | os.PathLike, src_name: str | os.PathLike, mode: int) -> None:
    """Copy ``src_name`` to ``dst_name``, creating it with ``mode`` if needed."""
    with open(src_name, "rb") as src:
        with open(dst_name, "wb", opener=lambda p, flags: os.open(p, flags, mode)) as dst:
            copy_fds(dst, src)


def copy_fds(dst: FileLike, src: FileLike) -> None:
    """Copy everything from ``src`` to ``dst``, using a pooled pipe if possible."""
    try:
        pair = splicepool.get()
    except OSError:
        _plain_copy(_fileno(dst), _fileno(src))
        return
    try:
        try:
            pair.grow(_COPY_PIPE_SIZE)
        except (ValueError, OSError):
            pass
        splice_copy(dst, src, pair)
    finally:
        splicepool.done(pair)