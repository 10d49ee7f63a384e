"""Thin wrappers over vectored writes and extended attributes."""

from __future__ import annotations

import os
from collections.abc import Iterable


def writev(fd: int, packet: Iterable[bytes]) -> int:
    """Write all non-empty buffers of ``packet`` to ``fd`` in one call.

    Interrupted calls are retried. Returns the number of bytes written and
    raises OSError when the system call fails.
    """
    buffers = [bytes(chunk) for chunk in packet if len(chunk) > 0]
    if not buffers:
        return 0
    return os.writev(fd, buffers)


def get_xattr(path: str | os.PathLike, attr: str) -> bytes:
    """Return the value of extended attribute ``attr`` of ``path``."""
    return os.getxattr(path, attr)


def list_xattr(path: str | os.PathLike) -> list[str]:
    """Return the names of all extended attributes of ``path``."""
    return list(os.listxattr(path))


def set_xattr(path: str | os.PathLike, attr: str, data: bytes, flags: int = 0) -> None:
    """Set extended attribute ``attr`` of ``path`` to ``data``."""
    os.setxattr(path, attr, bytes(data), flags)


def remove_xattr(path: str | os.PathLike, attr: str) -> None:
    """Remove extended attribute ``attr`` from ``path``."""
    os.removexattr(path, attr)