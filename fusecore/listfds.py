"""Listing of the open file descriptors of a process."""

from __future__ import annotations

import os
import sys

_IGNORED_TARGETS = ("pipe:", "anon_inode:[eventpoll]")


def list_fds(pid: int = 0, prefix: str = "") -> list[str]:
    """List the open file descriptors of process ``pid`` (0 for ourselves).

    Each entry reads ``<fd><r><w>=<target>``. Descriptors whose target does
    not start with ``prefix`` (when it is given), pipes and the eventpoll
    descriptor are left out and summarised in a final ``(filtered: ...)``
    entry.
    """
    # Other processes can only be inspected through /proc, which only Linux has.
    if not sys.platform.startswith("linux") and pid > 0:
        return []
    directory = f"/proc/{pid}/fd" if pid > 0 else "/dev/fd"
    try:
        names = os.listdir(directory)
    except OSError as exc:
        print(f"ListFds: {exc}")
        return []

    out: list[str] = []
    filtered: list[str] = []
    for name in names:
        fd_path = f"{directory}/{name}"
        try:
            mode = os.lstat(fd_path).st_mode
            target = os.readlink(fd_path)
        except OSError:
            # The descriptor was closed in the meantime.
            continue
        if mode & 0o400:
            name += "r"
        if mode & 0o200:
            name += "w"
        if target.startswith(_IGNORED_TARGETS):
            # Pipes come and go with splicing; eventpoll is always there.
            filtered.append(target)
            continue
        if prefix and not target.startswith(prefix):
            filtered.append(target)
            continue
        out.append(f"{name}={target}")
    out.append(f"(filtered: {', '.join(filtered)})")
    return out