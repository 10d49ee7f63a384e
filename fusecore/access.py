"""Permission checks for file system callers."""

from __future__ import annotations

import grp
import os
import pwd


def _group_ids(uid: int) -> set[int]:
    entry = pwd.getpwuid(uid)
    try:
        return set(os.getgrouplist(entry.pw_name, entry.pw_gid))
    except OSError:
        groups = {g.gr_gid for g in grp.getgrall() if entry.pw_name in g.gr_mem}
        groups.add(entry.pw_gid)
        return groups


def has_access(
    caller_uid: int,
    caller_gid: int,
    file_uid: int,
    file_gid: int,
    perm: int,
    mask: int,
) -> bool:
    """Tell whether a caller may access a file with permissions ``perm`` in mode ``mask``."""
    if caller_uid == 0:
        # root can do anything.
        return True
    mask &= 7
    if mask == 0:
        return True

    if caller_uid == file_uid and perm & (mask << 6):
        return True
    if caller_gid == file_gid and perm & (mask << 3):
        return True
    if perm & mask:
        return True

    # Only look up supplementary groups when the group bits would allow it.
    if not perm & (mask << 3):
        return False

    try:
        groups = _group_ids(caller_uid)
    except (KeyError, OSError):
        return False
    return file_gid in groups