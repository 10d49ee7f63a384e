"""FUSE protocol structures, access checks, splice pipes and POSIX conformance checks."""

__version__ = "0.1.0"
__all__ = [
    "access",
    "listfds",
    "posixtest",
    "splice",
    "splicecopy",
    "splicepool",
    "sysio",
    "testutil",
    "types",
    "utimens",
]