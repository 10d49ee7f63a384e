"""A pool of reusable pipe pairs."""

from __future__ import annotations

import threading

from fusecore.splice import Pair, new_splice_pair


class PairPool:
    """Hands out pipe pairs and takes them back for reuse."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._unused: list[Pair] = []
        self._used_count = 0

    def clear(self) -> None:
        """Close every pair that is not in use."""
        with self._lock:
            unused, self._unused = self._unused, []
        for pair in unused:
            try:
                pair.close()
            except OSError:
                pass

    def used(self) -> int:
        with self._lock:
            return self._used_count

    def total(self) -> int:
        with self._lock:
            return self._used_count + len(self._unused)

    def drop(self, pair: Pair) -> None:
        """Close a pair instead of returning it to the pool."""
        try:
            pair.close()
        finally:
            with self._lock:
                self._used_count -= 1

    def get(self) -> Pair:
        with self._lock:
            self._used_count += 1
            if self._unused:
                return self._unused.pop()
            try:
                return new_splice_pair()
            except BaseException:
                self._used_count -= 1
                raise

    def done(self, pair: Pair) -> None:
        """Empty a pair and return it to the pool."""
        pair.discard()
        with self._lock:
            self._used_count -= 1
            self._unused.append(pair)


_splice_pool = PairPool()


def clear_splice_pool() -> None:
    _splice_pool.clear()


def get() -> Pair:
    return _splice_pool.get()


def total() -> int:
    return _splice_pool.total()


def used() -> int:
    return _splice_pool.used()


def done(pair: Pair) -> None:
    """Return the pipe pair to the pool."""
    _splice_pool.done(pair)


def drop(pair: Pair) -> None:
    """Close and discard the pipe pair."""
    _splice_pool.drop(pair)