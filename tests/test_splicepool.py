import os

import pytest

from fusecore import splicepool
from fusecore.splicepool import PairPool


def test_pair_size():
    p = splicepool.get()
    try:
        p.max_grow()
        data = bytes(i % 256 for i in range(p.cap() + 100))
        r, w = os.pipe()
        try:
            with pytest.raises(ValueError):
                p.load_from(r, len(data))
        finally:
            os.close(r)
            os.close(w)
    finally:
        splicepool.done(p)


def test_discard():
    p = splicepool.get()
    try:
        assert p.write(b"hello") == 5
        p.discard()
        with pytest.raises(BlockingIOError):
            p.read(1)
    finally:
        splicepool.done(p)


def test_pool_counts_and_reuse():
    pool = PairPool()
    p = pool.get()
    assert pool.used() == 1
    assert pool.total() == 1
    pool.done(p)
    assert pool.used() == 0
    assert pool.total() == 1
    q = pool.get()
    assert q is p
    assert pool.used() == 1
    pool.drop(q)
    assert pool.used() == 0
    assert pool.total() == 0


def test_done_discards_data():
    pool = PairPool()
    p = pool.get()
    p.write(b"leftover")
    pool.done(p)
    q = pool.get()
    with pytest.raises(BlockingIOError):
        q.read(1)
    pool.drop(q)


def test_clear_closes_unused():
    pool = PairPool()
    p = pool.get()
    fd = p.read_fd()
    pool.done(p)
    pool.clear()
    assert pool.total() == 0
    with pytest.raises(OSError):
        os.fstat(fd)


def test_module_level_counters():
    before_used = splicepool.used()
    p = splicepool.get()
    assert splicepool.used() == before_used + 1
    total_in_use = splicepool.total()
    splicepool.drop(p)
    assert splicepool.used() == before_used
    assert splicepool.total() == total_in_use - 1


def test_clear_splice_pool():
    p = splicepool.get()
    splicepool.done(p)
    splicepool.clear_splice_pool()
    assert splicepool.total() == splicepool.used()