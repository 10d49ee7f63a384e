import os
from datetime import datetime, timezone

from fusecore.types import Attr
from fusecore.utimens import Timeval, fill


def test_fill_uses_given_times():
    a = datetime(2018, 5, 2, 19, 57, 38, 123456, tzinfo=timezone.utc)
    m = datetime(2018, 5, 2, 19, 57, 38, 654321, tzinfo=timezone.utc)
    ta, tm = fill(a, m, Attr())
    assert ta == Timeval(1525291058, 123456)
    assert tm == Timeval(1525291058, 654321)


def test_fill_takes_missing_values_from_attr():
    attr = Attr(atime=1525291058, atimensec=7000, mtime=1525291058, mtimensec=9000)
    ta, tm = fill(None, None, attr)
    assert ta.sec == attr.atime
    assert tm.sec == attr.mtime
    assert ta.ns == attr.atime * 1_000_000_000 + attr.atimensec
    assert tm.ns == attr.mtime * 1_000_000_000 + attr.mtimensec


def test_fill_mixes_given_and_attr():
    a = datetime(2018, 5, 2, 19, 57, 38, tzinfo=timezone.utc)
    attr = Attr(atime=5, mtime=1525291058, mtimensec=3000)
    ta, tm = fill(a, None, attr)
    assert ta.sec == 1525291058
    assert ta.usec == 0
    assert tm.ns == attr.mtime * 1_000_000_000 + attr.mtimensec


def test_attr_nanoseconds_overflow_into_seconds():
    attr = Attr(atime=100, atimensec=2_000_003_000)
    ta, _ = fill(None, None, attr)
    assert 0 <= ta.usec < 1_000_000
    assert ta.ns == attr.atime * 1_000_000_000 + attr.atimensec


def test_times_before_epoch_keep_usec_positive():
    a = datetime(1969, 12, 31, 23, 59, 59, 500000, tzinfo=timezone.utc)
    ta, _ = fill(a, a, Attr())
    assert ta == Timeval(-1, 500000)


def test_naive_datetime_is_local_time():
    naive = datetime(2018, 5, 2, 19, 57, 38, 250000)
    ta, _ = fill(naive, None, Attr())
    expected = naive.astimezone()
    assert Timeval.from_datetime(expected) == ta
    assert ta.usec == naive.microsecond


def test_ns_works_with_os_utime(tmp_path):
    f = tmp_path / "file"
    f.write_bytes(b"")
    a = datetime(2018, 5, 2, 19, 57, 38, tzinfo=timezone.utc)
    m = datetime(2018, 5, 2, 20, 0, 0, tzinfo=timezone.utc)
    ta, tm = fill(a, m, Attr())
    os.utime(f, ns=(ta.ns, tm.ns))
    st = os.stat(f)
    assert st.st_atime_ns == ta.ns
    assert st.st_mtime_ns == tm.ns