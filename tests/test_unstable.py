import io

import pytest

from raftcore.logger import DefaultLogger, PanicError
from raftcore.types import Entry, Snapshot, SnapshotMetadata
from raftcore.unstable import Unstable

QUIET = DefaultLogger(stream=io.StringIO(), prefix="", timestamps=False)


def E(index, term):
    return Entry(term=term, index=index)


def snap(index, term):
    return Snapshot(metadata=SnapshotMetadata(index=index, term=term))


S41 = snap(4, 1)


@pytest.mark.parametrize(
    "entries, offset, snapshot, want",
    [
        ([E(5, 1)], 5, None, None),
        ([], 0, None, None),
        ([E(5, 1)], 5, S41, 5),
        ([], 5, S41, 5),
    ],
)
def test_maybe_first_index(entries, offset, snapshot, want):
    u = Unstable(entries=list(entries), offset=offset, snapshot=snapshot, logger=QUIET)
    assert u.maybe_first_index() == want


@pytest.mark.parametrize(
    "entries, offset, snapshot, want",
    [
        ([E(5, 1)], 5, None, 5),
        ([E(5, 1)], 5, S41, 5),
        ([], 5, S41, 4),
        ([], 0, None, None),
    ],
)
def test_maybe_last_index(entries, offset, snapshot, want):
    u = Unstable(entries=list(entries), offset=offset, snapshot=snapshot, logger=QUIET)
    assert u.maybe_last_index() == want


@pytest.mark.parametrize(
    "entries, offset, snapshot, index, want",
    [
        ([E(5, 1)], 5, None, 5, 1),
        ([E(5, 1)], 5, None, 6, None),
        ([E(5, 1)], 5, None, 4, None),
        ([E(5, 1)], 5, S41, 5, 1),
        ([E(5, 1)], 5, S41, 6, None),
        ([E(5, 1)], 5, S41, 4, 1),
        ([E(5, 1)], 5, S41, 3, None),
        ([], 5, S41, 5, None),
        ([], 5, S41, 4, 1),
        ([], 0, None, 5, None),
    ],
)
def test_maybe_term(entries, offset, snapshot, index, want):
    u = Unstable(entries=list(entries), offset=offset, snapshot=snapshot, logger=QUIET)
    assert u.maybe_term(index) == want


def test_restore():
    u = Unstable(
        entries=[E(5, 1)],
        offset=5,
        offset_in_progress=6,
        snapshot=S41,
        snapshot_in_progress=True,
        logger=QUIET,
    )
    s = snap(6, 2)
    u.restore(s)
    assert u.offset == s.metadata.index + 1
    assert u.offset_in_progress == s.metadata.index + 1
    assert len(u.entries) == 0
    assert u.snapshot == s
    assert u.snapshot_in_progress is False


@pytest.mark.parametrize(
    "entries, offset, offset_in_progress, want",
    [
        ([E(5, 1), E(6, 1)], 5, 5, [E(5, 1), E(6, 1)]),
        ([E(5, 1), E(6, 1)], 5, 6, [E(6, 1)]),
        ([E(5, 1), E(6, 1)], 5, 7, []),
    ],
)
def test_next_entries(entries, offset, offset_in_progress, want):
    u = Unstable(
        entries=list(entries), offset=offset, offset_in_progress=offset_in_progress, logger=QUIET
    )
    assert u.next_entries() == want


@pytest.mark.parametrize(
    "snapshot, in_progress, want",
    [
        (None, False, None),
        (S41, False, S41),
        (S41, True, None),
    ],
)
def test_next_snapshot(snapshot, in_progress, want):
    u = Unstable(snapshot=snapshot, snapshot_in_progress=in_progress)
    assert u.next_snapshot() == want


@pytest.mark.parametrize(
    "entries, snapshot, oip, sip, woip, wsip",
    [
        ([], None, 5, False, 5, False),
        ([E(5, 1)], None, 5, False, 6, False),
        ([E(5, 1), E(6, 1)], None, 5, False, 7, False),
        ([E(5, 1), E(6, 1)], None, 6, False, 7, False),
        ([E(5, 1), E(6, 1)], None, 7, False, 7, False),
        ([], S41, 5, False, 5, True),
        ([E(5, 1)], S41, 5, False, 6, True),
        ([E(5, 1), E(6, 1)], S41, 5, False, 7, True),
        ([E(5, 1), E(6, 1)], S41, 6, False, 7, True),
        ([E(5, 1), E(6, 1)], S41, 7, False, 7, True),
        ([], S41, 5, True, 5, True),
        ([E(5, 1)], S41, 5, True, 6, True),
        ([E(5, 1), E(6, 1)], S41, 5, True, 7, True),
        ([E(5, 1), E(6, 1)], S41, 6, True, 7, True),
        ([E(5, 1), E(6, 1)], S41, 7, True, 7, True),
    ],
)
def test_accept_in_progress(entries, snapshot, oip, sip, woip, wsip):
    u = Unstable(
        entries=list(entries),
        snapshot=snapshot,
        offset_in_progress=oip,
        snapshot_in_progress=sip,
    )
    u.accept_in_progress()
    assert u.offset_in_progress == woip
    assert u.snapshot_in_progress == wsip


@pytest.mark.parametrize(
    "entries, offset, oip, snapshot, index, term, woffset, woip, wlen",
    [
        ([], 0, 0, None, 5, 1, 0, 0, 0),
        ([E(5, 1)], 5, 6, None, 5, 1, 6, 6, 0),
        ([E(5, 1), E(6, 1)], 5, 6, None, 5, 1, 6, 6, 1),
        ([E(5, 1), E(6, 1)], 5, 7, None, 5, 1, 6, 7, 1),
        ([E(6, 2)], 6, 7, None, 6, 1, 6, 7, 1),
        ([E(5, 1)], 5, 6, None, 4, 1, 5, 6, 1),
        ([E(5, 1)], 5, 6, None, 4, 2, 5, 6, 1),
        ([E(5, 1)], 5, 6, S41, 5, 1, 6, 6, 0),
        ([E(5, 1), E(6, 1)], 5, 6, S41, 5, 1, 6, 6, 1),
        ([E(5, 1), E(6, 1)], 5, 7, S41, 5, 1, 6, 7, 1),
        ([E(6, 2)], 6, 7, snap(5, 1), 6, 1, 6, 7, 1),
        ([E(5, 1)], 5, 6, S41, 4, 1, 5, 6, 1),
        ([E(5, 2)], 5, 6, snap(4, 2), 4, 1, 5, 6, 1),
    ],
)
def test_stable_to(entries, offset, oip, snapshot, index, term, woffset, woip, wlen):
    u = Unstable(
        entries=list(entries),
        offset=offset,
        offset_in_progress=oip,
        snapshot=snapshot,
        logger=QUIET,
    )
    u.stable_to(index, term)
    assert u.offset == woffset
    assert u.offset_in_progress == woip
    assert len(u.entries) == wlen


@pytest.mark.parametrize(
    "entries, offset, oip, to_append, woffset, woip, wentries",
    [
        ([E(5, 1)], 5, 5, [E(6, 1), E(7, 1)], 5, 5, [E(5, 1), E(6, 1), E(7, 1)]),
        ([E(5, 1)], 5, 6, [E(6, 1), E(7, 1)], 5, 6, [E(5, 1), E(6, 1), E(7, 1)]),
        ([E(5, 1)], 5, 5, [E(5, 2), E(6, 2)], 5, 5, [E(5, 2), E(6, 2)]),
        ([E(5, 1)], 5, 5, [E(4, 2), E(5, 2), E(6, 2)], 4, 4, [E(4, 2), E(5, 2), E(6, 2)]),
        ([E(5, 1)], 5, 6, [E(5, 2), E(6, 2)], 5, 5, [E(5, 2), E(6, 2)]),
        ([E(5, 1), E(6, 1), E(7, 1)], 5, 5, [E(6, 2)], 5, 5, [E(5, 1), E(6, 2)]),
        (
            [E(5, 1), E(6, 1), E(7, 1)], 5, 5, [E(7, 2), E(8, 2)],
            5, 5, [E(5, 1), E(6, 1), E(7, 2), E(8, 2)],
        ),
        ([E(5, 1), E(6, 1), E(7, 1)], 5, 6, [E(6, 2)], 5, 6, [E(5, 1), E(6, 2)]),
        ([E(5, 1), E(6, 1), E(7, 1)], 5, 7, [E(6, 2)], 5, 6, [E(5, 1), E(6, 2)]),
    ],
)
def test_truncate_and_append(entries, offset, oip, to_append, woffset, woip, wentries):
    u = Unstable(entries=list(entries), offset=offset, offset_in_progress=oip, logger=QUIET)
    u.truncate_and_append(list(to_append))
    assert u.offset == woffset
    assert u.offset_in_progress == woip
    assert u.entries == wentries


def test_stable_snap_to_clears_matching_snapshot():
    u = Unstable(snapshot=S41, snapshot_in_progress=True, offset=5, logger=QUIET)
    u.stable_snap_to(3)
    assert u.snapshot == S41
    u.stable_snap_to(4)
    assert u.snapshot is None
    assert u.snapshot_in_progress is False


def test_slice_returns_range():
    u = Unstable(entries=[E(5, 1), E(6, 1), E(7, 2)], offset=5, logger=QUIET)
    assert u.slice(6, 8) == [E(6, 1), E(7, 2)]
    assert u.slice(5, 5) == []


@pytest.mark.parametrize("lo, hi", [(7, 6), (4, 6), (5, 9)])
def test_slice_out_of_bounds_panics(lo, hi):
    u = Unstable(entries=[E(5, 1), E(6, 1), E(7, 2)], offset=5, logger=QUIET)
    with pytest.raises(PanicError):
        u.slice(lo, hi)