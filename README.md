# raftcore

`raftcore` holds the log machinery a Raft node is built on:

- `raftcore.types`: the log `Entry` (with `size()` giving its encoded size),
  `EntryType`, `Snapshot` and `SnapshotMetadata`, `ents_size` for the encoded
  size of a batch of entries, and `NO_LIMIT` for an unlimited size.
- `raftcore.unstable`: `Unstable`, the entries and snapshot that have not yet
  been written to stable storage, with tracking of what is being written.
- `raftcore.raftlog`: `RaftLog`, which combines a `Storage` with the unstable
  part and tracks the committed, applying and applied positions. It can limit
  how many bytes of entries are handed out for application at once. The module
  also has the abstract `Storage` base class, the `CompactedError` and
  `UnavailableError` exceptions, and `limit_size`.
- `raftcore.logger`: `DefaultLogger`, `PanicError` and the process-wide
  logger (`get_logger`, `set_logger`, `reset_default_logger`).

## Installation

```
pip install .
```

## Usage

Provide a `Storage` for the stable part of the log. This is a subclass that
implements `first_index`, `last_index`, `term`, `entries` and `snapshot`, and
raises `CompactedError` or `UnavailableError` where an index is not held.

```python
from raftcore.logger import get_logger
from raftcore.raftlog import RaftLog
from raftcore.types import Entry

log = RaftLog(storage, get_logger())
log.append(Entry(index=1, term=1), Entry(index=2, term=1))

# Append after (index=2, term=1) and commit up to 2.
# The call returns the last new index, or None if (2, 1) does not match.
last = log.maybe_append(2, 1, 2, [Entry(index=3, term=2)])
log.commit_to(3)

for entry in log.next_committed_ents(allow_unstable=True):
    ...  # apply to the state machine
```

Entries that are waiting to be persisted come from `next_unstable_ents()`.
Once they are written, report it with `stable_to(index, term)`. Call
`accept_unstable()` to mark the current entries as in progress, so that they
are not handed out again. Report applied progress with
`applied_to(index, size)`.

`RaftLog.term(i)` raises `CompactedError` or `UnavailableError` when the term
is not known. `zero_term_on_out_of_bounds(i)` returns 0 in that case instead.

`RaftLog.scan(lo, hi, page_size)` is a generator. It yields the entries of
`[lo, hi)` in pages of at most `page_size` bytes, and a page always holds at
least one entry.

When an internal invariant is broken, the logger's `panic` logs the message
and raises `raftcore.logger.PanicError`. `DefaultLogger.fatal` logs the
message and raises `SystemExit(1)`. Debug lines are written only after
`enable_debug()` has been called.

## What it does not include

The package has no `Storage` implementation of its own, in memory or on disk.
You supply one. It also has no node, elections, message handling or
membership changes. It covers the log only.

## Running the tests

```
pip install .[test]
pytest
```