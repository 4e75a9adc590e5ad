"""The raft log: stable storage plus the unstable tail, with commit and apply tracking."""

from __future__ import annotations

import abc
from collections.abc import Iterator, Sequence
from typing import Any

from .logger import PanicError, get_logger
from .types import NO_LIMIT, Entry, Snapshot, ents_size
from .unstable import Unstable


class CompactedError(LookupError):
    """The requested index is unavailable because it predates the last snapshot."""

    def __init__(self, message: str = "requested index is unavailable due to compaction") -> None:
        super().__init__(message)


class UnavailableError(LookupError):
    """The requested entry at the given index is unavailable."""

    def __init__(self, message: str = "requested entry at index is unavailable") -> None:
        super().__init__(message)


class Storage(abc.ABC):
    """Read access to the stable part of the log.

    Methods raise :class:`CompactedError` or :class:`UnavailableError` where
    the requested data is not held.
    """

    @abc.abstractmethod
    def first_index(self) -> int:
        """Index of the first entry that may be available via ``entries``."""

    @abc.abstractmethod
    def last_index(self) -> int:
        """Index of the last entry in the log."""

    @abc.abstractmethod
    def term(self, i: int) -> int:
        """Term of entry ``i``, in the range ``[first_index() - 1, last_index()]``."""

    @abc.abstractmethod
    def entries(self, lo: int, hi: int, max_size: int) -> list[Entry]:
        """Entries in ``[lo, hi)``, at most ``max_size`` bytes but at least one entry."""

    @abc.abstractmethod
    def snapshot(self) -> Snapshot:
        """The most recent snapshot."""


def limit_size(entries: Sequence[Entry], max_size: int) -> list[Entry]:
    """Return the longest prefix within ``max_size`` bytes; never fewer than one entry."""
    total = 0
    for count, entry in enumerate(entries):
        total += entry.size()
        if count and total > max_size:
            return list(entries[:count])
    return list(entries)


_OUT_OF_BOUNDS = (CompactedError, UnavailableError)


class RaftLog:
    """The replicated log as seen by a raft node."""

    def __init__(
        self,
        storage: Storage,
        logger: Any = None,
        max_applying_ents_size: int = NO_LIMIT,
    ) -> None:
        if storage is None:
            raise PanicError("storage must not be nil")
        self.storage = storage
        self.logger = logger if logger is not None else get_logger()
        self.max_applying_ents_size = max_applying_ents_size
        first = storage.first_index()
        last = storage.last_index()
        self.unstable = Unstable(offset=last + 1, offset_in_progress=last + 1, logger=self.logger)
        # Committed and applied start at the time of the last compaction.
        self.committed = first - 1
        self.applying = first - 1
        self.applied = first - 1
        self.applying_ents_size = 0
        self.applying_ents_paused = False

    def __str__(self) -> str:
        return (
            f"committed={self.committed}, applied={self.applied}, applying={self.applying}, "
            f"unstable.offset={self.unstable.offset}, "
            f"unstable.offsetInProgress={self.unstable.offset_in_progress}, "
            f"len(unstable.Entries)={len(self.unstable.entries)}"
        )

    def maybe_append(
        self, index: int, log_term: int, committed: int, entries: Sequence[Entry] = ()
    ) -> int | None:
        """Append after (index, log_term) if it matches; return the last new index or None."""
        if not self.match_term(index, log_term):
            return None
        entries = list(entries)
        last_new = index + len(entries)
        conflict = self.find_conflict(entries)
        if conflict == 0:
            pass
        elif conflict <= self.committed:
            self.logger.panic(
                "entry %d conflict with committed entry [committed(%d)]", conflict, self.committed
            )
        else:
            start = conflict - (index + 1)
            if start > len(entries):
                self.logger.panic("index, %d, is out of range [%d]", start, len(entries))
            self.append(*entries[start:])
        self.commit_to(min(committed, last_new))
        return last_new

    def append(self, *args: Entry) -> int:
        """Append entries to the unstable tail and return the new last index."""
        if not args:
            return self.last_index()
        after = args[0].index - 1
        if after < self.committed:
            self.logger.panic("after(%d) is out of range [committed(%d)]", after, self.committed)
        self.unstable.truncate_and_append(args)
        return self.last_index()

    def find_conflict(self, entries: Sequence[Entry]) -> int:
        """Index of the first entry that conflicts or is new; 0 if all are present."""
        for entry in entries:
            if not self.match_term(entry.index, entry.term):
                if entry.index <= self.last_index():
                    self.logger.info(
                        "found conflict at index %d [existing term: %d, conflicting term: %d]",
                        entry.index, self.zero_term_on_out_of_bounds(entry.index), entry.term,
                    )
                return entry.index
        return 0

    def find_conflict_by_term(self, index: int, term: int) -> tuple[int, int]:
        """Largest index <= ``index`` whose term is <= ``term`` or unknown, with that term."""
        for candidate in range(index, 0, -1):
            try:
                our_term = self.term(candidate)
            except _OUT_OF_BOUNDS:
                return candidate, 0
            if our_term <= term:
                return candidate, our_term
        return 0, 0

    def next_unstable_ents(self) -> list[Entry]:
        return self.unstable.next_entries()

    def has_next_unstable_ents(self) -> bool:
        return bool(self.next_unstable_ents())

    def has_next_or_in_progress_unstable_ents(self) -> bool:
        return bool(self.unstable.entries)

    def next_committed_ents(self, allow_unstable: bool) -> list[Entry]:
        """Committed entries available for application."""
        if self.applying_ents_paused or self.has_next_or_in_progress_snapshot():
            return []
        lo, hi = self.applying + 1, self.max_appliable_index(allow_unstable) + 1
        if lo >= hi:
            return []
        max_size = self.max_applying_ents_size - self.applying_ents_size
        if max_size <= 0:
            self.logger.panic(
                "applying entry size (%d-%d)=%d not positive",
                self.max_applying_ents_size, self.applying_ents_size, max_size,
            )
        try:
            return self.slice(lo, hi, max_size)
        except _OUT_OF_BOUNDS as err:
            self.logger.panic("unexpected error when getting unapplied entries (%s)", err)
            raise

    def has_next_committed_ents(self, allow_unstable: bool) -> bool:
        if self.applying_ents_paused or self.has_next_or_in_progress_snapshot():
            return False
        return self.applying + 1 < self.max_appliable_index(allow_unstable) + 1

    def max_appliable_index(self, allow_unstable: bool) -> int:
        hi = self.committed
        if not allow_unstable:
            hi = min(hi, self.unstable.offset - 1)
        return hi

    def next_unstable_snapshot(self) -> Snapshot | None:
        return self.unstable.next_snapshot()

    def has_next_unstable_snapshot(self) -> bool:
        return self.unstable.next_snapshot() is not None

    def has_next_or_in_progress_snapshot(self) -> bool:
        return self.unstable.snapshot is not None

    def snapshot(self) -> Snapshot:
        if self.unstable.snapshot is not None:
            return self.unstable.snapshot
        return self.storage.snapshot()

    def first_index(self) -> int:
        index = self.unstable.maybe_first_index()
        return index if index is not None else self.storage.first_index()

    def last_index(self) -> int:
        index = self.unstable.maybe_last_index()
        return index if index is not None else self.storage.last_index()

    def commit_to(self, to_commit: int) -> None:
        # Never decrease the commit index.
        if self.committed < to_commit:
            if self.last_index() < to_commit:
                self.logger.panic(
                    "tocommit(%d) is out of range [lastIndex(%d)]. "
                    "Was the raft log corrupted, truncated, or lost?",
                    to_commit, self.last_index(),
                )
            self.committed = to_commit

    def applied_to(self, i: int, size: int) -> None:
        if self.committed < i or i < self.applied:
            self.logger.panic(
                "applied(%d) is out of range [prevApplied(%d), committed(%d)]",
                i, self.applied, self.committed,
            )
        self.applied = i
        self.applying = max(self.applying, i)
        self.applying_ents_size = max(self.applying_ents_size - size, 0)
        self.applying_ents_paused = self.applying_ents_size >= self.max_applying_ents_size

    def accept_applying(self, i: int, size: int, allow_unstable: bool) -> None:
        if self.committed < i:
            self.logger.panic(
                "applying(%d) is out of range [prevApplying(%d), committed(%d)]",
                i, self.applying, self.committed,
            )
        self.applying = i
        self.applying_ents_size += size
        # Pause when the size limit is reached, or when the returned batch was
        # cut short by the limit.
        self.applying_ents_paused = (
            self.applying_ents_size >= self.max_applying_ents_size
            or i < self.max_appliable_index(allow_unstable)
        )

    def stable_to(self, i: int, t: int) -> None:
        self.unstable.stable_to(i, t)

    def stable_snap_to(self, i: int) -> None:
        self.unstable.stable_snap_to(i)

    def accept_unstable(self) -> None:
        """Mark the current unstable entries and snapshot as being persisted."""
        self.unstable.accept_in_progress()

    def last_term(self) -> int:
        try:
            return self.term(self.last_index())
        except _OUT_OF_BOUNDS as err:
            self.logger.panic("unexpected error when getting the last term (%s)", err)
            raise

    def term(self, i: int) -> int:
        """Term of entry ``i``; raises CompactedError or UnavailableError."""
        term = self.unstable.maybe_term(i)
        if term is not None:
            return term
        # The valid range is [first_index - 1, last_index].
        if i + 1 < self.first_index():
            raise CompactedError()
        if i > self.last_index():
            raise UnavailableError()
        return self.storage.term(i)

    def entries(self, i: int, max_size: int) -> list[Entry]:
        if i > self.last_index():
            return []
        return self.slice(i, self.last_index() + 1, max_size)

    def all_entries(self) -> list[Entry]:
        """All entries in the log, retrying if a compaction races the read."""
        while True:
            try:
                return self.entries(self.first_index(), NO_LIMIT)
            except CompactedError:
                continue

    def is_up_to_date(self, last_index: int, term: int) -> bool:
        """Whether the log ending at (last_index, term) is at least as up to date."""
        last_term = self.last_term()
        return term > last_term or (term == last_term and last_index >= self.last_index())

    def match_term(self, i: int, term: int) -> bool:
        try:
            return self.term(i) == term
        except _OUT_OF_BOUNDS:
            return False

    def maybe_commit(self, max_index: int, term: int) -> bool:
        if (
            max_index > self.committed
            and term != 0
            and self.zero_term_on_out_of_bounds(max_index) == term
        ):
            self.commit_to(max_index)
            return True
        return False

    def restore(self, snapshot: Snapshot) -> None:
        self.logger.info(
            "log [%s] starts to restore snapshot [index: %d, term: %d]",
            self, snapshot.metadata.index, snapshot.metadata.term,
        )
        self.committed = snapshot.metadata.index
        self.unstable.restore(snapshot)

    def scan(self, lo: int, hi: int, page_size: int) -> Iterator[list[Entry]]:
        """Yield the entries in [lo, hi) in consecutive pages of up to ``page_size`` bytes.

        A page holds more only when a single entry exceeds the limit.
        """
        while lo < hi:
            page = self.slice(lo, hi, page_size)
            if not page:
                raise RuntimeError(f"got 0 entries in [{lo}, {hi})")
            yield page
            lo += len(page)

    def slice(self, lo: int, hi: int, max_size: int) -> list[Entry]:
        """Entries from lo through hi - 1, limited to ``max_size`` bytes."""
        self.check_out_of_bounds(lo, hi)
        if lo == hi:
            return []
        offset = self.unstable.offset
        if lo >= offset:
            return limit_size(self.unstable.slice(lo, hi), max_size)

        cut = min(hi, offset)
        try:
            stored = list(self.storage.entries(lo, cut, max_size))
        except UnavailableError:
            self.logger.panic("entries[%d:%d) is unavailable from storage", lo, cut)
            raise
        if hi <= offset:
            return stored
        # The storage result was already cut short by the size limit.
        if len(stored) < cut - lo:
            return stored
        size = ents_size(stored)
        if size >= max_size:
            return stored
        tail = limit_size(self.unstable.slice(offset, hi), max_size - size)
        if len(tail) == 1 and size + ents_size(tail) > max_size:
            return stored
        return stored + tail

    def check_out_of_bounds(self, lo: int, hi: int) -> None:
        """Require first_index <= lo <= hi <= last_index + 1.

        Raises CompactedError if ``lo`` is compacted and panics otherwise.
        """
        if lo > hi:
            self.logger.panic("invalid slice %d > %d", lo, hi)
        first = self.first_index()
        if lo < first:
            raise CompactedError()
        length = self.last_index() + 1 - first
        if hi > first + length:
            self.logger.panic("slice[%d,%d) out of bound [%d,%d]", lo, hi, first, self.last_index())

    def zero_term_on_out_of_bounds(self, i: int) -> int:
        """Term of entry ``i``, or 0 if it is compacted or unavailable."""
        try:
            return self.term(i)
        except _OUT_OF_BOUNDS:
            return 0