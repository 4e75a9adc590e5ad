"""Entries and snapshot that have not yet been written to stable storage."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from .logger import get_logger
from .types import Entry, Snapshot


@dataclass
class Unstable:
    """Unstable log entries and an optional incoming snapshot.

    ``entries[i]`` has log position ``i + offset``. Entries before
    ``offset_in_progress`` are being written to storage.
    """

    entries: list[Entry] = field(default_factory=list)
    offset: int = 0
    snapshot: Snapshot | None = None
    snapshot_in_progress: bool = False
    offset_in_progress: int = 0
    logger: Any = field(default=None, repr=False, compare=False)

    @property
    def _log(self) -> Any:
        return self.logger if self.logger is not None else get_logger()

    def maybe_first_index(self) -> int | None:
        """Index of the first possible entry, if a snapshot is held."""
        if self.snapshot is not None:
            return self.snapshot.metadata.index + 1
        return None

    def maybe_last_index(self) -> int | None:
        """Last index, if there is at least one entry or a snapshot."""
        if self.entries:
            return self.offset + len(self.entries) - 1
        if self.snapshot is not None:
            return self.snapshot.metadata.index
        return None

    def maybe_term(self, i: int) -> int | None:
        """Term of the entry at index ``i``, if known here."""
        if i < self.offset:
            if self.snapshot is not None and self.snapshot.metadata.index == i:
                return self.snapshot.metadata.term
            return None
        last = self.maybe_last_index()
        if last is None or i > last:
            return None
        return self.entries[i - self.offset].term

    def next_entries(self) -> list[Entry]:
        """Entries not already being written to storage."""
        in_progress = self.offset_in_progress - self.offset
        return self.entries[in_progress:]

    def next_snapshot(self) -> Snapshot | None:
        """The snapshot, if one exists that is not already being written."""
        if self.snapshot is None or self.snapshot_in_progress:
            return None
        return self.snapshot

    def accept_in_progress(self) -> None:
        """Mark all current entries and the snapshot as being written."""
        if self.entries:
            self.offset_in_progress = self.entries[-1].index + 1
        if self.snapshot is not None:
            self.snapshot_in_progress = True

    def stable_to(self, i: int, t: int) -> None:
        """Mark entries up to (i, t) as written to stable storage."""
        term = self.maybe_term(i)
        if term is None:
            self._log.info("entry at index %d missing from unstable log; ignoring", i)
            return
        if i < self.offset:
            self._log.info("entry at index %d matched unstable snapshot; ignoring", i)
            return
        if term != t:
            self._log.info(
                "entry at (index,term)=(%d,%d) mismatched with entry at (%d,%d) in unstable log; ignoring",
                i, t, i, term,
            )
            return
        self.entries = self.entries[i + 1 - self.offset:]
        self.offset = i + 1
        self.offset_in_progress = max(self.offset_in_progress, self.offset)

    def stable_snap_to(self, i: int) -> None:
        if self.snapshot is not None and self.snapshot.metadata.index == i:
            self.snapshot = None
            self.snapshot_in_progress = False

    def restore(self, snapshot: Snapshot) -> None:
        self.offset = snapshot.metadata.index + 1
        self.offset_in_progress = self.offset
        self.entries = []
        self.snapshot = snapshot
        self.snapshot_in_progress = False

    def truncate_and_append(self, entries: Sequence[Entry]) -> None:
        if not entries:
            return
        from_index = entries[0].index
        if from_index == self.offset + len(self.entries):
            self.entries = self.entries + list(entries)
        elif from_index <= self.offset:
            self._log.info("replace the unstable entries from index %d", from_index)
            self.entries = list(entries)
            self.offset = from_index
            self.offset_in_progress = self.offset
        else:
            self._log.info("truncate the unstable entries before index %d", from_index)
            self.entries = self.slice(self.offset, from_index) + list(entries)
            self.offset_in_progress = min(self.offset_in_progress, from_index)

    def slice(self, lo: int, hi: int) -> list[Entry]:
        """Entries with indexes in [lo, hi); the whole range must be held here."""
        self._check_out_of_bounds(lo, hi)
        return self.entries[lo - self.offset:hi - self.offset]

    def _check_out_of_bounds(self, lo: int, hi: int) -> None:
        if lo > hi:
            self._log.panic("invalid unstable.slice %d > %d", lo, hi)
        upper = self.offset + len(self.entries)
        if lo < self.offset or hi > upper:
            self._log.panic("unstable.slice[%d,%d) out of bound [%d,%d]", lo, hi, self.offset, upper)