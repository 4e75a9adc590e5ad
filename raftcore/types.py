"""Log entry and snapshot records, with their encoded sizes."""

from __future__ import annotations

import enum
from collections.abc import Iterable
from dataclasses import dataclass, field

NO_LIMIT = 2**64 - 1


class EntryType(enum.IntEnum):
    NORMAL = 0
    CONF_CHANGE = 1
    CONF_CHANGE_V2 = 2


def _varint_size(value: int) -> int:
    return (max(value | 1, 1).bit_length() + 6) // 7


@dataclass(frozen=True)
class Entry:
    """A single replicated log entry."""

    term: int = 0
    index: int = 0
    type: EntryType = EntryType.NORMAL
    data: bytes | None = None

    def size(self) -> int:
        """Return the size of the entry in its wire encoding."""
        n = 1 + _varint_size(int(self.type))
        n += 1 + _varint_size(self.term)
        n += 1 + _varint_size(self.index)
        if self.data is not None:
            length = len(self.data)
            n += 1 + length + _varint_size(length)
        return n


@dataclass(frozen=True)
class SnapshotMetadata:
    index: int = 0
    term: int = 0


@dataclass(frozen=True)
class Snapshot:
    metadata: SnapshotMetadata = field(default_factory=SnapshotMetadata)
    data: bytes | None = None


def ents_size(entries: Iterable[Entry]) -> int:
    """Return the total encoded size of the given entries."""
    return sum(entry.size() for entry in entries)