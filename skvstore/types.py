"""Core value types, errors and the key-value iterator protocol."""

from __future__ import annotations

import enum
from abc import ABC, abstractmethod
from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Optional


class StoreError(Exception):
    """Base class for every error raised by the store."""


class InvalidRowFlagsError(StoreError):
    """A row carried flag bits that are not known."""


class FencedError(StoreError):
    """This writer or compactor has been fenced by a newer one."""


class ManifestVersionExistsError(StoreError):
    """A manifest with the requested id was already written."""


class InvalidDeletionError(StoreError):
    """The requested object may not be deleted."""


class ManifestMissingError(StoreError):
    """No manifest exists where one was required."""


class InvalidDbStateError(StoreError):
    """The stored database state is not valid."""


class RowFeature(enum.Enum):
    """Optional per-row fields enabled for a sorted table."""

    FLAGS = 0
    TIMESTAMP = 1


@dataclass(frozen=True)
class RowAttributes:
    """Attributes stored alongside a row."""

    ts: Optional[int] = None


@dataclass(frozen=True)
class KeyValue:
    """A live key and its value."""

    key: bytes
    value: bytes


@dataclass(frozen=True)
class KeyValueDeletable:
    """A key with either a value or, when ``value`` is None, a tombstone."""

    key: bytes
    value: Optional[bytes]
    attributes: RowAttributes = field(default_factory=RowAttributes)

    def is_tombstone(self) -> bool:
        return self.value is None


class KeyValueIterator(ABC):
    """An ordered source of entries, tombstones included."""

    @abstractmethod
    def next_entry(self) -> Optional[KeyValueDeletable]:
        """Return the next entry, or None when the iterator is exhausted."""

    def next(self) -> Optional[KeyValue]:
        """Return the next live key-value pair, skipping tombstones."""
        while True:
            entry = self.next_entry()
            if entry is None:
                return None
            if entry.value is not None:
                return KeyValue(entry.key, entry.value)

    def __iter__(self) -> Iterator[KeyValue]:
        while (kv := self.next()) is not None:
            yield kv