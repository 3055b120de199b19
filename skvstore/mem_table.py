"""In-memory sorted tables backing the write-ahead log and the memtable."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Optional

from sortedcontainers import SortedDict

from skvstore.types import KeyValueDeletable, KeyValueIterator, RowAttributes


@dataclass(frozen=True)
class ValueWithAttributes:
    """A stored value (None for a tombstone) and its row attributes."""

    value: Optional[bytes]
    attrs: RowAttributes


def _sizeof_attributes(attrs: RowAttributes) -> int:
    return 8 if attrs.ts is not None else 0


class MemTableIterator(KeyValueIterator):
    """Iterates a table in key order from an optional start key.

    The iterator keeps its position by key, so writes made to the table while
    iterating are seen if they fall after the current position.
    """

    def __init__(self, table: KVTable, start: Optional[bytes] = None) -> None:
        self._table = table
        self._start = start
        self._last: Optional[bytes] = None

    def next_entry(self) -> Optional[KeyValueDeletable]:
        found = self._table._entry_after(self._start, self._last)
        if found is None:
            return None
        key, entry = found
        self._last = key
        return KeyValueDeletable(key, entry.value, entry.attrs)


class KVTable:
    """A sorted map from keys to values or tombstones."""

    def __init__(self) -> None:
        self._map: SortedDict = SortedDict()
        self._lock = threading.RLock()
        self._durable = threading.Event()

    def is_empty(self) -> bool:
        return len(self._map) == 0

    def get(self, key: bytes) -> Optional[ValueWithAttributes]:
        """The stored entry for ``key``, or None if the key is absent.

        A present entry whose value is None is a tombstone.
        """
        with self._lock:
            return self._map.get(bytes(key))

    def iter(self) -> MemTableIterator:
        return MemTableIterator(self)

    def range_from(self, start: bytes) -> MemTableIterator:
        """Iterate over keys greater than or equal to ``start``."""
        return MemTableIterator(self, bytes(start))

    def _entry_after(
        self, start: Optional[bytes], last: Optional[bytes]
    ) -> Optional[tuple[bytes, ValueWithAttributes]]:
        with self._lock:
            if last is not None:
                index = self._map.bisect_right(last)
            elif start is not None:
                index = self._map.bisect_left(start)
            else:
                index = 0
            if index >= len(self._map):
                return None
            key = self._map.keys()[index]
            return key, self._map[key]

    def _put(self, key: bytes, value: bytes, attrs: RowAttributes) -> None:
        with self._lock:
            self._map[key] = ValueWithAttributes(bytes(value), attrs)

    def _delete(self, key: bytes, attrs: RowAttributes) -> None:
        with self._lock:
            self._map[key] = ValueWithAttributes(None, attrs)

    def await_durable(self, timeout: Optional[float] = None) -> bool:
        """Block until the table is durable; False if ``timeout`` ran out."""
        return self._durable.wait(timeout)

    def notify_durable(self) -> None:
        self._durable.set()

    def is_durable(self) -> bool:
        return self._durable.is_set()


class WritableKVTable:
    """A table open for writes that tracks its approximate size in bytes."""

    def __init__(self) -> None:
        self._table = KVTable()
        self._size = 0

    def size(self) -> int:
        return self._size

    def table(self) -> KVTable:
        return self._table

    def put(self, key: bytes, value: bytes, attrs: RowAttributes) -> None:
        key = bytes(key)
        self._subtract_old_entry(key)
        self._size += len(key) + len(value) + _sizeof_attributes(attrs)
        self._table._put(key, value, attrs)

    def delete(self, key: bytes, attrs: RowAttributes) -> None:
        key = bytes(key)
        self._subtract_old_entry(key)
        self._size += len(key)
        self._table._delete(key, attrs)

    def _subtract_old_entry(self, key: bytes) -> None:
        old = self._table.get(key)
        if old is not None:
            old_value_len = 0 if old.value is None else len(old.value)
            self._size -= len(key) + old_value_len + _sizeof_attributes(old.attrs)


class ImmutableWal:
    """A frozen write-ahead-log table awaiting flush."""

    def __init__(self, wal_id: int, table: WritableKVTable) -> None:
        self._id = wal_id
        self._table = table.table()

    def id(self) -> int:
        return self._id

    def table(self) -> KVTable:
        return self._table


class ImmutableMemtable:
    """A frozen memtable awaiting flush to level 0."""

    def __init__(self, table: WritableKVTable, last_wal_id: int) -> None:
        self._table = table.table()
        self._last_wal_id = last_wal_id
        self._flushed = threading.Event()

    def table(self) -> KVTable:
        return self._table

    def last_wal_id(self) -> int:
        return self._last_wal_id

    def await_flush_to_l0(self, timeout: Optional[float] = None) -> bool:
        """Block until flushed to level 0; False if ``timeout`` ran out."""
        return self._flushed.wait(timeout)

    def notify_flush_to_l0(self) -> None:
        self._flushed.set()