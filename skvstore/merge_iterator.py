"""Iterators that merge several sorted key-value sources into one."""

from __future__ import annotations

import heapq
from collections.abc import Iterable
from typing import Optional

from skvstore.types import KeyValueDeletable, KeyValueIterator


class TwoMergeIterator(KeyValueIterator):
    """Merges two sorted iterators.

    When both hold the same key, the entry from the first iterator wins and
    the one from the second is dropped.
    """

    def __init__(self, iterator1: KeyValueIterator, iterator2: KeyValueIterator) -> None:
        self._iterator1 = iterator1
        self._iterator2 = iterator2
        self._next1 = iterator1.next_entry()
        self._next2 = iterator2.next_entry()

    def _advance1(self) -> Optional[KeyValueDeletable]:
        current = self._next1
        if current is not None:
            self._next1 = self._iterator1.next_entry()
        return current

    def _advance2(self) -> Optional[KeyValueDeletable]:
        current = self._next2
        if current is not None:
            self._next2 = self._iterator2.next_entry()
        return current

    def next_entry(self) -> Optional[KeyValueDeletable]:
        next1, next2 = self._next1, self._next2
        if next1 is None:
            return self._advance2()
        if next2 is None:
            return self._advance1()
        if next1.key < next2.key:
            return self._advance1()
        if next1.key == next2.key:
            self._advance2()
            return self._advance1()
        return self._advance2()


class MergeIterator(KeyValueIterator):
    """Merges any number of sorted iterators.

    For a key present in several iterators, only the entry from the earliest
    iterator in the given order is returned.
    """

    def __init__(self, iterators: Iterable[KeyValueIterator]) -> None:
        # Heap items are (key, index, entry, iterator); (key, index) is unique,
        # so the comparison never reaches the entry or the iterator.
        self._heap: list[tuple[bytes, int, KeyValueDeletable, KeyValueIterator]] = []
        for index, iterator in enumerate(iterators):
            entry = iterator.next_entry()
            if entry is not None:
                self._heap.append((entry.key, index, entry, iterator))
        heapq.heapify(self._heap)

    def _advance(self) -> Optional[KeyValueDeletable]:
        if not self._heap:
            return None
        _, index, entry, iterator = self._heap[0]
        following = iterator.next_entry()
        if following is None:
            heapq.heappop(self._heap)
        else:
            heapq.heapreplace(self._heap, (following.key, index, following, iterator))
        return entry

    def next_entry(self) -> Optional[KeyValueDeletable]:
        entry = self._advance()
        if entry is None:
            return None
        while self._heap and self._heap[0][0] == entry.key:
            self._advance()
        return entry