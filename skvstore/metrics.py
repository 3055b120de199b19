"""Thread-safe counters and gauges for database statistics."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any


class Counter:
    """A monotonically increasing counter."""

    def __init__(self) -> None:
        self._value = 0
        self._lock = threading.Lock()

    def get(self) -> int:
        return self._value

    def inc(self) -> int:
        """Add one and return the previous value."""
        return self.add(1)

    def add(self, value: int) -> int:
        """Add ``value`` and return the previous value."""
        with self._lock:
            previous = self._value
            self._value = previous + value
            return previous

    def __repr__(self) -> str:
        return f"Counter({self._value})"


class Gauge:
    """A value that may be set to anything."""

    def __init__(self, value: Any = 0) -> None:
        self._value = value
        self._lock = threading.Lock()

    def get(self) -> Any:
        return self._value

    def set(self, value: Any) -> Any:
        """Replace the value and return the previous one."""
        with self._lock:
            previous = self._value
            self._value = value
            return previous

    def __repr__(self) -> str:
        return f"Gauge({self._value!r})"


@dataclass
class DbStats:
    """Statistics collected by a database instance."""

    immutable_memtable_flushes: Counter = field(default_factory=Counter)
    last_compaction_ts: Gauge = field(default_factory=Gauge)
    gc_manifest_count: Counter = field(default_factory=Counter)
    gc_wal_count: Counter = field(default_factory=Counter)
    gc_compacted_count: Counter = field(default_factory=Counter)
    gc_count: Counter = field(default_factory=Counter)
    object_store_cache_part_hits: Counter = field(default_factory=Counter)
    object_store_cache_part_access: Counter = field(default_factory=Counter)
    object_store_cache_keys: Gauge = field(default_factory=Gauge)
    object_store_cache_bytes: Gauge = field(default_factory=Gauge)
    object_store_cache_evicted_keys: Counter = field(default_factory=Counter)
    object_store_cache_evicted_bytes: Counter = field(default_factory=Counter)