"""Binary encoding of rows inside sorted-table blocks (the ``v0`` scheme).

A row is laid out as::

    key_prefix_len: u16 | key_suffix_len: u16 | key_suffix | meta | value_len: u32 | value

Tombstones (``meta`` flags with the tombstone bit set) omit ``value_len`` and
``value``. The ``meta`` section holds, in order, one field per enabled
:class:`~skvstore.types.RowFeature`: a ``u8`` of flags or a big-endian ``i64``
timestamp. All integers are big-endian.
"""

from __future__ import annotations

import enum
import struct
from collections.abc import Sequence
from typing import Optional

from skvstore.types import (
    InvalidRowFlagsError,
    KeyValueDeletable,
    RowAttributes,
    RowFeature,
)


class RowFlags(enum.IntFlag):
    """Per-row flag bits."""

    TOMBSTONE = 0b0000_0001

    @classmethod
    def from_bits(cls, bits: int) -> RowFlags:
        """Parse flag bits, rejecting any that are not known."""
        known = 0
        for member in cls:
            known |= member.value
        if bits & ~known:
            raise InvalidRowFlagsError(f"unknown row flag bits: {bits:#04x}")
        return cls(bits)


def _encode_meta(
    row_features: Sequence[RowFeature], is_tombstone: bool, timestamp: Optional[int]
) -> bytes:
    parts = []
    for feature in row_features:
        if feature is RowFeature.FLAGS:
            flags = RowFlags.TOMBSTONE if is_tombstone else RowFlags(0)
            parts.append(struct.pack(">B", int(flags)))
        elif feature is RowFeature.TIMESTAMP:
            if timestamp is None:
                raise ValueError(
                    "timestamp row feature is enabled but the row has no timestamp"
                )
            parts.append(struct.pack(">q", timestamp))
    return b"".join(parts)


def encode_row_v0(
    key_prefix_len: int,
    key_suffix: bytes,
    value: Optional[bytes],
    row_features: Sequence[RowFeature],
    timestamp: Optional[int],
) -> bytes:
    """Encode a row; a ``value`` of None encodes a tombstone."""
    parts = [
        struct.pack(">HH", key_prefix_len, len(key_suffix)),
        bytes(key_suffix),
        _encode_meta(row_features, value is None, timestamp),
    ]
    if value is not None:
        parts.append(struct.pack(">I", len(value)))
        parts.append(bytes(value))
    return b"".join(parts)


class _Reader:
    def __init__(self, data: bytes) -> None:
        self._data = memoryview(bytes(data))
        self._pos = 0

    def take(self, n: int) -> bytes:
        end = self._pos + n
        if end > len(self._data):
            raise ValueError("row encoding is truncated")
        chunk = bytes(self._data[self._pos:end])
        self._pos = end
        return chunk

    def unpack(self, fmt: str) -> int:
        return struct.unpack(fmt, self.take(struct.calcsize(fmt)))[0]


def decode_row_v0(
    first_key: bytes, row_features: Sequence[RowFeature], data: bytes
) -> KeyValueDeletable:
    """Decode a row written by :func:`encode_row_v0`.

    The key prefix is taken from ``first_key``. Raises
    :class:`InvalidRowFlagsError` on unknown flag bits and ``ValueError`` on
    truncated input.
    """
    reader = _Reader(data)
    key_prefix_len = reader.unpack(">H")
    key_suffix_len = reader.unpack(">H")
    key_suffix = reader.take(key_suffix_len)

    flags = RowFlags(0)
    timestamp: Optional[int] = None
    for feature in row_features:
        if feature is RowFeature.FLAGS:
            flags = RowFlags.from_bits(reader.unpack(">B"))
        elif feature is RowFeature.TIMESTAMP:
            timestamp = reader.unpack(">q")

    if flags & RowFlags.TOMBSTONE:
        value: Optional[bytes] = None
    else:
        value = reader.take(reader.unpack(">I"))

    if key_prefix_len > len(first_key):
        raise ValueError("key prefix is longer than the first key")
    key = bytes(first_key[:key_prefix_len]) + key_suffix
    return KeyValueDeletable(key, value, RowAttributes(ts=timestamp))