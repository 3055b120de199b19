import struct

import pytest

from skvstore.row_codec import RowFlags, decode_row_v0, encode_row_v0
from skvstore.types import InvalidRowFlagsError, RowFeature


def test_encode_decode_normal_row():
    features = [RowFeature.FLAGS, RowFeature.TIMESTAMP]
    encoded = encode_row_v0(3, b"key", b"value", features, 1)
    decoded = decode_row_v0(b"prefixdata", features, encoded)
    assert decoded.key == b"prekey"
    assert decoded.value == b"value"
    assert decoded.attributes.ts == 1


def test_encode_decode_row_with_disabled_row_attr_flag():
    features = [RowFeature.FLAGS]
    encoded = encode_row_v0(0, b"", b"value", features, 1)
    decoded = decode_row_v0(b"", features, encoded)
    assert decoded.attributes.ts is None
    assert decoded.value == b"value"


def test_encode_decode_tombstone_row():
    features = [RowFeature.FLAGS]
    encoded = encode_row_v0(4, b"tomb", None, features, 1)
    decoded = decode_row_v0(b"deadbeefdata", features, encoded)
    assert decoded.key == b"deadtomb"
    assert decoded.value is None
    assert decoded.is_tombstone()


def test_decode_invalid_flags():
    data = (
        struct.pack(">HH", 3, 3)
        + b"bad"
        + bytes([0xFF])
        + struct.pack(">I", 4)
        + b"data"
    )
    with pytest.raises(InvalidRowFlagsError):
        decode_row_v0(b"prefixdata", [RowFeature.FLAGS], data)


def test_encode_decode_empty_key_suffix():
    features = [RowFeature.FLAGS]
    encoded = encode_row_v0(4, b"", b"value", features, 1)
    decoded = decode_row_v0(b"keyprefixdata", features, encoded)
    assert decoded.key == b"keyp"
    assert decoded.value == b"value"


def test_encoding_layout_is_fixed():
    encoded = encode_row_v0(0, b"k", b"v", [RowFeature.FLAGS], None)
    assert encoded == b"\x00\x00\x00\x01k\x00\x00\x00\x00\x01v"


def test_tombstone_layout_has_no_value():
    encoded = encode_row_v0(2, b"ab", None, [RowFeature.FLAGS], None)
    assert encoded == b"\x00\x02\x00\x02ab\x01"


def test_timestamp_layout_is_big_endian_signed():
    encoded = encode_row_v0(0, b"", b"", [RowFeature.TIMESTAMP], -2)
    assert encoded == b"\x00\x00\x00\x00" + b"\xff" * 7 + b"\xfe" + b"\x00\x00\x00\x00"
    decoded = decode_row_v0(b"", [RowFeature.TIMESTAMP], encoded)
    assert decoded.attributes.ts == -2


def test_missing_timestamp_is_rejected():
    with pytest.raises(ValueError):
        encode_row_v0(0, b"k", b"v", [RowFeature.TIMESTAMP], None)


def test_truncated_row_is_rejected():
    encoded = encode_row_v0(0, b"key", b"value", [RowFeature.FLAGS], None)
    with pytest.raises(ValueError):
        decode_row_v0(b"", [RowFeature.FLAGS], encoded[:-2])


def test_row_flags_from_bits():
    assert RowFlags.from_bits(1) == RowFlags.TOMBSTONE
    assert RowFlags.from_bits(0) == RowFlags(0)
    with pytest.raises(InvalidRowFlagsError):
        RowFlags.from_bits(2)