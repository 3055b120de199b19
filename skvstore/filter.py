"""Bloom filters over SipHash-1-3 key hashes."""

from __future__ import annotations

import struct
from dataclasses import dataclass, field

_MASK = 0xFFFFFFFFFFFFFFFF


def _rotl(x: int, b: int) -> int:
    return ((x << b) | (x >> (64 - b))) & _MASK


def _sip_round(v0: int, v1: int, v2: int, v3: int) -> tuple[int, int, int, int]:
    v0 = (v0 + v1) & _MASK
    v1 = _rotl(v1, 13) ^ v0
    v0 = _rotl(v0, 32)
    v2 = (v2 + v3) & _MASK
    v3 = _rotl(v3, 16) ^ v2
    v0 = (v0 + v3) & _MASK
    v3 = _rotl(v3, 21) ^ v0
    v2 = (v2 + v1) & _MASK
    v1 = _rotl(v1, 17) ^ v2
    v2 = _rotl(v2, 32)
    return v0, v1, v2, v3


def _siphash13(data: bytes, k0: int = 0, k1: int = 0) -> int:
    v0 = k0 ^ 0x736F6D6570736575
    v1 = k1 ^ 0x646F72616E646F6D
    v2 = k0 ^ 0x6C7967656E657261
    v3 = k1 ^ 0x7465646279746573

    full = len(data) - len(data) % 8
    for (m,) in struct.iter_unpack("<Q", data[:full]):
        v3 ^= m
        v0, v1, v2, v3 = _sip_round(v0, v1, v2, v3)
        v0 ^= m

    tail = data[full:] + bytes(8 - (len(data) - full))
    m = struct.unpack("<Q", tail)[0] | ((len(data) & 0xFF) << 56)
    v3 ^= m
    v0, v1, v2, v3 = _sip_round(v0, v1, v2, v3)
    v0 ^= m

    v2 ^= 0xFF
    for _ in range(3):
        v0, v1, v2, v3 = _sip_round(v0, v1, v2, v3)
    return v0 ^ v1 ^ v2 ^ v3


def filter_hash(key: bytes) -> int:
    """Hash a key with SipHash-1-3 under a zero key."""
    return _siphash13(bytes(key))


def probes_for_key(key_hash: int, num_probes: int, filter_bits: int) -> list[int]:
    """Bit positions for a key hash, using enhanced double hashing."""
    h = (key_hash & 0xFFFFFFFF) % filter_bits
    delta = ((key_hash >> 32) & 0xFFFFFFFF) % filter_bits
    probes = []
    for i in range(num_probes):
        delta = (delta + i) % filter_bits
        probes.append(h)
        h = (h + delta) % filter_bits
    return probes


def check_bit(bit: int, buf: bytes) -> bool:
    byte, bit_in_byte = divmod(bit, 8)
    return buf[byte] & (1 << bit_in_byte) != 0


def set_bit(bit: int, buf: bytearray) -> None:
    byte, bit_in_byte = divmod(bit, 8)
    buf[byte] |= 1 << bit_in_byte


def _to_f32(x: float) -> float:
    return struct.unpack("<f", struct.pack("<f", x))[0]


def optimal_num_probes(bits_per_key: int) -> int:
    """bits_per_key * ln(2), truncated, computed in single precision."""
    product = _to_f32(_to_f32(float(bits_per_key)) * _to_f32(0.69))
    return max(0, min(0xFFFF, int(product)))


@dataclass(frozen=True)
class BloomFilter:
    """An immutable bloom filter."""

    num_probes: int
    buffer: bytes

    @classmethod
    def decode(cls, buf: bytes) -> BloomFilter:
        if len(buf) < 2:
            raise ValueError("bloom filter encoding is shorter than its header")
        (num_probes,) = struct.unpack_from(">H", buf)
        return cls(num_probes, bytes(buf[2:]))

    def encode(self) -> bytes:
        return struct.pack(">H", self.num_probes) + self.buffer

    def might_contain(self, key_hash: int) -> bool:
        filter_bits = len(self.buffer) * 8
        return all(
            check_bit(p, self.buffer)
            for p in probes_for_key(key_hash, self.num_probes, filter_bits)
        )

    def size(self) -> int:
        """Size of the filter bits in bytes."""
        return len(self.buffer)


@dataclass
class BloomFilterBuilder:
    """Collects key hashes and builds a filter sized for them."""

    bits_per_key: int
    key_hashes: list[int] = field(default_factory=list)

    def add_key(self, key: bytes) -> None:
        self.key_hashes.append(filter_hash(key))

    def _filter_size_bytes(self) -> int:
        filter_bits = (len(self.key_hashes) * self.bits_per_key) & 0xFFFFFFFF
        return (filter_bits + 7) // 8

    def build(self) -> BloomFilter:
        num_probes = optimal_num_probes(self.bits_per_key)
        filter_bytes = self._filter_size_bytes()
        filter_bits = filter_bytes * 8
        buffer = bytearray(filter_bytes)
        for key_hash in self.key_hashes:
            for p in probes_for_key(key_hash, num_probes, filter_bits):
                set_bit(p, buffer)
        return BloomFilter(num_probes, bytes(buffer))