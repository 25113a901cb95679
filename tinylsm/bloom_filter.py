"""Bloom filter with a portable binary encoding."""

from __future__ import annotations

import math
import struct

_HEADER = struct.Struct("<QdQQ")
_MASK64 = (1 << 64) - 1
_FNV_OFFSET = 0xCBF29CE484222325
_FNV_PRIME = 0x100000001B3


def _fnv1a(data: bytes) -> int:
    h = _FNV_OFFSET
    for byte in data:
        h ^= byte
        h = (h * _FNV_PRIME) & _MASK64
    return h


def _key_bytes(key: str | bytes) -> bytes:
    if isinstance(key, bytes):
        return key
    return key.encode("utf-8", "surrogateescape")


class BloomFilter:
    """Probabilistic set membership using double hashing over a bit array."""

    def __init__(self, expected_elements: int, false_positive_rate: float) -> None:
        if expected_elements <= 0:
            raise ValueError("expected_elements must be positive")
        if not 0.0 < false_positive_rate < 1.0:
            raise ValueError("false_positive_rate must be between 0 and 1")
        m = -expected_elements * math.log(false_positive_rate) / math.log(2) ** 2
        self.expected_elements = expected_elements
        self.false_positive_rate = false_positive_rate
        self.num_bits = math.ceil(m)
        self.num_hashes = math.ceil(m / expected_elements * math.log(2))
        self._bits = bytearray((self.num_bits + 7) // 8)

    def _positions(self, key: str | bytes):
        raw = _key_bytes(key)
        h1 = _fnv1a(raw)
        h2 = _fnv1a(raw + b"salt")
        for i in range(self.num_hashes):
            yield ((h1 + i * h2) & _MASK64) % self.num_bits

    def add(self, key: str | bytes) -> None:
        """Record ``key`` in the filter."""
        for pos in self._positions(key):
            self._bits[pos >> 3] |= 1 << (pos & 7)

    def possibly_contains(self, key: str | bytes) -> bool:
        """Return False if ``key`` was certainly never added."""
        return all(self._bits[pos >> 3] & (1 << (pos & 7)) for pos in self._positions(key))

    def __contains__(self, key: str | bytes) -> bool:
        return self.possibly_contains(key)

    def clear(self) -> None:
        """Reset every bit."""
        self._bits = bytearray(len(self._bits))

    def encode(self) -> bytes:
        """Serialise parameters and bit array."""
        header = _HEADER.pack(
            self.expected_elements,
            self.false_positive_rate,
            self.num_bits,
            self.num_hashes,
        )
        return header + bytes(self._bits)

    @classmethod
    def decode(cls, data: bytes) -> "BloomFilter":
        """Rebuild a filter from the output of :meth:`encode`."""
        data = bytes(data)
        if len(data) < _HEADER.size:
            raise ValueError("bloom filter data too short")
        expected, rate, num_bits, num_hashes = _HEADER.unpack_from(data)
        num_bytes = (num_bits + 7) // 8
        body = data[_HEADER.size:_HEADER.size + num_bytes]
        if len(body) < num_bytes:
            raise ValueError("bloom filter data too short")
        bf = cls.__new__(cls)
        bf.expected_elements = expected
        bf.false_positive_rate = rate
        bf.num_bits = num_bits
        bf.num_hashes = num_hashes
        bits = bytearray(body)
        if num_bits % 8 and bits:
            bits[-1] &= (1 << (num_bits % 8)) - 1
        bf._bits = bits
        return bf