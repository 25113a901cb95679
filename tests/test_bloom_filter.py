import struct

import pytest

from tinylsm.bloom_filter import BloomFilter


def _keys(n):
    return [f"key_{i}" for i in range(n)]


def test_added_keys_are_contained():
    bf = BloomFilter(100, 0.01)
    for k in _keys(100):
        bf.add(k)
    assert all(bf.possibly_contains(k) for k in _keys(100))
    assert "key_5" in bf


def test_false_positive_rate_is_reasonable():
    bf = BloomFilter(1000, 0.01)
    for k in _keys(1000):
        bf.add(k)
    misses = sum(bf.possibly_contains(f"other_{i}") for i in range(1000))
    assert misses < 100


def test_clear_removes_everything():
    bf = BloomFilter(50, 0.05)
    for k in _keys(50):
        bf.add(k)
    bf.clear()
    assert not any(bf.possibly_contains(k) for k in _keys(50))


def test_encode_header_holds_parameters():
    bf = BloomFilter(100, 0.01)
    data = bf.encode()
    expected, rate, num_bits, num_hashes = struct.unpack("<QdQQ", data[:32])
    assert (expected, rate) == (100, 0.01)
    assert (num_bits, num_hashes) == (bf.num_bits, bf.num_hashes)
    assert len(data) == 32 + (bf.num_bits + 7) // 8


def test_decode_round_trip():
    bf = BloomFilter(200, 0.02)
    for k in _keys(200):
        bf.add(k)
    restored = BloomFilter.decode(bf.encode())
    assert restored.encode() == bf.encode()
    assert all(restored.possibly_contains(k) for k in _keys(200))
    assert restored.num_hashes == bf.num_hashes


def test_decode_truncated_raises():
    bf = BloomFilter(100, 0.01)
    with pytest.raises(ValueError):
        BloomFilter.decode(bf.encode()[:20])
    with pytest.raises(ValueError):
        BloomFilter.decode(bf.encode()[:40])


@pytest.mark.parametrize("n, p", [(0, 0.01), (10, 0.0), (10, 1.0)])
def test_invalid_parameters(n, p):
    with pytest.raises(ValueError):
        BloomFilter(n, p)