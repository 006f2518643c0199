import struct
from typing import Iterator

Key = bytes | bytearray | memoryview | str | int

MASK32 = 0xFFFFFFFF
MASK64 = 0xFFFFFFFFFFFFFFFF

# Seed for every filter hash. Changing it changes every bit position, so
# filters already on disk would stop matching their own keys.
BLOOM_SEED = 0xBC9F1D34

_MULTIPLIER = 0xC6A4A793
_TAIL_SHIFT = 24


def murmur_hash(data: bytes | bytearray | memoryview, seed: int) -> int:
    """
    32-bit seeded hash, similar to Murmur.

    Words are read 4 bytes at a time in little-endian order. All arithmetic
    wraps at 32 bits so results match filters written by other
    implementations of the same format.

    Args:
        data: Raw bytes to hash (may contain zero bytes)
        seed: 32-bit seed

    Returns:
        Unsigned 32-bit hash value
    """
    data = bytes(data)
    n = len(data)
    h = (seed ^ (n * _MULTIPLIER)) & MASK32

    limit = n - (n % 4)
    for (word,) in struct.iter_unpack("<I", data[:limit]):
        h = ((h + word) * _MULTIPLIER) & MASK32
        h ^= h >> 16

    remaining = n - limit
    if remaining:
        if remaining == 3:
            h += data[limit + 2] << 16
        if remaining >= 2:
            h += data[limit + 1] << 8
        h += data[limit]
        h = (h * _MULTIPLIER) & MASK32
        h ^= h >> _TAIL_SHIFT

    return h


def key_to_bytes(key: Key) -> bytes:
    """Byte representation hashed for a key: uint64 keys use 8 bytes LE."""
    if isinstance(key, int):
        return struct.pack("<Q", key & MASK64)
    if isinstance(key, str):
        return key.encode("utf-8")
    return bytes(key)


def bloom_hash(key: Key) -> int:
    return murmur_hash(key_to_bytes(key), BLOOM_SEED)


def rotate_right(h: int, shift: int) -> int:
    return ((h >> shift) | (h << (32 - shift))) & MASK32


def probe_positions(key: Key, num_probes: int, total_bits: int) -> Iterator[int]:
    """
    Yield the bit positions probed for a key.

    Uses double hashing [Kirsch, Mitzenmacher 2006]: the second hash is the
    first one rotated right by 17 bits, and each probe adds it with 32-bit
    wraparound.
    """
    h = bloom_hash(key)
    delta = rotate_right(h, 17)
    for _ in range(num_probes):
        yield h % total_bits
        h = (h + delta) & MASK32
