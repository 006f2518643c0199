import logging
import math
from collections.abc import Sequence
from itertools import islice
from typing import Iterable

from .hashing import Key, probe_positions

logger = logging.getLogger(__name__)


class BloomFilterPolicy:
    """
    Builds and queries bloom filters at a fixed bits-per-key budget.

    False positives are possible, false negatives are not.
    Used to avoid unnecessary disk reads when a key definitely doesn't exist
    in a data block.

    Serialized filter format:
    ┌──────────────────────────────┬─────────────┐
    │ Bit array                    │ Probe count │
    │ ceil(bits / 8) bytes, >= 8   │ 1 byte      │
    └──────────────────────────────┴─────────────┘

    The probe count is stored with every filter, so a policy can read filters
    built with any other bits_per_key setting.

    Example:
        policy = BloomFilterPolicy(bits_per_key=10)
        data = policy.build([b"user:1", b"user:2"])
        if policy.maybe_contains(key, data):
            # Might exist, read the block
        else:
            # Definitely doesn't exist, skip the block
    """

    MIN_BITS = 64
    MAX_PROBES = 30

    __slots__ = ("_bits_per_key", "_num_probes")

    def __init__(self, bits_per_key: int = 10) -> None:
        # Rounding down reduces probing cost a little
        probes = math.floor(bits_per_key * math.log(2))
        num_probes = min(max(probes, 1), self.MAX_PROBES)
        if num_probes != probes:
            logger.debug(
                "Clamped probe count for bits_per_key=%s from %d to %d",
                bits_per_key,
                probes,
                num_probes,
            )

        self._bits_per_key = bits_per_key
        self._num_probes = num_probes

    @property
    def bits_per_key(self) -> int:
        return self._bits_per_key

    @property
    def num_probes(self) -> int:
        return self._num_probes

    def __repr__(self) -> str:
        return (
            f"BloomFilterPolicy(bits_per_key={self._bits_per_key}, "
            f"num_probes={self._num_probes})"
        )

    def filter_size(self, n: int) -> int:
        """Serialized size in bytes of a filter over n keys (probe byte included)."""
        bits = max(n * self._bits_per_key, self.MIN_BITS)
        return (bits + 7) // 8 + 1

    def build(
        self,
        keys: Iterable[Key],
        n: int | None = None,
        dst: bytearray | None = None,
    ) -> bytes:
        """
        Build a filter over keys.

        Args:
            keys: Byte string or uint64 keys, in order. Not retained.
            n: Number of keys to use (default: all of them). The bit array is
               sized from n.
            dst: Optional buffer; the filter is appended after its current end

        Returns:
            The serialized filter
        """
        if n is None:
            if not isinstance(keys, Sequence):
                keys = list(keys)
            n = len(keys)

        array = bytearray(self.filter_size(n) - 1)
        total_bits = len(array) * 8

        for key in islice(keys, n):
            for bitpos in probe_positions(key, self._num_probes, total_bits):
                array[bitpos // 8] |= 1 << (bitpos % 8)

        # Remember # of probes in the filter
        array.append(self._num_probes)

        if dst is not None:
            dst.extend(array)
        return bytes(array)

    def maybe_contains(self, key: Key, bloom_filter: bytes) -> bool:
        """
        Return False if key is definitely absent from bloom_filter.

        Never raises: filters shorter than 2 bytes match nothing, and a
        probe count above MAX_PROBES (reserved for future encodings)
        matches everything.
        """
        length = len(bloom_filter)
        if length < 2:
            return False

        # Use the encoded probe count, not our own, so that filters built
        # with different parameters read correctly.
        k = bloom_filter[-1]
        if k > self.MAX_PROBES:
            return True

        total_bits = (length - 1) * 8
        return all(
            bloom_filter[bitpos // 8] & (1 << (bitpos % 8))
            for bitpos in probe_positions(key, k, total_bits)
        )
