import logging
import struct

from .BloomFilterPolicy import BloomFilterPolicy
from .hashing import Key
from .models import FilterBlock

logger = logging.getLogger(__name__)


class FilterBlockReader:
    """
    Answers per-data-block membership queries from a filter block.

    Malformed contents are never fatal: lookups that cannot be answered
    report a possible match, so the caller falls back to reading the data
    block.

    Usage:
        reader = FilterBlockReader(policy, FilterBlock.from_file(f))
        if reader.key_may_match(block_offset, key):
            # Read the data block
    """

    # offset array start (4) + base_lg (1)
    TRAILER_SIZE = 5

    def __init__(self, policy: BloomFilterPolicy, block: FilterBlock | bytes):
        self.policy = policy
        self._data = block.contents if isinstance(block, FilterBlock) else bytes(block)
        self._offset = 0
        self._num = 0
        self._base_lg = 0

        n = len(self._data)
        if n < self.TRAILER_SIZE:
            logger.warning("Filter block too short (%d bytes), every key will match", n)
            return

        self._base_lg = self._data[n - 1]
        (array_offset,) = struct.unpack_from("<I", self._data, n - self.TRAILER_SIZE)
        if array_offset > n - self.TRAILER_SIZE:
            logger.warning(
                "Filter block offset array starts past the end (%d > %d), "
                "every key will match",
                array_offset,
                n - self.TRAILER_SIZE,
            )
            return

        self._offset = array_offset
        self._num = (n - self.TRAILER_SIZE - array_offset) // 4

    @property
    def base_lg(self) -> int:
        return self._base_lg

    @property
    def filter_count(self) -> int:
        return self._num

    def key_may_match(self, block_offset: int, key: Key) -> bool:
        index = block_offset >> self._base_lg
        if index < 0 or index >= self._num:
            # Errors are treated as potential matches
            return True

        # The word after the last filter offset is the array offset itself,
        # so every filter's limit is the next word.
        start, limit = struct.unpack_from("<II", self._data, self._offset + index * 4)

        if start == limit:
            # Empty filters do not match any keys
            return False
        if start > limit or limit > self._offset:
            return True

        return self.policy.maybe_contains(key, self._data[start:limit])
