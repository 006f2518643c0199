import logging
import struct

from .BloomFilterPolicy import BloomFilterPolicy
from .hashing import Key
from .models import FilterBlock

logger = logging.getLogger(__name__)


class FilterBlockBuilder:
    """
    Builds the filter block for one SSTable.

    Calls must follow the order the data blocks are written:
        (start_block add_key*)* finish

    Example:
        builder = FilterBlockBuilder(policy)
        for offset, keys in data_blocks:
            builder.start_block(offset)
            for key in keys:
                builder.add_key(key)
        block_bytes = builder.finish().to_bytes()
    """

    DEFAULT_BASE_LG = 11  # One filter per 2KB of data-block offsets
    MAX_BASE_LG = 30

    def __init__(self, policy: BloomFilterPolicy, base_lg: int = DEFAULT_BASE_LG):
        if not 0 <= base_lg <= self.MAX_BASE_LG:
            raise ValueError(
                f"base_lg must be in [0, {self.MAX_BASE_LG}], got {base_lg}"
            )
        self.policy = policy
        self.base_lg = base_lg
        self._keys: list[Key] = []
        self._result = bytearray()
        self._filter_offsets: list[int] = []

    def start_block(self, block_offset: int) -> None:
        filter_index = block_offset >> self.base_lg
        if filter_index < len(self._filter_offsets):
            raise ValueError(
                f"Block offset {block_offset} precedes an already built filter "
                f"(filter {filter_index} of {len(self._filter_offsets)})"
            )
        while filter_index > len(self._filter_offsets):
            self._generate_filter()

    def add_key(self, key: Key) -> None:
        self._keys.append(key)

    def finish(self) -> FilterBlock:
        if self._keys:
            self._generate_filter()

        # Append array of per-filter offsets
        array_offset = len(self._result)
        for offset in self._filter_offsets:
            self._result += struct.pack("<I", offset)

        self._result += struct.pack("<IB", array_offset, self.base_lg)

        logger.debug(
            "Built filter block: %d filters, %d bytes",
            len(self._filter_offsets),
            len(self._result),
        )
        return FilterBlock(contents=bytes(self._result))

    def _generate_filter(self) -> None:
        self._filter_offsets.append(len(self._result))
        if not self._keys:
            # Fast path if there are no keys for this filter
            return

        self.policy.build(self._keys, dst=self._result)
        self._keys = []
