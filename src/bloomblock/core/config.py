"""Configuration for bloom filters and filter blocks.

Defines the tunable parameters a storage engine passes to bloomblock.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, fields
from typing import TYPE_CHECKING, Any, BinaryIO, Mapping

from .errors import ConfigError

if TYPE_CHECKING:
    from ..storage.filter.BloomFilterPolicy import BloomFilterPolicy
    from ..storage.filter.FilterBlockBuilder import FilterBlockBuilder
    from ..storage.filter.models import FilterBlock

logger = logging.getLogger(__name__)

MAX_FILTER_BASE_LG = 30


@dataclass(slots=True, frozen=True)
class FilterConfig:
    """Configuration parameters for filter construction.

    Attributes:
        bits_per_key: Bit-array budget per key (10 gives ~1% false positives)
        filter_base_lg: log2 of the data-block offset range covered by one
            filter in a filter block (11 = one filter per 2KB)
        verify_checksums: Whether to check xxh32 checksums on load
    """

    bits_per_key: int = 10
    filter_base_lg: int = 11
    verify_checksums: bool = True

    def __post_init__(self) -> None:
        for name in ("bits_per_key", "filter_base_lg"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise ConfigError(f"{name} must be an int, got {value!r}")

        if not 0 <= self.filter_base_lg <= MAX_FILTER_BASE_LG:
            raise ConfigError(
                f"filter_base_lg must be in [0, {MAX_FILTER_BASE_LG}], "
                f"got {self.filter_base_lg}"
            )

        if self.bits_per_key < 1:
            logger.warning(
                "bits_per_key=%d builds minimum-size filters with a single probe",
                self.bits_per_key,
            )

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]) -> FilterConfig:
        """Build a config from a plain mapping, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(values) - known)
        if unknown:
            logger.warning("Ignoring unknown filter config keys: %s", ", ".join(unknown))
        return cls(**{k: v for k, v in values.items() if k in known})

    def make_policy(self) -> BloomFilterPolicy:
        from ..storage.filter.BloomFilterPolicy import BloomFilterPolicy

        return BloomFilterPolicy(self.bits_per_key)

    def make_block_builder(
        self, policy: BloomFilterPolicy | None = None
    ) -> FilterBlockBuilder:
        """Builder covering 2**filter_base_lg bytes of data blocks per filter."""
        from ..storage.filter.FilterBlockBuilder import FilterBlockBuilder

        if policy is None:
            policy = self.make_policy()
        return FilterBlockBuilder(policy, self.filter_base_lg)

    def load_filter_block(self, data: bytes) -> FilterBlock:
        """Parse serialized filter block bytes, honouring verify_checksums."""
        from ..storage.filter.models import FilterBlock

        return FilterBlock.from_bytes(data, verify=self.verify_checksums)

    def read_filter_block(self, f: BinaryIO) -> FilterBlock:
        """Read a filter block from file, honouring verify_checksums."""
        from ..storage.filter.models import FilterBlock

        return FilterBlock.from_file(f, verify=self.verify_checksums)
