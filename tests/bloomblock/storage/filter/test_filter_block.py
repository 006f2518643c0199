"""Tests for filter block building, reading and framing."""

import io
import struct

import pytest
from bloomblock.core.errors import FilterBlockCorruptionError
from bloomblock.storage.filter import (
    BloomFilterPolicy,
    FilterBlock,
    FilterBlockBuilder,
    FilterBlockReader,
)


@pytest.fixture
def policy():
    return BloomFilterPolicy(10)


class TestFilterBlockBuilderValid:
    """Tests for building and reading filter blocks."""

    def test_empty_builder(self, policy):
        """Test a block with no filters matches every lookup."""
        block = FilterBlockBuilder(policy).finish()

        assert block.contents == b"\x00\x00\x00\x00\x0b"

        reader = FilterBlockReader(policy, block)
        assert reader.filter_count == 0
        assert reader.base_lg == 11
        assert reader.key_may_match(0, b"foo")
        assert reader.key_may_match(100000, b"foo")

    def test_single_chunk(self, policy):
        """Test data blocks within one 2KB range share a single filter."""
        builder = FilterBlockBuilder(policy)
        builder.start_block(100)
        builder.add_key(b"foo")
        builder.add_key(b"bar")
        builder.add_key(b"box")
        builder.start_block(200)
        builder.add_key(b"box")
        builder.start_block(300)
        builder.add_key(b"hello")
        block = builder.finish()

        reader = FilterBlockReader(policy, block)
        assert reader.filter_count == 1
        assert reader.key_may_match(100, b"foo")
        assert reader.key_may_match(100, b"bar")
        assert reader.key_may_match(100, b"box")
        assert reader.key_may_match(100, b"hello")
        assert reader.key_may_match(100, b"foo")
        assert not reader.key_may_match(100, b"missing")
        assert not reader.key_may_match(100, b"other")

    def test_multi_chunk(self, policy):
        """Test each 2KB range of block offsets gets its own filter."""
        builder = FilterBlockBuilder(policy)

        # First filter
        builder.start_block(0)
        builder.add_key(b"foo")
        builder.start_block(2000)
        builder.add_key(b"bar")

        # Second filter
        builder.start_block(3100)
        builder.add_key(b"box")

        # Third filter is empty

        # Last filter
        builder.start_block(9000)
        builder.add_key(b"box")
        builder.add_key(b"hello")

        reader = FilterBlockReader(policy, builder.finish())
        assert reader.filter_count == 5

        # Check first filter
        assert reader.key_may_match(0, b"foo")
        assert reader.key_may_match(2000, b"bar")
        assert not reader.key_may_match(0, b"box")
        assert not reader.key_may_match(0, b"hello")

        # Check second filter
        assert reader.key_may_match(3100, b"box")
        assert not reader.key_may_match(3100, b"foo")
        assert not reader.key_may_match(3100, b"bar")
        assert not reader.key_may_match(3100, b"hello")

        # Check third filter (empty)
        assert not reader.key_may_match(4100, b"foo")
        assert not reader.key_may_match(4100, b"bar")
        assert not reader.key_may_match(4100, b"box")
        assert not reader.key_may_match(4100, b"hello")

        # Check last filter
        assert reader.key_may_match(9000, b"box")
        assert reader.key_may_match(9000, b"hello")
        assert not reader.key_may_match(9000, b"foo")
        assert not reader.key_may_match(9000, b"bar")

        # Past the last filter
        assert reader.key_may_match(20000, b"anything")

    def test_filters_embed_policy_format(self, policy):
        """Test each stored filter is a plain serialized policy filter."""
        builder = FilterBlockBuilder(policy)
        builder.start_block(0)
        builder.add_key(b"hello")
        builder.add_key(b"world")
        contents = builder.finish().contents

        assert contents[:9] == policy.build([b"hello", b"world"])
        # offset[0] = 0, array offset = 9, base_lg = 11
        assert contents[9:] == struct.pack("<IIB", 0, 9, 11)

    def test_reader_uses_other_policy_settings(self, policy):
        """Test a reader configured differently still finds written keys."""
        builder = FilterBlockBuilder(BloomFilterPolicy(20), base_lg=12)
        builder.start_block(0)
        keys = [f"key{i}".encode() for i in range(200)]
        for key in keys:
            builder.add_key(key)

        reader = FilterBlockReader(BloomFilterPolicy(4), builder.finish().contents)
        assert reader.base_lg == 12
        for key in keys:
            assert reader.key_may_match(4000, key)


class TestFilterBlockBuilderInvalid:
    """Tests for builder misuse and malformed contents."""

    def test_block_offset_going_backwards(self, policy):
        builder = FilterBlockBuilder(policy)
        builder.start_block(5000)

        with pytest.raises(ValueError, match="precedes"):
            builder.start_block(100)

    @pytest.mark.parametrize("base_lg", [-1, 31, 300])
    def test_base_lg_out_of_range(self, policy, base_lg):
        """Test an unencodable base_lg is rejected before any key is added."""
        with pytest.raises(ValueError, match="base_lg must be in"):
            FilterBlockBuilder(policy, base_lg=base_lg)

    @pytest.mark.parametrize("base_lg", [0, 30])
    def test_base_lg_bounds_accepted(self, policy, base_lg):
        builder = FilterBlockBuilder(policy, base_lg=base_lg)
        builder.start_block(0)
        builder.add_key(b"a")

        reader = FilterBlockReader(policy, builder.finish())
        assert reader.base_lg == base_lg
        assert reader.key_may_match(0, b"a")

    def test_negative_block_offset_matches_everything(self, policy):
        """Test a negative block offset never indexes before the offset array."""
        builder = FilterBlockBuilder(policy)
        builder.start_block(0)
        builder.add_key(b"foo")
        reader = FilterBlockReader(policy, builder.finish())

        assert not reader.key_may_match(0, b"missing")
        assert reader.key_may_match(-1, b"missing")
        assert reader.key_may_match(-4096, b"missing")

    @pytest.mark.parametrize("contents", [b"", b"\x0b", b"\x00\x00\x00\x0b"])
    def test_short_contents_match_everything(self, policy, contents):
        """Test contents shorter than the trailer are tolerated."""
        reader = FilterBlockReader(policy, contents)

        assert reader.filter_count == 0
        assert reader.key_may_match(0, b"foo")

    def test_array_offset_past_end_matches_everything(self, policy):
        """Test a corrupt offset-array pointer is tolerated."""
        contents = bytes(9) + struct.pack("<IB", 1000, 11)
        reader = FilterBlockReader(policy, contents)

        assert reader.filter_count == 0
        assert reader.key_may_match(0, b"foo")

    def test_bad_filter_offsets_match_everything(self, policy):
        """Test filter offsets pointing past the offset array are tolerated."""
        contents = bytes(9) + struct.pack("<IIB", 500, 9, 11)
        reader = FilterBlockReader(policy, contents)

        assert reader.filter_count == 1
        assert reader.key_may_match(0, b"foo")


class TestFilterBlockFraming:
    """Tests for the checksummed on-disk framing."""

    def _block(self, policy):
        builder = FilterBlockBuilder(policy)
        builder.start_block(0)
        builder.add_key(b"hello")
        return builder.finish()

    def test_bytes_roundtrip(self, policy):
        block = self._block(policy)
        data = block.to_bytes()

        assert len(data) == block.size
        assert FilterBlock.from_bytes(data) == block

    def test_file_roundtrip(self, policy):
        """Test reading a filter block from the middle of a file."""
        block = self._block(policy)
        f = io.BytesIO(b"data-blocks" + block.to_bytes() + b"footer")
        f.seek(len(b"data-blocks"))

        restored = FilterBlock.from_file(f)

        assert restored == block
        assert f.read() == b"footer"
        assert FilterBlockReader(policy, restored).key_may_match(0, b"hello")

    def test_checksum_mismatch_detection(self, policy):
        """Test that corrupted filter bits are detected via xxh32."""
        data = bytearray(self._block(policy).to_bytes())
        data[5] ^= 0xFF

        with pytest.raises(FilterBlockCorruptionError, match="checksum mismatch"):
            FilterBlock.from_bytes(bytes(data))

        with pytest.raises(FilterBlockCorruptionError, match="checksum mismatch"):
            FilterBlock.from_file(io.BytesIO(bytes(data)))

    def test_skip_verification(self, policy):
        """Test verify=False loads corrupted bytes without checking."""
        data = bytearray(self._block(policy).to_bytes())
        data[-1] ^= 0xFF

        block = FilterBlock.from_bytes(bytes(data), verify=False)
        assert block == self._block(policy)

    def test_truncated_bytes(self, policy):
        data = self._block(policy).to_bytes()

        with pytest.raises(FilterBlockCorruptionError, match="size mismatch"):
            FilterBlock.from_bytes(data[:-1])

        with pytest.raises(FilterBlockCorruptionError, match="too short"):
            FilterBlock.from_bytes(b"\x00\x00")

    def test_truncated_file(self, policy):
        data = self._block(policy).to_bytes()

        with pytest.raises(FilterBlockCorruptionError, match="Unexpected end of file"):
            FilterBlock.from_file(io.BytesIO(data[:-2]))

    def test_corruption_error_is_value_error(self):
        assert issubclass(FilterBlockCorruptionError, ValueError)
