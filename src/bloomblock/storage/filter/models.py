from dataclasses import dataclass
import struct
import xxhash
from typing import ClassVar, BinaryIO

from bloomblock.core.errors import FilterBlockCorruptionError


def read_exact(f: BinaryIO, n: int, context: str = "") -> bytes:
    """
    Read exactly n bytes from file, raising if not enough data.

    Args:
        f: File object to read from
        n: Number of bytes to read
        context: Description for error message (e.g., "filter block header")

    Raises:
        FilterBlockCorruptionError: If fewer than n bytes are available
    """
    data = f.read(n)
    if len(data) < n:
        ctx = f" reading {context}" if context else ""
        raise FilterBlockCorruptionError(
            f"Unexpected end of file{ctx}: expected {n} bytes, got {len(data)}"
        )
    return data


@dataclass(slots=True)
class FilterBlock:
    """
    A self-describing, checksummed block of per-data-block filters.

    Filter block format on disk:
    ┌────────────────────┬─────────────────────────────┬──────────┐
    │ contents_size      │ contents                    │ xxh32    │
    │ (4 bytes, BE)      │ (variable)                  │ (4 bytes)│
    └────────────────────┴─────────────────────────────┴──────────┘

    Contents format (integers little-endian):
    ┌──────────┬─────┬────────────┬───────────┬─────┬──────────────┬─────────┐
    │ filter 0 │ ... │ filter N-1 │ offset 0  │ ... │ array offset │ base_lg │
    │ variable │     │ variable   │ u32       │     │ u32          │ u8      │
    └──────────┴─────┴────────────┴───────────┴─────┴──────────────┴─────────┘

    Filter i covers data blocks whose file offset o satisfies
    o >> base_lg == i.
    """

    HEADER_SIZE: ClassVar[int] = 4
    FOOTER_SIZE: ClassVar[int] = 4

    contents: bytes

    @property
    def size(self) -> int:
        """Total size on disk including header and footer."""
        return self.HEADER_SIZE + len(self.contents) + self.FOOTER_SIZE

    def to_bytes(self) -> bytes:
        """Serialize: header + contents + xxh32."""
        header = struct.pack(">I", len(self.contents))
        checksum = xxhash.xxh32(header + self.contents).intdigest()
        return header + self.contents + struct.pack(">I", checksum)

    @classmethod
    def from_bytes(cls, data: bytes, verify: bool = True) -> "FilterBlock":
        """
        Parse a serialized filter block.

        Raises:
            FilterBlockCorruptionError: If data is truncated or the checksum fails
        """
        if len(data) < cls.HEADER_SIZE + cls.FOOTER_SIZE:
            raise FilterBlockCorruptionError(
                f"Filter block too short: {len(data)} bytes"
            )

        header = bytes(data[: cls.HEADER_SIZE])
        (contents_size,) = struct.unpack(">I", header)
        expected = cls.HEADER_SIZE + contents_size + cls.FOOTER_SIZE
        if len(data) != expected:
            raise FilterBlockCorruptionError(
                f"Filter block size mismatch: expected {expected} bytes, got {len(data)}"
            )

        contents = bytes(data[cls.HEADER_SIZE : cls.HEADER_SIZE + contents_size])
        (stored_checksum,) = struct.unpack(">I", data[-cls.FOOTER_SIZE :])
        if verify:
            cls._verify(header, contents, stored_checksum)

        return cls(contents=contents)

    @classmethod
    def from_file(cls, f: BinaryIO, verify: bool = True) -> "FilterBlock":
        """
        Read a filter block from file at current position.

        Raises:
            FilterBlockCorruptionError: If the file is truncated or the checksum fails
        """
        header = read_exact(f, cls.HEADER_SIZE, "filter block header")
        (contents_size,) = struct.unpack(">I", header)

        contents = read_exact(f, contents_size, "filter block contents")
        checksum_bytes = read_exact(f, cls.FOOTER_SIZE, "filter block checksum")
        (stored_checksum,) = struct.unpack(">I", checksum_bytes)
        if verify:
            cls._verify(header, contents, stored_checksum)

        return cls(contents=contents)

    @staticmethod
    def _verify(header: bytes, contents: bytes, stored_checksum: int) -> None:
        computed_checksum = xxhash.xxh32(header + contents).intdigest()
        if stored_checksum != computed_checksum:
            raise FilterBlockCorruptionError(
                f"Filter block checksum mismatch: "
                f"stored={stored_checksum:#x}, computed={computed_checksum:#x}"
            )
