"""
Embedded payload located inside a host executable.
"""

from dataclasses import dataclass

from ..io.binary_stream import BinaryStream

SOURCE_SECTION = "section"
SOURCE_TRAILER = "trailer"


@dataclass(frozen=True)
class RawPayload:
    """
    The byte range ``data[start:end]`` of the host executable.

    Attributes:
        data: Whole executable contents
        start: Absolute offset of the first payload byte
        end: Absolute offset one past the last payload byte
        source: Which locator strategy found it
    """
    data: bytes
    start: int
    end: int
    source: str = SOURCE_SECTION

    def __len__(self) -> int:
        return self.end - self.start

    def stream(self) -> BinaryStream:
        """Get a bounds-checked reader over the payload (no copy)."""
        return BinaryStream(self.data, self.start, self.end)

    def tobytes(self) -> bytes:
        return self.data[self.start:self.end]
