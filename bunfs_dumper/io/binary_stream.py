"""
Bounds-checked binary stream reader.

This module provides a BinaryStream class that reads little-endian
integers and byte ranges from a window of an in-memory buffer. Windows
share the underlying buffer, so slicing a payload never copies it.
"""

import struct
from typing import Optional, Union

from ..errors import BoundsError
from ..utils.pattern_search import find_last


class BinaryStream:
    """
    Binary stream reader over the window ``data[start:end]``.

    All offsets (including ``position``) are relative to the start of the
    window. Every read is checked against the window length and raises
    BoundsError instead of returning short data.

    Attributes:
        position: Current read offset within the window
    """

    def __init__(self, data: Union[bytes, bytearray, memoryview], start: int = 0, end: Optional[int] = None):
        """
        Initialize a BinaryStream.

        Args:
            data: Backing buffer
            start: Absolute offset of the window start in ``data``
            end: Absolute offset of the window end (exclusive), defaults to len(data)
        """
        if not isinstance(data, bytes):
            data = bytes(data)
        if end is None:
            end = len(data)
        if start < 0 or end < start or end > len(data):
            raise BoundsError(f"Invalid stream window [{start}, {end}) over {len(data)} bytes")

        self._data = data
        self._start = start
        self._end = end
        self.position: int = 0

    # ========== Window ==========

    @property
    def length(self) -> int:
        """Get window length."""
        return self._end - self._start

    def __len__(self) -> int:
        return self.length

    def window(self, offset: int, length: int, what: str = "window") -> 'BinaryStream':
        """
        Create a sub-stream sharing this stream's buffer.

        Args:
            offset: Start of the sub-window, relative to this window
            length: Length of the sub-window
            what: Field name used in the error message

        Returns:
            A new BinaryStream positioned at 0
        """
        self._check(offset, length, what)
        return BinaryStream(self._data, self._start + offset, self._start + offset + length)

    def view(self, offset: int = 0, length: Optional[int] = None, what: str = "range") -> memoryview:
        """
        Get a zero-copy view of a byte range.

        Args:
            offset: Start of the range, relative to this window
            length: Range length, defaults to the rest of the window
            what: Field name used in the error message

        Returns:
            A read-only memoryview into the backing buffer
        """
        if length is None:
            length = self.length - offset
        self._check(offset, length, what)
        begin = self._start + offset
        return memoryview(self._data)[begin:begin + length]

    def rfind(self, pattern: bytes) -> int:
        """Find the last occurrence of ``pattern`` in the window, or -1."""
        return find_last(self._data, pattern, self._start, self._end)

    def _check(self, offset: int, length: int, what: str) -> None:
        if offset < 0 or length < 0 or offset + length > self.length:
            raise BoundsError(
                f"{what} out of range: offset 0x{offset:x} + length 0x{length:x} "
                f"exceeds 0x{self.length:x} bytes"
            )

    # ========== Primitive Readers ==========

    def _unpack(self, fmt: str, size: int, what: str) -> int:
        self._check(self.position, size, what)
        value = struct.unpack_from(fmt, self._data, self._start + self.position)[0]
        self.position += size
        return value

    def read_bytes(self, count: int, what: str = "bytes") -> bytes:
        """Read raw bytes."""
        data = self.view(self.position, count, what).tobytes()
        self.position += count
        return data

    def read_byte(self, what: str = "u8") -> int:
        """Read an unsigned byte."""
        return self._unpack('<B', 1, what)

    def read_uint16(self, what: str = "u16") -> int:
        """Read an unsigned 16-bit integer."""
        return self._unpack('<H', 2, what)

    def read_uint32(self, what: str = "u32") -> int:
        """Read an unsigned 32-bit integer."""
        return self._unpack('<I', 4, what)

    def read_uint64(self, what: str = "u64") -> int:
        """Read an unsigned 64-bit integer."""
        return self._unpack('<Q', 8, what)
