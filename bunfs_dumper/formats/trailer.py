"""
Trailing blob locator.

Some executables carry the module graph appended to the end of the file
instead of in a section:

    [ executable ... | module graph ... trailer | total length (u64) ]
"""

import struct
import sys

from ..bundle.structures import OFFSETS_SIZE, TRAILER
from ..errors import InputFormatError
from ..utils.pattern_search import find_last
from .payload import RawPayload, SOURCE_TRAILER

LENGTH_FIELD_SIZE = 8


def extract_trailing_blob(data: bytes) -> RawPayload:
    """
    Locate the embedded payload appended to the end of the file.

    Args:
        data: Whole executable contents

    Returns:
        The located payload

    Raises:
        InputFormatError: If no valid trailing blob is present
    """
    file_length = len(data)
    if file_length < len(TRAILER) + OFFSETS_SIZE + LENGTH_FIELD_SIZE:
        raise InputFormatError("File too small to carry a trailing Bun blob")

    if find_last(data, TRAILER) == -1:
        raise InputFormatError("No Bun trailer in file")

    total_length = struct.unpack_from('<Q', data, file_length - LENGTH_FIELD_SIZE)[0]
    if total_length == 0:
        raise InputFormatError("Trailing blob length is zero")
    if total_length > file_length or total_length > sys.maxsize:
        raise InputFormatError(f"Trailing blob length 0x{total_length:x} exceeds file size")

    start = file_length - LENGTH_FIELD_SIZE - total_length
    if start < 0:
        raise InputFormatError(f"Trailing blob of 0x{total_length:x} bytes starts before the file")

    end = file_length - LENGTH_FIELD_SIZE
    if find_last(data, TRAILER, start, end) == -1:
        raise InputFormatError("Trailing blob does not contain the Bun trailer")

    return RawPayload(data, start, end, SOURCE_TRAILER)
