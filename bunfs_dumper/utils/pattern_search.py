"""
Byte pattern search utilities.
"""

from typing import Optional


def find_last(data: bytes, pattern: bytes, start: int = 0, end: Optional[int] = None) -> int:
    """
    Find the last occurrence of a pattern inside ``data[start:end]``.

    Args:
        data: Binary data to search
        pattern: Exact pattern to find
        start: First index of the searched window
        end: End of the searched window (exclusive)

    Returns:
        Index of the match relative to ``start``, or -1 if not found
    """
    if not pattern:
        return -1
    if end is None:
        end = len(data)
    if end - start < len(pattern):
        return -1

    index = data.rfind(pattern, start, end)
    if index == -1:
        return -1
    return index - start
