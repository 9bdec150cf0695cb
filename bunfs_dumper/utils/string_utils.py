"""
String utility functions.
"""

from typing import Union

BytesLike = Union[bytes, bytearray, memoryview]


def decode_utf8_lenient(data: BytesLike) -> str:
    """
    Decode UTF-8 bytes, replacing malformed sequences instead of raising.

    A leading byte order mark is kept as U+FEFF.

    Args:
        data: Raw bytes

    Returns:
        The decoded string
    """
    return bytes(data).decode('utf-8', errors='replace')


def decode_ascii_null_terminated(data: BytesLike) -> str:
    """
    Decode a fixed-width, NUL-padded name field.

    Args:
        data: Raw field bytes (e.g. an 8-byte PE section name)

    Returns:
        Text up to the first NUL byte
    """
    raw = bytes(data)
    null_pos = raw.find(b'\x00')
    if null_pos != -1:
        raw = raw[:null_pos]
    return raw.decode('utf-8', errors='replace')


def to_camel_case(snake_str: str) -> str:
    """
    Convert snake_case to camelCase.

    Args:
        snake_str: String in snake_case

    Returns:
        String in camelCase
    """
    components = snake_str.split('_')
    return components[0] + ''.join(x.title() for x in components[1:])


def to_snake_case(camel_str: str) -> str:
    """
    Convert camelCase or PascalCase to snake_case.

    Args:
        camel_str: String in camelCase or PascalCase

    Returns:
        String in snake_case
    """
    result = []
    for i, char in enumerate(camel_str):
        if char.isupper() and i > 0:
            result.append('_')
        result.append(char.lower())
    return ''.join(result)
