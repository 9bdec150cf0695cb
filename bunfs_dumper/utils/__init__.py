"""
Utility functions and classes.
"""

from .pattern_search import find_last
from .string_utils import decode_utf8_lenient, decode_ascii_null_terminated

__all__ = ['find_last', 'decode_utf8_lenient', 'decode_ascii_null_terminated']
