"""
Container locator.

Strategies are tried in order; the first one that returns a payload wins.
"""

from typing import Callable, List, Optional, Tuple

from ..errors import FormatError, InputFormatError
from .payload import RawPayload
from .pe import extract_section_payload
from .pe_structures import BUN_SECTION_NAME
from .trailer import extract_trailing_blob

Strategy = Callable[[bytes, str], RawPayload]


def _section_strategy(data: bytes, section_name: str) -> RawPayload:
    return extract_section_payload(data, section_name)


def _trailer_strategy(data: bytes, section_name: str) -> RawPayload:
    return extract_trailing_blob(data)


STRATEGIES: List[Tuple[str, Strategy]] = [
    ("PE section", _section_strategy),
    ("trailing blob", _trailer_strategy),
]


def locate(data: bytes, section_name: str = BUN_SECTION_NAME) -> RawPayload:
    """
    Find the embedded payload in an executable.

    Args:
        data: Whole executable contents
        section_name: PE section that holds the payload

    Returns:
        The located payload

    Raises:
        InputFormatError: If no strategy finds a payload
    """
    first_error: Optional[FormatError] = None
    for _, strategy in STRATEGIES:
        try:
            return strategy(data, section_name)
        except FormatError as e:
            if first_error is None:
                first_error = e

    raise InputFormatError(
        f"{first_error}; no trailing Bun blob was found either. "
        f"Make sure the file was produced by 'bun build --compile'."
    )
