"""
Executable container formats.

Supports:
- PE (Windows) - module graph stored in the ``.bun`` section
- Trailing blob - module graph appended to the end of the executable
"""

from .payload import RawPayload
from .pe import PE, extract_section_payload
from .trailer import extract_trailing_blob
from .locator import locate, STRATEGIES

__all__ = ['RawPayload', 'PE', 'extract_section_payload', 'extract_trailing_blob', 'locate', 'STRATEGIES']
