"""
bunfs dumper
A tool for extracting the embedded filesystem of executables produced by
``bun build --compile``.
"""

__version__ = "0.1.0"
__author__ = "bunfs dumper contributors"

from .config import Config
from .errors import FormatError, InputFormatError, BoundsError, PathSafetyError
from .formats.locator import locate
from .bundle.parser import parse
from .output.writer import BundleWriter, write_bundle

__all__ = [
    'Config', 'FormatError', 'InputFormatError', 'BoundsError', 'PathSafetyError',
    'locate', 'parse', 'BundleWriter', 'write_bundle', '__version__',
]
