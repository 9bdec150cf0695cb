"""
Standalone module graph decoding.
"""

from .parser import BundleParser, parse
from .structures import (
    ModuleArtifact,
    StandaloneBundle,
    StringPointer,
    TRAILER,
    loader_extension,
)

__all__ = ['BundleParser', 'parse', 'ModuleArtifact', 'StandaloneBundle', 'StringPointer', 'TRAILER', 'loader_extension']
