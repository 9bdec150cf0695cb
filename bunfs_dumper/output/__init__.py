"""
Output generation module.
"""

from .manifest import Manifest, ManifestEntry
from .paths import UsedPaths, candidate_path, resolve_path, sanitize_module_path, ensure_inside
from .writer import BundleWriter, write_bundle

__all__ = [
    'Manifest', 'ManifestEntry', 'UsedPaths', 'candidate_path', 'resolve_path', 'sanitize_module_path',
    'ensure_inside', 'BundleWriter', 'write_bundle',
]
