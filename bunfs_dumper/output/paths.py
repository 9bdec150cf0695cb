"""
Path reconstruction for extracted modules.

Maps a module's virtual path inside the Bun filesystem to a safe,
collision-free path relative to the output directory.
"""

import os
import re
from pathlib import Path
from typing import Dict, Iterable, Set, Union

from ..bundle.structures import loader_extension
from ..errors import PathSafetyError

# Virtual roots used by different Bun versions. Every matching prefix is
# stripped once, in this order.
VIRTUAL_ROOT_PREFIXES = [
    re.compile(r'^B:/~BUN/root/', re.IGNORECASE),
    re.compile(r'^[A-Z]:/~BUN/root/', re.IGNORECASE),
    re.compile(r'^/\$bunfs/root/', re.IGNORECASE),
    re.compile(r'^B:/~BUN/', re.IGNORECASE),
    re.compile(r'^[A-Z]:/~BUN/', re.IGNORECASE),
    re.compile(r'^/\$bunfs/', re.IGNORECASE),
    re.compile(r'^\./+'),
    re.compile(r'^root/', re.IGNORECASE),
    re.compile(r'^/root/', re.IGNORECASE),
]

ILLEGAL_CHARS = re.compile(r'[:*?"<>|]')
LEADING_DOTS = re.compile(r'^\.+')
LEADING_SEPARATORS = re.compile(r'^[/\\]+')
SEPARATORS = re.compile(r'[\\/]+')


class UsedPaths:
    """
    Case-insensitive table of relative paths already handed out in one run.

    Keys are lower-cased paths; values count how many times the path was
    requested. Directories registered with ``reserve_parents`` are never
    handed out as file paths.
    """

    def __init__(self, reserved: Iterable[str] = ()):
        self._counts: Dict[str, int] = {}
        self._directories: Set[str] = set()
        for path in reserved:
            self._counts[path.lower()] = 1

    def _taken(self, key: str) -> bool:
        return key in self._counts or key in self._directories

    def reserve_parents(self, path: str) -> None:
        """Mark every parent directory of ``path`` as unavailable for files."""
        parent = os.path.dirname(path)
        while parent:
            self._directories.add(parent.lower())
            parent = os.path.dirname(parent)

    def claim(self, path: str) -> str:
        """
        Reserve ``path``, or a numbered variant of it if already taken.

        Returns:
            The path actually reserved (``name.N.ext`` on collision)
        """
        key = path.lower()
        if not self._taken(key):
            self._counts[key] = 1
            return path

        base, ext = os.path.splitext(path)
        count = self._counts.get(key, 1)
        while True:
            count += 1
            candidate = f"{base}.{count}{ext}"
            if not self._taken(candidate.lower()):
                break
        self._counts[key] = count
        self._counts[candidate.lower()] = 1
        return candidate


def sanitize_module_path(original: str) -> str:
    """
    Turn a virtual path into a relative, '/'-separated path.

    Args:
        original: Path as stored in the module table

    Returns:
        The sanitized path, possibly empty
    """
    rel = original.replace('\x00', '')

    for prefix in VIRTUAL_ROOT_PREFIXES:
        rel = prefix.sub('', rel, count=1)

    rel = ILLEGAL_CHARS.sub('_', rel)
    rel = rel.replace('\r', '')
    rel = rel.replace('\\', '/')
    rel = LEADING_DOTS.sub('', rel)

    parts = [part for part in rel.split('/') if part not in ('', '..')]
    return '/'.join(parts)


def fallback_name(index: int, loader: int) -> str:
    """Get the synthetic name used when a module has no usable path."""
    return f"module-{index:04d}{loader_extension(loader)}"


def candidate_path(virtual_path: str, loader: int, index: int) -> str:
    """
    Get the unclaimed output path of one module.

    Args:
        virtual_path: Module path from the bundle (may be empty)
        loader: Loader tag, used for the fallback extension
        index: Module index, used for the fallback name

    Returns:
        A relative path joined with the host separator
    """
    candidate = sanitize_module_path(virtual_path) if virtual_path else ''
    candidate = LEADING_SEPARATORS.sub('', candidate)
    if not candidate or os.path.isabs(candidate):
        candidate = fallback_name(index, loader)

    parts = [part for part in SEPARATORS.split(candidate) if part]
    return os.path.join(*parts) if parts else fallback_name(index, loader)


def resolve_path(virtual_path: str, loader: int, index: int, used_paths: UsedPaths) -> str:
    """Choose the output path of one module and claim it in ``used_paths``."""
    return used_paths.claim(candidate_path(virtual_path, loader, index))


def ensure_inside(output_dir: Union[str, Path], relative_path: str) -> Path:
    """
    Join a relative path to the output directory and check it stays inside.

    Args:
        output_dir: Output directory
        relative_path: Path produced by resolve_path

    Returns:
        The resolved absolute target path

    Raises:
        PathSafetyError: If the target escapes the output directory
    """
    root = Path(output_dir).resolve()
    target = (root / relative_path).resolve()
    if target != root and root not in target.parents:
        raise PathSafetyError(f"Module path escapes the output directory: {target}")
    return target
