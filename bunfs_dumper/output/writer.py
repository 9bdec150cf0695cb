"""
Bundle writer - persists extracted modules and the manifest.
"""

from pathlib import Path
from typing import List, Optional, Tuple, Union, TYPE_CHECKING

from ..bundle.structures import ModuleArtifact, StandaloneBundle
from .manifest import Manifest, ManifestEntry, MANIFEST_FILENAME, EXEC_ARGV_FILENAME
from .paths import UsedPaths, candidate_path, ensure_inside

if TYPE_CHECKING:
    from ..config import Config

SOURCEMAP_SUFFIX = ".map"
BYTECODE_SUFFIX = ".bytecode.bin"


class BundleWriter:
    """
    Writes a parsed bundle to an output directory.

    Files are written in module table order. The first failing write
    aborts the run; files already written are left in place.
    """

    def __init__(self, config: Optional['Config'] = None):
        """
        Initialize the writer.

        Args:
            config: Configuration options (defaults when None)
        """
        if config is None:
            from ..config import Config
            config = Config()
        self.config = config

    def write(self, bundle: StandaloneBundle, output_dir: Union[str, Path]) -> Manifest:
        """
        Write every module, the exec argv file and metadata.json.

        All output paths are resolved and checked before the first file is
        written. Module files are claimed before sidecar files, so a
        ``.map`` or ``.bytecode.bin`` sidecar is the one renamed when it
        collides with a module.

        Args:
            bundle: Parsed bundle
            output_dir: Output directory path

        Returns:
            The manifest that was written
        """
        root = Path(output_dir).resolve()
        used_paths = UsedPaths(reserved=(MANIFEST_FILENAME, EXEC_ARGV_FILENAME))

        candidates = [candidate_path(m.original_path, m.loader, m.index) for m in bundle.modules]
        for candidate in candidates:
            used_paths.reserve_parents(candidate)
        for module, candidate in zip(bundle.modules, candidates):
            module.relative_path = used_paths.claim(candidate)

        manifest = Manifest(
            entry_point_id=bundle.entry_point_id,
            compile_exec_argv=bundle.compile_exec_argv,
        )
        planned = []
        for module in bundle.modules:
            entry = self._entry(module)
            if module.sourcemap is not None and self.config.write_sourcemaps:
                entry.sourcemap_path = used_paths.claim(module.relative_path + SOURCEMAP_SUFFIX)
            if module.bytecode is not None and self.config.write_bytecode:
                entry.bytecode_path = used_paths.claim(module.relative_path + BYTECODE_SUFFIX)
            manifest.modules.append(entry)
            planned.append((module, self._targets(root, entry)))

        root.mkdir(parents=True, exist_ok=True)
        for module, targets in planned:
            self._write_module(module, *targets)

        if bundle.compile_exec_argv and self.config.write_exec_argv:
            (root / EXEC_ARGV_FILENAME).write_text(bundle.compile_exec_argv + "\n", encoding='utf-8')

        manifest.save(root / MANIFEST_FILENAME)
        return manifest

    @staticmethod
    def _targets(root: Path, entry: ManifestEntry) -> Tuple[Path, Optional[Path], Optional[Path]]:
        target = ensure_inside(root, entry.relative_path)
        sourcemap = ensure_inside(root, entry.sourcemap_path) if entry.sourcemap_path else None
        bytecode = ensure_inside(root, entry.bytecode_path) if entry.bytecode_path else None
        return target, sourcemap, bytecode

    def _write_module(
        self,
        module: ModuleArtifact,
        target: Path,
        sourcemap_target: Optional[Path],
        bytecode_target: Optional[Path],
    ) -> None:
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(module.contents)

        if sourcemap_target is not None:
            sourcemap_target.write_bytes(module.sourcemap)

        if bytecode_target is not None:
            bytecode_target.write_bytes(module.bytecode)

        if self.config.verbose:
            print(f"  {module.relative_path} ({len(module.contents):,} bytes)")

    @staticmethod
    def _entry(module: ModuleArtifact) -> ManifestEntry:
        return ManifestEntry(
            index=module.index,
            original_path=module.original_path,
            relative_path=module.relative_path or "",
            loader=module.loader,
            encoding=module.encoding,
            module_format=module.module_format,
            side=module.side,
            has_sourcemap=module.sourcemap is not None,
            has_bytecode=module.bytecode is not None,
        )


def write_bundle(
    artifacts: List[ModuleArtifact],
    entry_point_id: int,
    argv: str,
    output_dir: Union[str, Path],
    config: Optional['Config'] = None,
) -> Manifest:
    """
    Write modules and the manifest to ``output_dir``.

    Args:
        artifacts: Decoded modules in table order
        entry_point_id: Entry point index from the offset table
        argv: Embedded compile exec argv
        output_dir: Output directory path
        config: Configuration options

    Returns:
        The manifest that was written
    """
    bundle = StandaloneBundle(modules=artifacts, entry_point_id=entry_point_id, compile_exec_argv=argv)
    return BundleWriter(config).write(bundle, output_dir)
