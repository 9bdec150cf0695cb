"""
Manifest (metadata.json) output structures.

These structures define the JSON summary written next to the extracted
modules.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Dict, Any, Optional, Union
import json

MANIFEST_FILENAME = "metadata.json"
EXEC_ARGV_FILENAME = "__compile_exec_argv.txt"


@dataclass
class ManifestEntry:
    """Summary of one extracted module."""
    index: int = 0
    original_path: str = ""
    relative_path: str = ""
    loader: int = 0
    encoding: int = 0
    module_format: int = 0
    side: int = 0
    has_sourcemap: bool = False
    has_bytecode: bool = False
    # Sidecar files actually written; None when skipped
    sourcemap_path: Optional[str] = None
    bytecode_path: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "index": self.index,
            "originalPath": self.original_path,
            "relativePath": self.relative_path,
            "loader": self.loader,
            "encoding": self.encoding,
            "moduleFormat": self.module_format,
            "side": self.side,
            "hasSourcemap": self.has_sourcemap,
            "hasBytecode": self.has_bytecode,
            "sourcemapPath": self.sourcemap_path,
            "bytecodePath": self.bytecode_path,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ManifestEntry':
        return cls(
            index=data["index"],
            original_path=data["originalPath"],
            relative_path=data["relativePath"],
            loader=data["loader"],
            encoding=data["encoding"],
            module_format=data["moduleFormat"],
            side=data["side"],
            has_sourcemap=data["hasSourcemap"],
            has_bytecode=data["hasBytecode"],
            sourcemap_path=data.get("sourcemapPath"),
            bytecode_path=data.get("bytecodePath"),
        )


@dataclass
class Manifest:
    """
    Complete metadata.json structure.

    Modules are listed in module table order.
    """
    modules: List[ManifestEntry] = field(default_factory=list)
    entry_point_id: int = 0
    compile_exec_argv: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "modules": [m.to_dict() for m in self.modules],
            "entryPointId": self.entry_point_id,
            "compileExecArgv": self.compile_exec_argv,
        }

    def to_json(self, indent: int = 2) -> str:
        """Convert to JSON string."""
        return json.dumps(self.to_dict(), indent=indent, ensure_ascii=False)

    def save(self, path: Union[str, Path]) -> None:
        """Save to file."""
        with open(path, 'w', encoding='utf-8') as f:
            f.write(self.to_json())

    @classmethod
    def load(cls, path: Union[str, Path]) -> 'Manifest':
        """Read a manifest written by save()."""
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
        return cls(
            modules=[ManifestEntry.from_dict(m) for m in data["modules"]],
            entry_point_id=data["entryPointId"],
            compile_exec_argv=data["compileExecArgv"],
        )
