"""
Standalone module graph structures.

Layout of the data ``bun build --compile`` embeds in an executable:

    [ module data ... | module table | offsets (32 bytes) | trailer ]

All pointers are (u32 offset, u32 length) pairs relative to the start of
the payload, truncated to ``OffsetTable.byte_count``.
"""

from dataclasses import dataclass
from typing import List, Optional


# Format constants
TRAILER = b"\n---- Bun! ----\n"
OFFSETS_SIZE = 32
MODULE_RECORD_SIZE = 40
LEGACY_MODULE_RECORD_SIZE = 36
MODULE_TAGS_OFFSET = 32

# Loader tags
LOADER_JSX = 0
LOADER_JS = 1
LOADER_TS = 2
LOADER_TSX = 3
LOADER_CSS = 4
LOADER_FILE = 5
LOADER_JSON = 6
LOADER_JSONC = 7
LOADER_TOML = 8
LOADER_WASM = 9
LOADER_NAPI = 10
LOADER_BASE64 = 11
LOADER_DATAURL = 12
LOADER_TEXT = 13
LOADER_SH = 14
LOADER_SQLITE = 15
LOADER_SQLITE_EMBEDDED = 16
LOADER_HTML = 17
LOADER_YAML = 18

DEFAULT_EXTENSION = ".bin"

LOADER_EXTENSIONS = {
    LOADER_JSX: ".jsx",
    LOADER_JS: ".js",
    LOADER_TS: ".ts",
    LOADER_TSX: ".tsx",
    LOADER_CSS: ".css",
    LOADER_FILE: DEFAULT_EXTENSION,
    LOADER_JSON: ".json",
    LOADER_JSONC: ".json",
    LOADER_TOML: ".toml",
    LOADER_WASM: ".wasm",
    LOADER_NAPI: ".node",
    LOADER_BASE64: ".txt",
    LOADER_DATAURL: ".txt",
    LOADER_TEXT: ".txt",
    LOADER_SH: ".sh",
    LOADER_SQLITE: ".sqlite",
    LOADER_SQLITE_EMBEDDED: ".sqlite",
    LOADER_HTML: ".html",
    LOADER_YAML: ".yaml",
}


def loader_extension(loader: int) -> str:
    """Get the fallback file extension for a loader tag."""
    return LOADER_EXTENSIONS.get(loader, DEFAULT_EXTENSION)


@dataclass(frozen=True)
class StringPointer:
    """Offset/length pair into the truncated payload."""
    offset: int = 0
    length: int = 0

    @property
    def end(self) -> int:
        return self.offset + self.length

    @property
    def is_empty(self) -> bool:
        return self.length == 0


@dataclass
class OffsetTable:
    """Fixed-size table located immediately before the trailer."""
    byte_count: int = 0
    modules_ptr: StringPointer = StringPointer()
    entry_point_id: int = 0
    compile_exec_argv_ptr: StringPointer = StringPointer()


@dataclass
class ModuleRecord:
    """One raw entry of the module table."""
    name: StringPointer = StringPointer()
    contents: StringPointer = StringPointer()
    sourcemap: StringPointer = StringPointer()
    bytecode: StringPointer = StringPointer()
    encoding: int = 0
    loader: int = 0
    module_format: int = 0
    side: int = 0


@dataclass
class ModuleArtifact:
    """
    A decoded module, ready to be written out.

    ``contents``, ``sourcemap`` and ``bytecode`` are views into the
    executable's bytes. Optional parts are None when their pointer is empty.
    """
    index: int
    original_path: str
    contents: memoryview
    sourcemap: Optional[memoryview] = None
    bytecode: Optional[memoryview] = None
    encoding: int = 0
    loader: int = 0
    module_format: int = 0
    side: int = 0
    relative_path: Optional[str] = None


@dataclass
class StandaloneBundle:
    """Result of parsing one embedded payload."""
    modules: List[ModuleArtifact]
    entry_point_id: int = 0
    compile_exec_argv: str = ""
    record_size: int = MODULE_RECORD_SIZE

    @property
    def entry_point(self) -> Optional[ModuleArtifact]:
        """The module the entry point id refers to, if it is in range."""
        if 0 <= self.entry_point_id < len(self.modules):
            return self.modules[self.entry_point_id]
        return None
