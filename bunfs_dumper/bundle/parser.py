"""
Standalone module graph parser.

Decodes the offset table and module table of an embedded payload into
ModuleArtifact objects. Any structural inconsistency aborts the whole parse.
"""

import sys
from typing import List, Optional, Union

from ..errors import BoundsError, InputFormatError
from ..formats.payload import RawPayload
from ..io.binary_stream import BinaryStream
from ..utils.string_utils import decode_utf8_lenient
from .structures import (
    LEGACY_MODULE_RECORD_SIZE,
    MODULE_RECORD_SIZE,
    MODULE_TAGS_OFFSET,
    OFFSETS_SIZE,
    TRAILER,
    ModuleArtifact,
    ModuleRecord,
    OffsetTable,
    StandaloneBundle,
    StringPointer,
)


class BundleParser:
    """
    Parser for one embedded payload.

    The payload is never copied: module contents, sourcemaps and bytecode
    are returned as memoryviews into the executable's bytes.
    """

    def __init__(self, payload: Union[RawPayload, BinaryStream, bytes]):
        """
        Initialize the parser.

        Args:
            payload: Located payload, a stream over it, or raw payload bytes
        """
        if isinstance(payload, RawPayload):
            self._stream = payload.stream()
        elif isinstance(payload, BinaryStream):
            self._stream = payload
        else:
            self._stream = BinaryStream(payload)

        self.offsets: Optional[OffsetTable] = None
        self.record_size: int = MODULE_RECORD_SIZE

    def parse(self) -> StandaloneBundle:
        """
        Parse the payload.

        Returns:
            The decoded bundle

        Raises:
            InputFormatError: If the trailer, offsets or record layout are invalid
            BoundsError: If any pointer reaches outside the truncated payload
        """
        blob = self._stream
        if blob.length < len(TRAILER) + OFFSETS_SIZE:
            raise InputFormatError("Embedded data too short to hold the trailer and offset table")

        trailer_index = blob.rfind(TRAILER)
        if trailer_index == -1:
            raise InputFormatError("Bun trailer not found; the file was probably not built with 'bun build --compile'")

        offsets_pos = trailer_index - OFFSETS_SIZE
        if offsets_pos < 0:
            raise InputFormatError("Offset table starts before the embedded data")

        self.offsets = offsets = self._read_offsets(blob, offsets_pos)

        if offsets.byte_count > blob.length:
            raise BoundsError(
                f"byte_count 0x{offsets.byte_count:x} exceeds embedded data length 0x{blob.length:x}"
            )

        # All pointers resolve against the truncated payload
        payload = blob.window(0, offsets.byte_count, "byte_count")

        modules_ptr = offsets.modules_ptr
        if modules_ptr.end > payload.length:
            raise BoundsError(
                f"Module table out of range: 0x{modules_ptr.offset:x} + 0x{modules_ptr.length:x} "
                f"exceeds byte_count 0x{payload.length:x}"
            )

        self.record_size = record_size = self._record_size(modules_ptr.length)
        record_count = modules_ptr.length // record_size

        modules: List[ModuleArtifact] = []
        for index in range(record_count):
            base = modules_ptr.offset + index * record_size
            record = self._read_record(payload, base)
            modules.append(self._materialize(payload, index, record))

        compile_exec_argv = self._decode_string(payload, offsets.compile_exec_argv_ptr, "compile exec argv pointer")

        return StandaloneBundle(
            modules=modules,
            entry_point_id=offsets.entry_point_id,
            compile_exec_argv=compile_exec_argv,
            record_size=record_size,
        )

    def _read_offsets(self, blob: BinaryStream, offsets_pos: int) -> OffsetTable:
        """Read the offset table at ``offsets_pos``."""
        blob.position = offsets_pos
        table = OffsetTable()
        table.byte_count = blob.read_uint64("byte_count")
        if table.byte_count > sys.maxsize:
            raise InputFormatError(f"byte_count 0x{table.byte_count:x} is too large to address")
        table.modules_ptr = self._read_pointer(blob, "modules pointer")
        table.entry_point_id = blob.read_uint32("entry_point_id")
        table.compile_exec_argv_ptr = self._read_pointer(blob, "compile exec argv pointer")
        return table

    @staticmethod
    def _record_size(table_length: int) -> int:
        """Pick the module record stride that divides the table evenly."""
        if table_length % MODULE_RECORD_SIZE == 0:
            return MODULE_RECORD_SIZE
        if table_length % LEGACY_MODULE_RECORD_SIZE == 0:
            return LEGACY_MODULE_RECORD_SIZE
        raise InputFormatError(
            f"Unknown module record layout: table length {table_length} is not a multiple of "
            f"{MODULE_RECORD_SIZE} or {LEGACY_MODULE_RECORD_SIZE} bytes"
        )

    @staticmethod
    def _read_pointer(stream: BinaryStream, what: str) -> StringPointer:
        offset = stream.read_uint32(what)
        length = stream.read_uint32(what)
        return StringPointer(offset, length)

    def _read_record(self, payload: BinaryStream, base: int) -> ModuleRecord:
        """Read one module table entry starting at ``base``."""
        payload.position = base
        record = ModuleRecord()
        record.name = self._read_pointer(payload, "module table pointer")
        record.contents = self._read_pointer(payload, "module table pointer")
        record.sourcemap = self._read_pointer(payload, "module table pointer")
        record.bytecode = self._read_pointer(payload, "module table pointer")

        payload.position = base + MODULE_TAGS_OFFSET
        record.encoding = payload.read_byte("module encoding tag")
        record.loader = payload.read_byte("module loader tag")
        record.module_format = payload.read_byte("module format tag")
        record.side = payload.read_byte("module side tag")
        return record

    def _materialize(self, payload: BinaryStream, index: int, record: ModuleRecord) -> ModuleArtifact:
        """Resolve a record's pointers into views of the payload."""
        return ModuleArtifact(
            index=index,
            original_path=self._decode_string(payload, record.name, "module name pointer"),
            contents=self._slice(payload, record.contents, "module contents pointer"),
            sourcemap=self._optional_slice(payload, record.sourcemap, "module sourcemap pointer"),
            bytecode=self._optional_slice(payload, record.bytecode, "module bytecode pointer"),
            encoding=record.encoding,
            loader=record.loader,
            module_format=record.module_format,
            side=record.side,
        )

    @staticmethod
    def _slice(payload: BinaryStream, pointer: StringPointer, what: str) -> memoryview:
        if pointer.is_empty:
            return memoryview(b"")
        return payload.view(pointer.offset, pointer.length, what)

    def _optional_slice(self, payload: BinaryStream, pointer: StringPointer, what: str) -> Optional[memoryview]:
        if pointer.is_empty:
            return None
        return self._slice(payload, pointer, what)

    def _decode_string(self, payload: BinaryStream, pointer: StringPointer, what: str) -> str:
        if pointer.is_empty:
            return ""
        return decode_utf8_lenient(self._slice(payload, pointer, what))


def parse(payload: Union[RawPayload, BinaryStream, bytes]) -> StandaloneBundle:
    """
    Parse an embedded payload into a StandaloneBundle.

    Args:
        payload: Located payload, a stream over it, or raw payload bytes

    Returns:
        The decoded bundle
    """
    return BundleParser(payload).parse()
