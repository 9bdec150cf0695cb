"""
Shared fixtures: builders for synthetic standalone bundles and executables.
"""

import struct
from dataclasses import dataclass
from typing import List, Optional, Union

import pytest

from bunfs_dumper.bundle.structures import TRAILER


@dataclass
class FakeModule:
    name: Union[str, bytes]
    contents: bytes = b""
    sourcemap: Optional[bytes] = None
    bytecode: Optional[bytes] = None
    encoding: int = 1
    loader: int = 1
    module_format: int = 0
    side: int = 0


@dataclass
class BuiltBundle:
    data: bytes
    table_offset: int
    table_length: int
    offsets_pos: int
    byte_count: int


def build_bundle(
    modules: List[FakeModule],
    entry_point_id: int = 0,
    argv: str = "",
    record_size: int = 40,
) -> BuiltBundle:
    """Serialize modules into ``[data | module table | offsets | trailer]``."""
    body = bytearray()

    def put(blob: Optional[bytes]):
        if not blob:
            return 0, 0
        offset = len(body)
        body.extend(blob)
        return offset, len(blob)

    records = []
    for module in modules:
        name = module.name.encode("utf-8") if isinstance(module.name, str) else module.name
        pointers = [put(name), put(module.contents), put(module.sourcemap), put(module.bytecode)]
        record = b"".join(struct.pack("<II", *p) for p in pointers)
        record += bytes([module.encoding, module.loader, module.module_format, module.side])
        record += b"\x00" * (record_size - len(record))
        records.append(record)

    argv_ptr = put(argv.encode("utf-8"))

    table_offset = len(body)
    table = b"".join(records)
    body.extend(table)

    byte_count = len(body)
    offsets = struct.pack(
        "<QIIIIII",
        byte_count,
        table_offset, len(table),
        entry_point_id,
        argv_ptr[0], argv_ptr[1],
        0,
    )
    assert len(offsets) == 32

    offsets_pos = len(body)
    data = bytes(body) + offsets + TRAILER
    return BuiltBundle(data, table_offset, len(table), offsets_pos, byte_count)


def build_pe(payload: bytes, section_name: bytes = b".bun", optional_header_size: int = 0xF0) -> bytes:
    """Build a minimal PE32+ file with a .text section and a payload section."""
    pe_offset = 0x40
    dos = bytearray(0x40)
    dos[0:2] = b"MZ"
    struct.pack_into("<I", dos, 0x3C, pe_offset)

    sections = [(b".text", b"\xcc" * 0x20), (section_name, struct.pack("<I", len(payload)) + payload)]

    coff = struct.pack("<HHIIIHH", 0x8664, len(sections), 0, 0, 0, optional_header_size, 0x22)
    optional = b"\x00" * optional_header_size

    table_offset = pe_offset + 4 + len(coff) + len(optional)
    raw_offset = table_offset + 40 * len(sections)

    table = bytearray()
    raw = bytearray()
    for name, data in sections:
        pointer = raw_offset + len(raw)
        table += struct.pack(
            "<8sIIIIIIHHI",
            name, len(data), 0x1000 * (len(table) // 40 + 1), len(data), pointer, 0, 0, 0, 0, 0x40000040,
        )
        raw += data

    return bytes(dos) + b"PE\x00\x00" + coff + optional + bytes(table) + bytes(raw)


def build_trailing(payload: bytes, prefix: bytes = b"\x7fELF" + b"\x00" * 60) -> bytes:
    """Append a payload and its u64 length to a host file."""
    return prefix + payload + struct.pack("<Q", len(payload))


@pytest.fixture
def sample_modules() -> List[FakeModule]:
    return [
        FakeModule("B:/~BUN/root/index.js", b"console.log('hi');\n", sourcemap=b'{"version":3}', loader=1),
        FakeModule("B:/~BUN/root/lib/util.ts", b"export const x = 1;\n", loader=2),
        FakeModule("B:/~BUN/root/assets/logo.png", b"\x89PNG\r\n\x1a\n\x00\x01", bytecode=None, encoding=0, loader=5),
        FakeModule("B:/~BUN/root/index.js", b"// duplicate\n", bytecode=b"\x00BC\x01", loader=1, side=1),
    ]


@pytest.fixture
def sample_bundle(sample_modules) -> BuiltBundle:
    return build_bundle(sample_modules, entry_point_id=0, argv="--smol --expose-gc")


@pytest.fixture
def sample_exe(sample_bundle) -> bytes:
    return build_pe(sample_bundle.data)
