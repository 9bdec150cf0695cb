import struct

import pytest

from bunfs_dumper.bundle.structures import TRAILER
from bunfs_dumper.errors import InputFormatError
from bunfs_dumper.formats import extract_section_payload, extract_trailing_blob, locate
from bunfs_dumper.formats.payload import SOURCE_SECTION, SOURCE_TRAILER

from conftest import build_pe, build_trailing


def _bun_section_header_offset() -> int:
    # DOS header, NT signature, COFF header, optional header, then .text
    return 0x40 + 4 + 20 + 0xF0 + 40


def test_locates_bun_section(sample_bundle, sample_exe):
    payload = locate(sample_exe)

    assert payload.source == SOURCE_SECTION
    assert payload.tobytes() == sample_bundle.data
    assert len(payload) == len(sample_bundle.data)
    assert payload.data is sample_exe


def test_custom_section_name(sample_bundle):
    exe = build_pe(sample_bundle.data, section_name=b".bundle")

    payload = locate(exe, ".bundle")
    assert payload.tobytes() == sample_bundle.data


def test_section_name_must_match_exactly(sample_bundle):
    exe = build_pe(sample_bundle.data, section_name=b".bunx")
    with pytest.raises(InputFormatError, match="No .bun section"):
        extract_section_payload(exe)


def test_bad_dos_signature():
    with pytest.raises(InputFormatError, match="MZ"):
        extract_section_payload(b"ZM" + b"\x00" * 0x80)


def test_file_too_small_for_dos_header():
    with pytest.raises(InputFormatError, match="too small"):
        extract_section_payload(b"MZ\x00\x00")


def test_pe_header_offset_out_of_range(sample_exe):
    exe = bytearray(sample_exe)
    struct.pack_into("<I", exe, 0x3C, len(exe) - 4)
    with pytest.raises(InputFormatError, match="PE header offset"):
        extract_section_payload(bytes(exe))


def test_bad_nt_signature(sample_exe):
    exe = bytearray(sample_exe)
    exe[0x40:0x44] = b"NE\x00\x00"
    with pytest.raises(InputFormatError, match="signature"):
        extract_section_payload(bytes(exe))


def test_section_table_out_of_range(sample_exe):
    exe = bytearray(sample_exe)
    # SizeOfOptionalHeader pushes the table beyond the file
    struct.pack_into("<H", exe, 0x40 + 4 + 16, 0xFFFF)
    with pytest.raises(InputFormatError, match="Section table"):
        extract_section_payload(bytes(exe))


def test_section_table_entry_out_of_range(sample_exe):
    exe = bytearray(sample_exe)
    struct.pack_into("<H", exe, 0x40 + 4 + 2, 0x7FFF)
    # Table entries beyond .bun are only read if .bun is not found first
    name_offset = _bun_section_header_offset()
    exe[name_offset:name_offset + 8] = b".nope\x00\x00\x00"
    with pytest.raises(InputFormatError, match="Section table entry"):
        extract_section_payload(bytes(exe))


def test_section_data_out_of_range(sample_exe):
    exe = bytearray(sample_exe)
    struct.pack_into("<I", exe, _bun_section_header_offset() + 20, len(exe) + 16)
    with pytest.raises(InputFormatError, match="section data"):
        extract_section_payload(bytes(exe))


def test_length_prefix_exceeds_section(sample_exe):
    exe = bytearray(sample_exe)
    raw_pointer = struct.unpack_from("<I", exe, _bun_section_header_offset() + 20)[0]
    struct.pack_into("<I", exe, raw_pointer, 0x7FFFFFFF)
    with pytest.raises(InputFormatError, match="length prefix"):
        extract_section_payload(bytes(exe))


def test_trailing_blob(sample_bundle):
    exe = build_trailing(sample_bundle.data)

    payload = locate(exe)
    assert payload.source == SOURCE_TRAILER
    assert payload.tobytes() == sample_bundle.data
    assert payload.end == len(exe) - 8


def test_trailing_blob_used_when_pe_has_no_section(sample_bundle):
    host = build_pe(b"", section_name=b".rdata")
    exe = build_trailing(sample_bundle.data, prefix=host)

    payload = locate(exe)
    assert payload.source == SOURCE_TRAILER
    assert payload.tobytes() == sample_bundle.data


def test_trailing_blob_zero_length(sample_bundle):
    exe = sample_bundle.data + struct.pack("<Q", 0)
    with pytest.raises(InputFormatError, match="zero"):
        extract_trailing_blob(exe)


def test_trailing_blob_length_exceeds_file(sample_bundle):
    exe = sample_bundle.data + struct.pack("<Q", len(sample_bundle.data) * 4)
    with pytest.raises(InputFormatError, match="exceeds file size"):
        extract_trailing_blob(exe)


def test_trailing_blob_starts_before_file(sample_bundle):
    exe = sample_bundle.data + struct.pack("<Q", len(sample_bundle.data) + 4)
    with pytest.raises(InputFormatError, match="before the file"):
        extract_trailing_blob(exe)


def test_trailing_blob_must_contain_trailer(sample_bundle):
    # The declared blob covers only the bytes after the trailer
    exe = sample_bundle.data + b"\x00" * 64 + struct.pack("<Q", 64)
    with pytest.raises(InputFormatError, match="does not contain"):
        extract_trailing_blob(exe)


def test_no_trailer_anywhere():
    exe = b"\x00" * 256 + struct.pack("<Q", 128)
    with pytest.raises(InputFormatError, match="No Bun trailer"):
        extract_trailing_blob(exe)


def test_neither_strategy_matches():
    with pytest.raises(InputFormatError) as excinfo:
        locate(b"#!/bin/sh\necho not a bun executable\n" + b"\x00" * 64)

    message = str(excinfo.value)
    assert "MZ" in message
    assert "no trailing Bun blob" in message
    assert "bun build --compile" in message


def test_trailer_constant():
    assert TRAILER == b"\n---- Bun! ----\n"
