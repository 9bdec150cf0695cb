"""
PE (Portable Executable) section reader for Windows Bun executables.

Finds the ``.bun`` section of a compiled executable and returns the
length-prefixed module graph stored at the start of its raw data.
"""

from typing import Iterator

from ..errors import InputFormatError
from ..io.binary_stream import BinaryStream
from ..utils.string_utils import decode_ascii_null_terminated
from .payload import RawPayload, SOURCE_SECTION
from .pe_structures import (
    ImageFileHeader,
    SectionHeader,
    BUN_SECTION_NAME,
    DOS_HEADER_SIZE,
    DOS_E_LFANEW_OFFSET,
    FILE_HEADER_SIZE,
    IMAGE_DOS_SIGNATURE,
    IMAGE_NT_SIGNATURE,
    NT_SIGNATURE_SIZE,
    SECTION_HEADER_SIZE,
    SECTION_NAME_SIZE,
)


class PE(BinaryStream):
    """
    Minimal PE parser: DOS header, COFF file header and section table.

    Every offset taken from the file is checked against the file length
    before it is followed.
    """

    def __init__(self, data: bytes):
        super().__init__(data)
        self._load()

    def _load(self) -> None:
        """Load PE structures."""
        # DOS header
        if self.length < DOS_HEADER_SIZE:
            raise InputFormatError("Not a valid PE (MZ) executable: file too small")
        self.position = 0
        if self.read_uint16("DOS signature") != IMAGE_DOS_SIGNATURE:
            raise InputFormatError("Not a valid PE (MZ) executable: bad DOS signature")

        self.position = DOS_E_LFANEW_OFFSET
        self.pe_header_offset = self.read_uint32("e_lfanew")
        if self.pe_header_offset + NT_SIGNATURE_SIZE + FILE_HEADER_SIZE > self.length:
            raise InputFormatError(
                f"PE header offset 0x{self.pe_header_offset:x} out of range; the file may be corrupted"
            )

        # NT headers
        self.position = self.pe_header_offset
        if self.read_uint32("NT signature") != IMAGE_NT_SIGNATURE:
            raise InputFormatError("PE\\0\\0 signature not found; is this a Windows Bun executable?")

        self._file_header = self._read_file_header()

        self.section_table_offset = (
            self.pe_header_offset + NT_SIGNATURE_SIZE + FILE_HEADER_SIZE
            + self._file_header.SizeOfOptionalHeader
        )
        if self.section_table_offset > self.length:
            raise InputFormatError(f"Section table offset 0x{self.section_table_offset:x} out of range")

    def _read_file_header(self) -> ImageFileHeader:
        """Read COFF file header."""
        header = ImageFileHeader()
        header.Machine = self.read_uint16()
        header.NumberOfSections = self.read_uint16()
        header.TimeDateStamp = self.read_uint32()
        header.PointerToSymbolTable = self.read_uint32()
        header.NumberOfSymbols = self.read_uint32()
        header.SizeOfOptionalHeader = self.read_uint16()
        header.Characteristics = self.read_uint16()
        return header

    def sections(self) -> Iterator[SectionHeader]:
        """Iterate section headers in table order."""
        for i in range(self._file_header.NumberOfSections):
            offset = self.section_table_offset + i * SECTION_HEADER_SIZE
            if offset + SECTION_HEADER_SIZE > self.length:
                raise InputFormatError(f"Section table entry {i} at 0x{offset:x} out of range")
            self.position = offset
            yield self._read_section()

    def _read_section(self) -> SectionHeader:
        section = SectionHeader()
        section.Name = decode_ascii_null_terminated(self.read_bytes(SECTION_NAME_SIZE))
        section.VirtualSize = self.read_uint32()
        section.VirtualAddress = self.read_uint32()
        section.SizeOfRawData = self.read_uint32()
        section.PointerToRawData = self.read_uint32()
        section.PointerToRelocations = self.read_uint32()
        section.PointerToLinenumbers = self.read_uint32()
        section.NumberOfRelocations = self.read_uint16()
        section.NumberOfLinenumbers = self.read_uint16()
        section.Characteristics = self.read_uint32()
        return section

    def find_section(self, name: str) -> SectionHeader:
        """
        Find a section by exact name.

        Raises:
            InputFormatError: If no section has that name
        """
        for section in self.sections():
            if section.Name == name:
                return section
        raise InputFormatError(f"No {name} section in PE file; cannot locate embedded data")

    def section_payload(self, section: SectionHeader) -> RawPayload:
        """
        Get the length-prefixed data stored at the start of a section.

        Args:
            section: Section header from this file

        Returns:
            The payload following the u32 length prefix
        """
        raw_start = section.PointerToRawData
        raw_end = raw_start + section.SizeOfRawData
        if raw_end > self.length or raw_start + 4 > self.length:
            raise InputFormatError(
                f"{section.Name} section data out of range: 0x{raw_start:x} + 0x{section.SizeOfRawData:x}"
            )

        self.position = raw_start
        data_length = self.read_uint32("section length prefix")
        data_start = raw_start + 4
        data_end = data_start + data_length
        if data_end > raw_end or data_end > self.length:
            raise InputFormatError(
                f"{section.Name} section length prefix 0x{data_length:x} does not match its raw data"
            )

        return RawPayload(self._data, data_start, data_end, SOURCE_SECTION)


def extract_section_payload(data: bytes, section_name: str = BUN_SECTION_NAME) -> RawPayload:
    """
    Locate the embedded payload through the PE section table.

    Args:
        data: Whole executable contents
        section_name: Name of the section holding the payload

    Returns:
        The located payload
    """
    pe = PE(data)
    return pe.section_payload(pe.find_section(section_name))
