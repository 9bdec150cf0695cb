"""
PE (Portable Executable) format structures for Windows binaries.
"""

from dataclasses import dataclass


# PE Constants
IMAGE_DOS_SIGNATURE = 0x5A4D  # MZ
IMAGE_NT_SIGNATURE = 0x00004550  # PE\0\0

DOS_HEADER_SIZE = 0x40
DOS_E_LFANEW_OFFSET = 0x3C
NT_SIGNATURE_SIZE = 4
FILE_HEADER_SIZE = 20
SECTION_HEADER_SIZE = 40
SECTION_NAME_SIZE = 8

# Section holding the standalone module graph
BUN_SECTION_NAME = ".bun"


@dataclass
class ImageFileHeader:
    """COFF file header."""
    Machine: int = 0
    NumberOfSections: int = 0
    TimeDateStamp: int = 0
    PointerToSymbolTable: int = 0
    NumberOfSymbols: int = 0
    SizeOfOptionalHeader: int = 0
    Characteristics: int = 0


@dataclass
class SectionHeader:
    """Section header."""
    Name: str = ""
    VirtualSize: int = 0
    VirtualAddress: int = 0
    SizeOfRawData: int = 0
    PointerToRawData: int = 0
    PointerToRelocations: int = 0
    PointerToLinenumbers: int = 0
    NumberOfRelocations: int = 0
    NumberOfLinenumbers: int = 0
    Characteristics: int = 0
