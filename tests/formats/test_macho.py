"""Tests for the Mach-O reader."""

import struct

import pytest

from substance.errors import MalformedContainerError, SectionNotFoundError
from substance.formats.macho import MachOFormat, macho_section_name

from binaries import (
    DATA_ADDR,
    N_FUN_STAB,
    N_SECT_EXT,
    TEXT_ADDR,
    TEXT_SIZE,
    build_macho,
    build_macho64,
)


def test_section_name_mapping():
    assert macho_section_name(".text") == ("__TEXT", "__text")
    assert macho_section_name("__DATA,__data") == ("__DATA", "__data")
    assert macho_section_name("__text") == ("__TEXT", "__text")


def test_matches_both_byte_orders():
    assert MachOFormat.matches(struct.pack("<I", 0xFEEDFACF))
    assert MachOFormat.matches(struct.pack(">I", 0xFEEDFACE))
    assert not MachOFormat.matches(b"\xca\xfe\xba\xbe")
    assert not MachOFormat.matches(b"\xfe")


def test_sizes_from_address_gaps():
    image = build_macho64([
        ("main", TEXT_ADDR),
        ("helper", TEXT_ADDR + 0x80),
        ("helper_alias", TEXT_ADDR + 0x80),
        ("tail", TEXT_ADDR + 0x300),
    ])

    table = MachOFormat().read_symbols(image, ".text")

    assert table.format_name == "Mach-O 64"
    assert table.section_size == TEXT_SIZE
    assert table.file_size == len(image)
    assert [(e.name, e.size) for e in table.entries] == [
        ("main", 0x80),
        ("helper", 0x280),
        ("helper_alias", 0x280),
        ("tail", TEXT_SIZE - 0x300),
    ]


def test_skips_stabs_and_other_sections():
    image = build_macho64([
        ("main", TEXT_ADDR),
        ("debug_fn", TEXT_ADDR, N_FUN_STAB, 1),
        ("global", DATA_ADDR, N_SECT_EXT, 2),
    ])

    text = MachOFormat().read_symbols(image, ".text")
    data = MachOFormat().read_symbols(image, "__DATA,__data")

    assert [e.name for e in text.entries] == ["main"]
    assert [e.name for e in data.entries] == ["global"]


def test_missing_section():
    image = build_macho64([("main", TEXT_ADDR)])
    with pytest.raises(SectionNotFoundError) as excinfo:
        MachOFormat().read_symbols(image, "__TEXT,__stubs")
    assert "__TEXT,__text" in excinfo.value.available


def test_truncated_load_commands():
    image = build_macho64([("main", TEXT_ADDR)])
    with pytest.raises(MalformedContainerError):
        MachOFormat().read_symbols(image[:64], ".text")


def test_symbol_table_out_of_bounds():
    image = build_macho64([("main", TEXT_ADDR), ("helper", TEXT_ADDR + 0x10)])
    # Keep the load commands but cut into the nlist array.
    cut = 32 + 2 * 152 + 24 + 20
    with pytest.raises(MalformedContainerError):
        MachOFormat().read_symbols(image[:cut], ".text")


def test_big_endian_32_bit():
    image = build_macho([("main", 0x1000), ("helper", 0x1040)],
                        is_64=False, endian=">", text_size=0x200)

    assert MachOFormat.matches(image)
    table = MachOFormat().read_symbols(image, ".text")

    assert table.format_name == "Mach-O 32"
    assert table.section_size == 0x200
    assert [(e.name, e.address, e.size) for e in table.entries] == [
        ("main", 0x1000, 0x40),
        ("helper", 0x1040, 0x1C0),
    ]


@pytest.mark.parametrize("is_64, endian, expected", [
    (False, "<", "Mach-O 32"),
    (True, ">", "Mach-O 64"),
])
def test_other_widths_and_byte_orders(is_64, endian, expected):
    image = build_macho([("main", TEXT_ADDR), ("global", DATA_ADDR, N_SECT_EXT, 2)],
                        is_64=is_64, endian=endian)

    text = MachOFormat().read_symbols(image, ".text")
    data = MachOFormat().read_symbols(image, "__DATA,__data")

    assert text.format_name == expected
    assert [(e.name, e.size) for e in text.entries] == [("main", TEXT_SIZE)]
    assert [e.name for e in data.entries] == ["global"]
