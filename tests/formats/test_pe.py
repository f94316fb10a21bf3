"""Tests for the PE/COFF reader."""

import pytest

from substance.errors import MalformedContainerError, SectionNotFoundError
from substance.formats.pe import PeFormat, read_pe_headers

from binaries import DATA_ADDR, TEXT_ADDR, TEXT_SIZE, build_pe


def test_headers():
    machine, sections, symtab_offset, nsymbols = read_pe_headers(build_pe())
    assert machine == 0x8664
    assert [(s.name, s.virtual_address) for s in sections] == [(".text", TEXT_ADDR), (".data", DATA_ADDR)]
    assert symtab_offset == 0
    assert nsymbols == 0


def test_coff_symbols():
    long_name = "_ZN7mycrate4main17h0123456789abcdefE"
    image = build_pe([
        ("start", TEXT_ADDR),
        (long_name, TEXT_ADDR + 0x100),
        ("table", DATA_ADDR, 2, 0),
    ])

    table = PeFormat().read_symbols(image, ".text")

    assert table.format_name == "PE"
    assert table.section_size == TEXT_SIZE
    assert [(e.name, e.address, e.size) for e in table.entries] == [
        ("start", TEXT_ADDR, 0x100),
        (long_name, TEXT_ADDR + 0x100, TEXT_SIZE - 0x100),
    ]


def test_non_function_symbols_skipped():
    image = build_pe([("main", TEXT_ADDR), ("label", TEXT_ADDR + 8, 1, 0)])
    assert [e.name for e in PeFormat().read_symbols(image, ".text").entries] == ["main"]


def test_i386_leading_underscore_stripped():
    image = build_pe([("_main", TEXT_ADDR)], machine=0x14C)
    assert [e.name for e in PeFormat().read_symbols(image, ".text").entries] == ["main"]


def test_image_without_symbols_warns(caplog):
    table = PeFormat().read_symbols(build_pe(), ".text")
    assert table.entries == []
    assert "no COFF symbol table" in caplog.text


def test_missing_section():
    with pytest.raises(SectionNotFoundError):
        PeFormat().read_symbols(build_pe(), ".rdata")


def test_missing_pe_signature():
    image = bytearray(build_pe())
    image[0x80:0x84] = b"XXXX"
    with pytest.raises(MalformedContainerError):
        PeFormat().read_symbols(bytes(image), ".text")


def test_truncated_header():
    with pytest.raises(MalformedContainerError):
        PeFormat().read_symbols(b"MZ" + bytes(10), ".text")
