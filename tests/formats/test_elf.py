"""Tests for the ELF reader."""

import pytest

from substance.errors import MalformedContainerError, SectionNotFoundError
from substance.formats.elf import ElfFormat

from binaries import (
    ELF_DATA_INDEX,
    ELF_TEXT_INDEX,
    STT_OBJECT,
    STT_SECTION,
    TEXT_SIZE,
    build_elf,
    build_elf64,
)


@pytest.fixture
def image():
    return build_elf64([
        ("main", 0x1000, 64),
        ("helper", 0x1040, 32),
        ("TEXT_CONST", 0x1060, 16, STT_OBJECT, ELF_TEXT_INDEX),
        ("", 0x1000, 0, STT_SECTION, ELF_TEXT_INDEX),
        ("GLOBAL", 0x3000, 8, STT_OBJECT, ELF_DATA_INDEX),
    ])


def test_matches(image):
    assert ElfFormat.matches(image)
    assert not ElfFormat.matches(b"MZ\x90\x00")


def test_reads_text_symbols(image):
    table = ElfFormat().read_symbols(image, ".text")

    assert table.format_name == "ELF64"
    assert table.section == ".text"
    assert table.section_size == TEXT_SIZE
    assert table.file_size == len(image)
    assert sorted((e.name, e.address, e.size) for e in table.entries) == [
        ("TEXT_CONST", 0x1060, 16),
        ("helper", 0x1040, 32),
        ("main", 0x1000, 64),
    ]


def test_reads_other_section(image):
    table = ElfFormat().read_symbols(image, ".data")
    assert [e.name for e in table.entries] == ["GLOBAL"]


def test_memoryview_input(image):
    table = ElfFormat().read_symbols(memoryview(image), ".text")
    assert len(table.entries) == 3


def test_missing_section(image):
    with pytest.raises(SectionNotFoundError) as excinfo:
        ElfFormat().read_symbols(image, ".rodata")
    assert excinfo.value.section == ".rodata"
    assert ".symtab" in excinfo.value.available


def test_truncated_image():
    image = build_elf64([("main", 0x1000, 64)])
    with pytest.raises(MalformedContainerError) as excinfo:
        ElfFormat().read_symbols(image[:0x200], ".text")
    assert excinfo.value.format_name == "ELF"


@pytest.mark.parametrize("elfclass, endian", [(32, "<"), (32, ">"), (64, ">")])
def test_other_classes_and_byte_orders(elfclass, endian):
    image = build_elf([
        ("main", 0x1000, 64),
        ("helper", 0x1040, 32),
        ("GLOBAL", 0x3000, 8, STT_OBJECT, ELF_DATA_INDEX),
    ], elfclass=elfclass, endian=endian, text_size=0x200)

    assert ElfFormat.matches(image)
    table = ElfFormat().read_symbols(image, ".text")

    assert table.format_name == f"ELF{elfclass}"
    assert table.section_size == 0x200
    assert sorted((e.name, e.address, e.size) for e in table.entries) == [
        ("helper", 0x1040, 32),
        ("main", 0x1000, 64),
    ]
