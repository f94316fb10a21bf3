"""PE/COFF executable support.

Images produced by GNU toolchains keep a COFF symbol table; MSVC images
keep their symbols in a separate PDB (see :mod:`substance.formats.pdb`).
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

from ..errors import MalformedContainerError, SectionNotFoundError
from .base import ContainerFormat, RawSymbolEntry, SymbolTable
from .utils import assign_gap_sizes, fixed_name, read_cstring, unpack_from

logger = logging.getLogger(__name__)

IMAGE_FILE_MACHINE_I386 = 0x14C
IMAGE_SYM_DTYPE_FUNCTION = 0x20
SYMBOL_RECORD_SIZE = 18
SECTION_HEADER_SIZE = 40
SECTION_HEADER_FORMAT = "<8sIIIIIIHHI"


@dataclass
class PeSection:
    """One entry of a PE section table."""
    name: str
    virtual_size: int
    virtual_address: int


def parse_section_headers(data, offset: int, count: int, format_name: str,
                          string_table: Optional[int] = None) -> List[PeSection]:
    """Parse ``count`` IMAGE_SECTION_HEADER records starting at ``offset``."""
    sections = []
    for i in range(count):
        fields = unpack_from(SECTION_HEADER_FORMAT, data,
                             offset + i * SECTION_HEADER_SIZE, format_name)
        name = fixed_name(fields[0])
        if name.startswith("/") and name[1:].isdigit() and string_table is not None:
            name = read_cstring(data, string_table + int(name[1:]), format_name)
        sections.append(PeSection(name=name, virtual_size=fields[1], virtual_address=fields[2]))
    return sections


def read_pe_headers(data, format_name: str = "PE") -> Tuple[int, List[PeSection], int, int]:
    """Return (machine, sections, symbol table offset, symbol count)."""
    (pe_offset,) = unpack_from("<I", data, 0x3C, format_name)
    if bytes(data[pe_offset:pe_offset + 4]) != b"PE\0\0":
        raise MalformedContainerError(format_name, f"missing PE signature at {pe_offset:#x}")
    machine, nsections, _, symtab_offset, nsymbols, opt_size, _ = unpack_from(
        "<HHIIIHH", data, pe_offset + 4, format_name
    )
    string_table = symtab_offset + nsymbols * SYMBOL_RECORD_SIZE if symtab_offset else None
    sections = parse_section_headers(data, pe_offset + 24 + opt_size, nsections,
                                     format_name, string_table)
    return machine, sections, symtab_offset, nsymbols


class PeFormat(ContainerFormat):
    """Reads function symbols from the COFF symbol table of a PE image."""

    name = "PE"

    @classmethod
    def matches(cls, data) -> bool:
        return bytes(data[:2]) == b"MZ"

    def read_symbols(self, data, section: str,
                     companion: Optional[bytes] = None) -> SymbolTable:
        machine, sections, symtab_offset, nsymbols = read_pe_headers(data, self.name)

        target_index = None
        for index, sect in enumerate(sections, start=1):
            if sect.name == section:
                target_index = index
                break
        if target_index is None:
            raise SectionNotFoundError(section, [s.name for s in sections])
        target = sections[target_index - 1]

        entries: List[RawSymbolEntry] = []
        if not symtab_offset or not nsymbols:
            logger.warning("PE image has no COFF symbol table; supply its PDB for symbol data")
        else:
            string_table = symtab_offset + nsymbols * SYMBOL_RECORD_SIZE
            strip_underscore = machine == IMAGE_FILE_MACHINE_I386
            i = 0
            while i < nsymbols:
                raw_name, value, section_number, sym_type, _, naux = unpack_from(
                    "<8sIhHBB", data, symtab_offset + i * SYMBOL_RECORD_SIZE, self.name
                )
                i += 1 + naux
                if section_number != target_index or sym_type != IMAGE_SYM_DTYPE_FUNCTION:
                    continue
                if raw_name[:4] == b"\0\0\0\0":
                    name_offset = int.from_bytes(raw_name[4:], "little")
                    name = read_cstring(data, string_table + name_offset, self.name)
                else:
                    name = fixed_name(raw_name)
                if strip_underscore and name.startswith("_"):
                    name = name[1:]
                entries.append(RawSymbolEntry(
                    address=target.virtual_address + value,
                    size=0,
                    section=section,
                    name=name,
                ))
            assign_gap_sizes(entries, target.virtual_address,
                             target.virtual_address + target.virtual_size)

        logger.debug("PE: %d symbols in %s", len(entries), section)
        return SymbolTable(
            format_name=self.name,
            section=section,
            section_size=target.virtual_size,
            file_size=len(data),
            entries=entries,
        )
