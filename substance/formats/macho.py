"""Mach-O container support (thin 32/64-bit images, both byte orders)."""

import logging
from typing import List, Optional, Tuple

from ..errors import MalformedContainerError, SectionNotFoundError
from .base import ContainerFormat, RawSymbolEntry, SymbolTable
from .utils import assign_gap_sizes, fixed_name, read_cstring, unpack_from

logger = logging.getLogger(__name__)

MH_MAGIC = 0xFEEDFACE
MH_MAGIC_64 = 0xFEEDFACF

LC_SEGMENT = 0x1
LC_SYMTAB = 0x2
LC_SEGMENT_64 = 0x19

N_STAB = 0xE0
N_TYPE = 0x0E
N_SECT = 0x0E

# (header size, segment command, section struct, nlist struct, nlist size)
_LAYOUT_32 = (28, LC_SEGMENT, "16s16sIIIIIIIII", "IBBhI", 12)
_LAYOUT_64 = (32, LC_SEGMENT_64, "16s16sQQIIIIIIII", "IBBhQ", 16)


def macho_section_name(selector: str) -> Tuple[str, str]:
    """Map an ELF-style selector to a Mach-O (segment, section) pair.

    ``.text`` -> (``__TEXT``, ``__text``); ``__DATA,__const`` is taken as is.
    """
    if "," in selector:
        segment, section = selector.split(",", 1)
        return segment, section
    if selector.startswith("."):
        name = "__" + selector[1:]
    else:
        name = selector
    segment = "__TEXT" if name in ("__text", "__stubs", "__cstring", "__const") else ""
    return segment, name


class MachOFormat(ContainerFormat):
    """Reads the ``LC_SYMTAB`` nlist table of a thin Mach-O image.

    Mach-O does not record symbol sizes, so sizes are derived from the
    distance to the next symbol in the section.
    """

    name = "Mach-O"

    @classmethod
    def matches(cls, data) -> bool:
        if len(data) < 4:
            return False
        head = bytes(data[:4])
        magics = {MH_MAGIC, MH_MAGIC_64}
        return (int.from_bytes(head, "little") in magics
                or int.from_bytes(head, "big") in magics)

    def read_symbols(self, data, section: str,
                     companion: Optional[bytes] = None) -> SymbolTable:
        head = bytes(data[:4])
        if int.from_bytes(head, "little") in (MH_MAGIC, MH_MAGIC_64):
            order = "<"
            magic = int.from_bytes(head, "little")
        else:
            order = ">"
            magic = int.from_bytes(head, "big")
        is_64 = magic == MH_MAGIC_64
        header_size, segment_cmd, sect_fmt, nlist_fmt, nlist_size = (
            _LAYOUT_64 if is_64 else _LAYOUT_32
        )
        _, _, _, _, ncmds, sizeofcmds, _ = unpack_from(order + "7I", data, 0, self.name)
        if header_size + sizeofcmds > len(data):
            raise MalformedContainerError(self.name, "load commands extend past end of file")

        sections = self._read_sections(data, order, header_size, ncmds,
                                       segment_cmd, sect_fmt, is_64)
        symtab = self._find_symtab(data, order, header_size, ncmds)

        want_segment, want_section = macho_section_name(section)
        target_index = None
        for index, (segname, sectname, _, _) in enumerate(sections, start=1):
            if sectname == want_section and (not want_segment or segname == want_segment):
                target_index = index
                break
        if target_index is None:
            raise SectionNotFoundError(section, [f"{seg},{sect}" for seg, sect, _, _ in sections])
        _, _, sect_addr, sect_size = sections[target_index - 1]

        entries: List[RawSymbolEntry] = []
        if symtab is None:
            logger.warning("Mach-O image has no LC_SYMTAB; no symbols reported")
        else:
            symoff, nsyms, stroff, strsize = symtab
            for i in range(nsyms):
                strx, n_type, n_sect, _, n_value = unpack_from(
                    order + nlist_fmt, data, symoff + i * nlist_size, self.name
                )
                if n_type & N_STAB or (n_type & N_TYPE) != N_SECT:
                    continue
                if n_sect != target_index:
                    continue
                name = read_cstring(data, stroff + strx, self.name, stroff + strsize) if strx else ""
                if name.startswith("_"):
                    name = name[1:]
                entries.append(RawSymbolEntry(
                    address=n_value, size=0, section=section, name=name
                ))
            assign_gap_sizes(entries, sect_addr, sect_addr + sect_size)

        logger.debug("Mach-O: %d symbols in %s,%s", len(entries), want_segment, want_section)
        return SymbolTable(
            format_name="Mach-O 64" if is_64 else "Mach-O 32",
            section=section,
            section_size=sect_size,
            file_size=len(data),
            entries=entries,
        )

    def _iter_commands(self, data, order: str, header_size: int, ncmds: int):
        offset = header_size
        for _ in range(ncmds):
            cmd, cmdsize = unpack_from(order + "II", data, offset, self.name)
            if cmdsize < 8:
                raise MalformedContainerError(self.name, f"load command at {offset:#x} has size {cmdsize}")
            yield cmd, offset
            offset += cmdsize

    def _read_sections(self, data, order, header_size, ncmds, segment_cmd, sect_fmt, is_64):
        """Return (segment, section, addr, size) for every section, in ordinal order."""
        seg_header = order + ("II16sQQQQiiII" if is_64 else "II16sIIIIiiII")
        seg_header_size = 72 if is_64 else 56
        sect_size = 80 if is_64 else 68
        sections = []
        for cmd, offset in self._iter_commands(data, order, header_size, ncmds):
            if cmd != segment_cmd:
                continue
            nsects = unpack_from(seg_header, data, offset, self.name)[9]
            for i in range(nsects):
                fields = unpack_from(order + sect_fmt, data,
                                     offset + seg_header_size + i * sect_size, self.name)
                sections.append((fixed_name(fields[1]), fixed_name(fields[0]), fields[2], fields[3]))
        return sections

    def _find_symtab(self, data, order, header_size, ncmds):
        for cmd, offset in self._iter_commands(data, order, header_size, ncmds):
            if cmd == LC_SYMTAB:
                _, _, symoff, nsyms, stroff, strsize = unpack_from(order + "6I", data, offset, self.name)
                return symoff, nsyms, stroff, strsize
        return None
