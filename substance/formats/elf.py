"""ELF container support (32/64-bit, both byte orders) via pyelftools."""

import io
import logging
import struct
from typing import Optional

from elftools.common.exceptions import ELFError
from elftools.elf.elffile import ELFFile
from elftools.elf.sections import SymbolTableSection

from ..errors import MalformedContainerError, SectionNotFoundError, SubstanceError
from .base import ContainerFormat, RawSymbolEntry, SymbolTable

logger = logging.getLogger(__name__)


def _as_stream(data):
    """pyelftools wants a seekable stream; mmap already is one."""
    if isinstance(data, (bytes, bytearray, memoryview)):
        return io.BytesIO(data)
    data.seek(0)
    return data


class ElfFormat(ContainerFormat):
    """Reads ``.symtab`` (or ``.dynsym`` for stripped images)."""

    name = "ELF"
    MAGIC = b"\x7fELF"
    KEPT_TYPES = ("STT_FUNC", "STT_OBJECT")

    @classmethod
    def matches(cls, data) -> bool:
        return bytes(data[:4]) == cls.MAGIC

    def read_symbols(self, data, section: str,
                     companion: Optional[bytes] = None) -> SymbolTable:
        try:
            return self._read(data, section)
        except SubstanceError:
            raise
        except (ELFError, struct.error, ValueError, EOFError, IndexError) as exc:
            raise MalformedContainerError(self.name, str(exc)) from exc

    def _read(self, data, section: str) -> SymbolTable:
        elf = ELFFile(_as_stream(data))

        section_index = None
        target = None
        names = []
        for index, sect in enumerate(elf.iter_sections()):
            if sect.name:
                names.append(sect.name)
            if target is None and sect.name == section:
                section_index, target = index, sect
        if target is None:
            raise SectionNotFoundError(section, names)

        symtab = elf.get_section_by_name(".symtab")
        if not isinstance(symtab, SymbolTableSection):
            symtab = elf.get_section_by_name(".dynsym")

        entries = []
        if not isinstance(symtab, SymbolTableSection):
            logger.warning("ELF image has no symbol table (stripped?); no symbols reported")
        else:
            for sym in symtab.iter_symbols():
                if sym["st_shndx"] != section_index:
                    continue
                if sym["st_info"]["type"] not in self.KEPT_TYPES:
                    continue
                entries.append(RawSymbolEntry(
                    address=sym["st_value"],
                    size=sym["st_size"],
                    section=section,
                    name=sym.name,
                ))

        logger.debug("ELF%d: %d symbols in %s (%s)",
                     elf.elfclass, len(entries), section, symtab.name if symtab else "-")
        return SymbolTable(
            format_name=f"ELF{elf.elfclass}",
            section=section,
            section_size=target["sh_size"],
            file_size=len(data),
            entries=entries,
        )
