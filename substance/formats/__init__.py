"""Binary container parsers for substance.

Provides a uniform raw symbol table for:
- ELF (32/64-bit)
- Mach-O (32/64-bit thin images)
- PE/COFF executables
- PDB debug files paired with their PE executable
"""

from .base import ContainerFormat, RawSymbolEntry, SymbolTable
from .elf import ElfFormat
from .macho import MachOFormat
from .pe import PeFormat
from .pdb import PdbFormat
from .factory import (
    detect_format,
    load_symbol_table,
    map_binary,
    read_pdb_symbol_table,
    read_symbol_table,
)

__all__ = [
    'ContainerFormat',
    'RawSymbolEntry',
    'SymbolTable',
    'ElfFormat',
    'MachOFormat',
    'PeFormat',
    'PdbFormat',
    'detect_format',
    'load_symbol_table',
    'map_binary',
    'read_pdb_symbol_table',
    'read_symbol_table',
]
