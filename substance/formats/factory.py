"""Container detection and dispatch."""

import logging
import mmap
import os
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional, Union

from ..errors import BinaryReadError, UnsupportedFormatError
from .base import ContainerFormat, SymbolTable
from .elf import ElfFormat
from .macho import MachOFormat
from .pdb import PdbFormat
from .pe import PeFormat

logger = logging.getLogger(__name__)

# Order matters only for readability; the signatures are disjoint.
FORMATS = (PdbFormat, ElfFormat, MachOFormat, PeFormat)

_FAT_MAGICS = (b"\xca\xfe\xba\xbe", b"\xbe\xba\xfe\xca")


def detect_format(data) -> ContainerFormat:
    """Pick the container parser whose signature matches ``data``.

    Raises:
        UnsupportedFormatError: If no signature matches
    """
    for fmt in FORMATS:
        if fmt.matches(data):
            logger.debug("Detected %s container", fmt.name)
            return fmt()
    if bytes(data[:4]) in _FAT_MAGICS:
        raise UnsupportedFormatError(
            "Universal (fat) Mach-O images are not supported; extract a single architecture first"
        )
    raise UnsupportedFormatError(
        f"Unrecognized binary format (leading bytes: {bytes(data[:4]).hex() or '<empty>'})"
    )


def read_symbol_table(data, section: str, companion=None) -> SymbolTable:
    """Detect the container type and return its raw symbols for ``section``.

    Args:
        data: Container bytes; for PDB input this is the PDB itself
        section: Section selector (``.text`` by default in AnalysisConfig)
        companion: Executable bytes when ``data`` is a PDB
    """
    return detect_format(data).read_symbols(data, section, companion=companion)


def read_pdb_symbol_table(pdb_data, exe_data, section: str) -> SymbolTable:
    """Read symbols for ``exe_data`` from its PDB ``pdb_data``."""
    if not PdbFormat.matches(pdb_data):
        raise UnsupportedFormatError("Debug companion is not an MSF 7.00 PDB file")
    return PdbFormat().read_symbols(pdb_data, section, companion=exe_data)


@contextmanager
def map_binary(path: Union[str, Path]) -> Iterator[Union[mmap.mmap, bytes]]:
    """Memory-map ``path`` read-only for the duration of the ``with`` block.

    Raises:
        BinaryReadError: If the file cannot be opened or mapped
    """
    try:
        handle = open(path, "rb")
    except OSError as exc:
        raise BinaryReadError(f"Unable to open binary '{path}': {exc}") from exc

    with handle:
        try:
            size = os.fstat(handle.fileno()).st_size
            # mmap refuses zero-length files.
            mapped = mmap.mmap(handle.fileno(), 0, access=mmap.ACCESS_READ) if size else None
        except (OSError, ValueError) as exc:
            raise BinaryReadError(f"Unable to map binary '{path}': {exc}") from exc

        if mapped is None:
            yield b""
            return
        try:
            yield mapped
        finally:
            mapped.close()


def load_symbol_table(binary: Union[str, Path], section: str,
                      pdb: Optional[Union[str, Path]] = None) -> SymbolTable:
    """Map ``binary`` (and its ``pdb``, if any) and read the symbol table."""
    with map_binary(binary) as exe_data:
        if pdb is None:
            return read_symbol_table(exe_data, section)
        with map_binary(pdb) as pdb_data:
            return read_pdb_symbol_table(pdb_data, exe_data, section)
