"""Base interface for binary container formats."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Optional


@dataclass
class RawSymbolEntry:
    """One symbol table entry as the container reports it."""
    address: int
    size: int
    section: str
    name: str


@dataclass
class SymbolTable:
    """Raw symbols of one section, plus the container's size metadata."""

    format_name: str
    section: str
    section_size: int
    file_size: int
    entries: List[RawSymbolEntry] = field(default_factory=list)


class ContainerFormat(ABC):
    """Abstract base class for container parsers.

    Each format (ELF, Mach-O, PE, PDB) implements this interface.
    """

    name: str = ""

    @classmethod
    @abstractmethod
    def matches(cls, data) -> bool:
        """Return True if ``data`` starts with this format's signature."""
        pass

    @abstractmethod
    def read_symbols(self, data, section: str,
                     companion: Optional[bytes] = None) -> SymbolTable:
        """Read the raw symbol table restricted to ``section``.

        Args:
            data: Container bytes (``bytes``, ``memoryview`` or ``mmap``)
            section: Section selector, e.g. ``.text``
            companion: Companion executable bytes (PDB only)

        Returns:
            SymbolTable with unsorted, possibly duplicated entries

        Raises:
            MalformedContainerError: If the structure is invalid
            SectionNotFoundError: If ``section`` does not exist
        """
        pass
