"""Binary size analysis.

This module ties the pipeline together: container parsing, deduplication,
crate attribution and aggregation into an :class:`AnalysisResult`.
"""

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple, Union

from .config import AnalysisConfig
from .context import BuildContext
from .demangle import demangle
from .extractor import extract_symbols
from .formats import load_symbol_table, read_pdb_symbol_table, read_symbol_table
from .formats.base import RawSymbolEntry, SymbolTable
from .resolver import CrateResolver

logger = logging.getLogger(__name__)

BinaryInput = Union[str, Path, bytes, bytearray, memoryview]


@dataclass(frozen=True)
class Symbol:
    """One deduplicated symbol with its crate attribution."""
    name: str
    demangled: str
    size: int
    address: int
    crate: str
    is_exact: bool  # True when taken from the build's symbol records

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "demangled": self.demangled,
            "size": self.size,
            "address": self.address,
            "crate": self.crate,
            "is_exact": self.is_exact,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Symbol":
        return cls(
            name=data["name"],
            demangled=data["demangled"],
            size=int(data["size"]),
            address=int(data["address"]),
            crate=data["crate"],
            is_exact=bool(data["is_exact"]),
        )


@dataclass(frozen=True)
class CrateSize:
    """Bytes attributed to one crate."""
    name: str
    size: int
    symbol_count: int


@dataclass(frozen=True)
class AnalysisResult:
    """Immutable snapshot of one binary's size composition.

    ``section_size`` is what the container declares for the analyzed
    section; ``symbols_size`` is what the symbols account for. The two
    are not reconciled: padding and unlisted code show up as the gap.
    """

    file_size: int
    section_size: int
    section_name: str
    format_name: str
    split_std: bool
    symbols: Tuple[Symbol, ...]
    crates: Tuple[CrateSize, ...]

    @property
    def symbols_size(self) -> int:
        return sum(s.size for s in self.symbols)

    @property
    def unaccounted_size(self) -> int:
        """Section bytes not covered by any symbol (negative if symbols overlap)."""
        return self.section_size - self.symbols_size

    def crate_size(self, name: str) -> int:
        for crate in self.crates:
            if crate.name == name:
                return crate.size
        return 0

    def crate_sizes(self) -> Dict[str, int]:
        return {c.name: c.size for c in self.crates}

    def symbols_for_crate(self, name: str) -> List[Symbol]:
        return [s for s in self.symbols if s.crate == name]

    def top_symbols(self, count: int) -> List[Symbol]:
        """Largest symbols first; ties broken by name for stable output."""
        ranked = sorted(self.symbols, key=lambda s: (-s.size, s.name, s.address))
        return ranked[:count]

    def top_crates(self, count: int) -> List[CrateSize]:
        return list(self.crates[:count])

    def exact_ratio(self) -> float:
        """Share of symbol bytes attributed from build records (0.0-1.0)."""
        total = self.symbols_size
        if not total:
            return 0.0
        return sum(s.size for s in self.symbols if s.is_exact) / total

    def to_dict(self) -> dict:
        """Export as JSON-serializable dict"""
        return {
            "file_size": self.file_size,
            "section_size": self.section_size,
            "section_name": self.section_name,
            "format": self.format_name,
            "split_std": self.split_std,
            "symbols": [s.to_dict() for s in self.symbols],
            "crates": [
                {"name": c.name, "size": c.size, "symbol_count": c.symbol_count}
                for c in self.crates
            ],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "AnalysisResult":
        # Crate totals are derived data; rebuild them rather than trust the input.
        symbols = [Symbol.from_dict(s) for s in data["symbols"]]
        return aggregate(
            symbols,
            file_size=int(data["file_size"]),
            section_size=int(data["section_size"]),
            section_name=data["section_name"],
            format_name=data.get("format", ""),
            split_std=bool(data.get("split_std", False)),
        )

    def to_json(self, indent: Optional[int] = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)

    @classmethod
    def from_json(cls, text: str) -> "AnalysisResult":
        return cls.from_dict(json.loads(text))


def aggregate(symbols: Sequence[Symbol], file_size: int, section_size: int,
              section_name: str, format_name: str = "",
              split_std: bool = False) -> AnalysisResult:
    """Group symbol sizes by crate and freeze everything into a result.

    Crates are ordered by size (largest first), then name.
    """
    totals: Dict[str, List[int]] = {}
    for sym in symbols:
        entry = totals.setdefault(sym.crate, [0, 0])
        entry[0] += sym.size
        entry[1] += 1
    crates = sorted(
        (CrateSize(name=name, size=size, symbol_count=count)
         for name, (size, count) in totals.items()),
        key=lambda c: (-c.size, c.name),
    )
    return AnalysisResult(
        file_size=file_size,
        section_size=section_size,
        section_name=section_name,
        format_name=format_name,
        split_std=split_std,
        symbols=tuple(symbols),
        crates=tuple(crates),
    )


def attribute_symbols(entries: Sequence[RawSymbolEntry], context: BuildContext,
                      config: AnalysisConfig, jobs: Optional[int] = None) -> List[Symbol]:
    """Attach demangled names and crate attribution to deduplicated entries."""
    resolver = CrateResolver(context, config)
    attributions = resolver.resolve_all((e.name for e in entries), jobs=jobs)
    return [
        Symbol(
            name=entry.name,
            demangled=demangle(entry.name) if entry.name else "",
            size=entry.size,
            address=entry.address,
            crate=crate,
            is_exact=is_exact,
        )
        for entry, (crate, is_exact) in zip(entries, attributions)
    ]


def analyze_table(table: SymbolTable, context: BuildContext,
                  config: Optional[AnalysisConfig] = None,
                  jobs: Optional[int] = None) -> AnalysisResult:
    """Analyze an already-parsed symbol table."""
    config = config or AnalysisConfig()
    context.validate()
    entries = extract_symbols(table)
    symbols = attribute_symbols(entries, context, config, jobs=jobs)
    result = aggregate(
        symbols,
        file_size=table.file_size,
        section_size=table.section_size,
        section_name=table.section,
        format_name=table.format_name,
        split_std=config.split_std,
    )
    logger.debug("%s: %d symbols, %d crates, %d of %d section bytes accounted",
                 table.format_name, len(result.symbols), len(result.crates),
                 result.symbols_size, result.section_size)
    return result


def analyze(binary: BinaryInput, context: BuildContext,
            config: Optional[AnalysisConfig] = None,
            pdb: Optional[BinaryInput] = None,
            jobs: Optional[int] = None) -> AnalysisResult:
    """Analyze a binary's size composition.

    Args:
        binary: Path to the binary, or its raw bytes
        context: Build metadata for crate attribution
        config: Analysis options (defaults to ``.text``, grouped std)
        pdb: PDB for ``binary`` (path or bytes) when it is an MSVC PE image
        jobs: Worker threads for symbol resolution

    Returns:
        AnalysisResult for the configured section

    Raises:
        BinaryReadError: If the file cannot be opened or mapped
        UnsupportedFormatError: If the container is not recognized
        MalformedContainerError: If the container structure is invalid
        SectionNotFoundError: If the configured section is absent
        BuildContextError: If ``context`` is unusable
    """
    config = config or AnalysisConfig()
    section = config.symbols_section

    if isinstance(binary, (bytes, bytearray, memoryview)):
        if pdb is None:
            table = read_symbol_table(binary, section)
        elif isinstance(pdb, (bytes, bytearray, memoryview)):
            table = read_pdb_symbol_table(pdb, binary, section)
        else:
            raise TypeError("pdb must be bytes when binary is given as bytes")
    else:
        if pdb is not None and isinstance(pdb, (bytes, bytearray, memoryview)):
            raise TypeError("pdb must be a path when binary is given as a path")
        table = load_symbol_table(binary, section, pdb=pdb)

    return analyze_table(table, context, config, jobs=jobs)
