"""Before/after comparison of two analysis results."""

import json
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from .analyzer import AnalysisResult
from .errors import IncompatibleResultsError


def _absolute_change(before: Optional[int], after: Optional[int]) -> Optional[int]:
    if before is None or after is None:
        return None
    return after - before


def _percent_change(before: Optional[int], after: Optional[int]) -> Optional[float]:
    if before is None or after is None or before == 0:
        return None
    return (after - before) / before * 100


def _status(before: Optional[int], after: Optional[int]) -> str:
    if before is None:
        return "added"
    if after is None:
        return "removed"
    if after > before:
        return "grown"
    if after < before:
        return "shrunk"
    return "unchanged"


@dataclass(frozen=True)
class FileSizeDiff:
    """File and section sizes of both snapshots."""
    file_size_before: int
    file_size_after: int
    section_size_before: int
    section_size_after: int

    @property
    def file_size_change(self) -> int:
        return self.file_size_after - self.file_size_before

    @property
    def section_size_change(self) -> int:
        return self.section_size_after - self.section_size_before

    def file_percent_change(self) -> Optional[float]:
        return _percent_change(self.file_size_before, self.file_size_after)

    def section_percent_change(self) -> Optional[float]:
        return _percent_change(self.section_size_before, self.section_size_after)


@dataclass(frozen=True)
class SymbolChange:
    """One symbol in either snapshot; a missing side is ``None``."""
    name: str
    demangled: str
    size_before: Optional[int]
    size_after: Optional[int]

    def absolute_change(self) -> Optional[int]:
        return _absolute_change(self.size_before, self.size_after)

    def percent_change(self) -> Optional[float]:
        return _percent_change(self.size_before, self.size_after)

    @property
    def status(self) -> str:
        return _status(self.size_before, self.size_after)


@dataclass(frozen=True)
class CrateChange:
    """One crate in either snapshot; a missing side is ``None``."""
    name: str
    size_before: Optional[int]
    size_after: Optional[int]

    def absolute_change(self) -> Optional[int]:
        return _absolute_change(self.size_before, self.size_after)

    def percent_change(self) -> Optional[float]:
        return _percent_change(self.size_before, self.size_after)

    @property
    def status(self) -> str:
        return _status(self.size_before, self.size_after)


def _net_change(before: Optional[int], after: Optional[int]) -> int:
    """Delta treating a missing side as zero bytes (for ranking only)."""
    return (after or 0) - (before or 0)


@dataclass(frozen=True)
class AnalysisComparison:
    """Complete diff of two results: every symbol and crate from both sides."""
    file_size_diff: FileSizeDiff
    symbol_changes: Tuple[SymbolChange, ...]
    crate_changes: Tuple[CrateChange, ...]

    def changed_symbols(self) -> List[SymbolChange]:
        return [c for c in self.symbol_changes if c.status != "unchanged"]

    def changed_crates(self) -> List[CrateChange]:
        return [c for c in self.crate_changes if c.status != "unchanged"]

    def top_growth(self, count: int) -> List[SymbolChange]:
        """Symbols that grew the most (new symbols count as growth from zero)."""
        grown = [c for c in self.symbol_changes
                 if _net_change(c.size_before, c.size_after) > 0]
        grown.sort(key=lambda c: (-_net_change(c.size_before, c.size_after), c.name))
        return grown[:count]

    def format_summary(self) -> str:
        """Format human-readable summary."""
        diff = self.file_size_diff
        lines = [
            f"File size: {diff.file_size_before} -> {diff.file_size_after} "
            f"({_format_delta(diff.file_size_change, diff.file_percent_change())})",
            f"Section size: {diff.section_size_before} -> {diff.section_size_after} "
            f"({_format_delta(diff.section_size_change, diff.section_percent_change())})",
        ]

        counts = {"added": 0, "removed": 0, "grown": 0, "shrunk": 0}
        for change in self.symbol_changes:
            if change.status in counts:
                counts[change.status] += 1
        lines.append(
            f"Symbols: +{counts['added']} -{counts['removed']} "
            f"grown {counts['grown']} shrunk {counts['shrunk']}"
        )

        ranked = sorted(self.changed_crates(),
                        key=lambda c: (-abs(_net_change(c.size_before, c.size_after)), c.name))
        for change in ranked:
            before = "-" if change.size_before is None else str(change.size_before)
            after = "-" if change.size_after is None else str(change.size_after)
            delta = _format_delta(_net_change(change.size_before, change.size_after),
                                  change.percent_change())
            lines.append(f"  {change.name}: {before} -> {after} ({delta})")
        return "\n".join(lines)

    def to_dict(self) -> dict:
        """Export as JSON-serializable dict"""
        diff = self.file_size_diff
        return {
            "file_size": {"before": diff.file_size_before, "after": diff.file_size_after},
            "section_size": {"before": diff.section_size_before, "after": diff.section_size_after},
            "symbols": [
                {"name": c.name, "demangled": c.demangled,
                 "before": c.size_before, "after": c.size_after}
                for c in self.symbol_changes
            ],
            "crates": [
                {"name": c.name, "before": c.size_before, "after": c.size_after}
                for c in self.crate_changes
            ],
        }

    def to_json(self, indent: Optional[int] = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)


def _format_delta(delta: int, percent: Optional[float]) -> str:
    text = f"{delta:+d} B"
    if percent is not None:
        text += f", {percent:+.1f}%"
    return text


def _sizes_by_name(result: AnalysisResult) -> Tuple[Dict[str, int], Dict[str, str]]:
    # Local symbols may repeat a name at different addresses; their bytes add up.
    sizes: Dict[str, int] = {}
    demangled: Dict[str, str] = {}
    for sym in result.symbols:
        sizes[sym.name] = sizes.get(sym.name, 0) + sym.size
        demangled.setdefault(sym.name, sym.demangled)
    return sizes, demangled


def compare(before: AnalysisResult, after: AnalysisResult) -> AnalysisComparison:
    """Diff two results by symbol name and by crate name.

    Raises:
        IncompatibleResultsError: If one result groups the standard library
            and the other splits it, so crate names do not line up
    """
    if before.split_std != after.split_std:
        raise IncompatibleResultsError(
            "Cannot compare a split-std analysis with a grouped-std analysis; "
            "re-run both with the same split_std setting"
        )

    sizes_before, names_before = _sizes_by_name(before)
    sizes_after, names_after = _sizes_by_name(after)
    symbol_changes = tuple(
        SymbolChange(
            name=name,
            demangled=names_after.get(name) or names_before.get(name, name),
            size_before=sizes_before.get(name),
            size_after=sizes_after.get(name),
        )
        for name in sorted(set(sizes_before) | set(sizes_after))
    )

    crates_before = before.crate_sizes()
    crates_after = after.crate_sizes()
    crate_changes = tuple(
        CrateChange(
            name=name,
            size_before=crates_before.get(name),
            size_after=crates_after.get(name),
        )
        for name in sorted(set(crates_before) | set(crates_after))
    )

    return AnalysisComparison(
        file_size_diff=FileSizeDiff(
            file_size_before=before.file_size,
            file_size_after=after.file_size,
            section_size_before=before.section_size,
            section_size_after=after.section_size,
        ),
        symbol_changes=symbol_changes,
        crate_changes=crate_changes,
    )
