"""Symbol extraction and deduplication.

Containers commonly list several names for one address (aliases, inlined
or identical-code-folded functions). Each address is kept once.
"""

import logging
from typing import List, Sequence

from .formats.base import RawSymbolEntry, SymbolTable

logger = logging.getLogger(__name__)


def _prefer(candidate: RawSymbolEntry, current: RawSymbolEntry) -> bool:
    """True if ``candidate`` should replace ``current`` at the same address.

    Larger size wins, so a zero-size alias never hides a sized entry.
    Among equal sizes a named entry beats an unnamed one, then the
    lexicographically first name wins.
    """
    if candidate.size != current.size:
        return candidate.size > current.size
    if bool(candidate.name) != bool(current.name):
        return bool(candidate.name)
    return candidate.name < current.name


def deduplicate(entries: Sequence[RawSymbolEntry]) -> List[RawSymbolEntry]:
    """Collapse entries sharing an address; output is in ascending address order."""
    # Sort indices, not records, then compare each entry with its predecessor.
    order = sorted(range(len(entries)), key=lambda i: entries[i].address)

    result: List[RawSymbolEntry] = []
    best = None
    for index in order:
        entry = entries[index]
        if best is not None and entry.address == best.address:
            if _prefer(entry, best):
                best = entry
            continue
        if best is not None:
            result.append(best)
        best = entry
    if best is not None:
        result.append(best)
    return result


def extract_symbols(table: SymbolTable) -> List[RawSymbolEntry]:
    """Restrict ``table`` to its section and deduplicate by address."""
    in_section = [e for e in table.entries if e.section == table.section]
    unique = deduplicate(in_section)
    if len(unique) != len(in_section):
        logger.debug("Collapsed %d duplicate-address entries in %s",
                     len(in_section) - len(unique), table.section)
    return unique
