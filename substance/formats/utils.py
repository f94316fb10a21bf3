"""Helpers shared by the struct-based container parsers."""

import struct
from typing import List, Tuple

from ..errors import MalformedContainerError
from .base import RawSymbolEntry


def unpack_from(fmt: str, data, offset: int, format_name: str) -> Tuple:
    """Unpack ``fmt`` at ``offset``, failing as a malformed container.

    Raises:
        MalformedContainerError: If the read runs past the buffer or
            ``offset`` is negative
    """
    size = struct.calcsize(fmt)
    if offset < 0 or offset + size > len(data):
        raise MalformedContainerError(
            format_name,
            f"read of {size} bytes at offset {offset:#x} exceeds file size {len(data):#x}"
        )
    return struct.unpack_from(fmt, data, offset)


def read_cstring(data, offset: int, format_name: str, limit: int = -1) -> str:
    """Read a NUL-terminated string starting at ``offset``.

    ``limit`` bounds the search (exclusive end offset); -1 means end of data.
    """
    end_bound = len(data) if limit < 0 else min(limit, len(data))
    if offset < 0 or offset > end_bound:
        raise MalformedContainerError(
            format_name, f"string offset {offset:#x} out of bounds"
        )
    end = offset
    while end < end_bound and data[end] != 0:
        end += 1
    return bytes(data[offset:end]).decode("utf-8", errors="replace")


def fixed_name(raw: bytes) -> str:
    """Decode a fixed-width, NUL-padded name field (segment/section names)."""
    return raw.split(b"\0", 1)[0].decode("ascii", errors="replace")


def assign_gap_sizes(entries: List[RawSymbolEntry], section_start: int,
                     section_end: int) -> None:
    """Fill in sizes for containers that do not record them.

    Each symbol extends to the next distinct address in the section; the
    last one extends to the section end. Aliases at the same address all
    receive the same size.
    """
    addresses = sorted({e.address for e in entries})
    next_address = {}
    for current, following in zip(addresses, addresses[1:] + [section_end]):
        next_address[current] = max(0, following - current)
    for entry in entries:
        if section_start <= entry.address < section_end:
            entry.size = next_address[entry.address]
        else:
            entry.size = 0
