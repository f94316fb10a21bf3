"""PDB (MSF 7.00) debug-symbol support.

A PDB holds no code of its own: procedure records give addresses and
sizes, public records give the mangled names, and the file size is taken
from the companion executable the PDB was produced for.

Layout references: LLVM "The PDB File Format" documentation (MSF, DBI
stream, module info substream, CodeView symbol records).
"""

import logging
from typing import Dict, Iterator, List, Optional, Tuple

from ..errors import MalformedContainerError, SectionNotFoundError, UnsupportedFormatError
from .base import ContainerFormat, RawSymbolEntry, SymbolTable
from .pe import PeFormat, parse_section_headers, read_pe_headers
from .utils import read_cstring, unpack_from

logger = logging.getLogger(__name__)

MSF_MAGIC = b"Microsoft C/C++ MSF 7.00\r\n\x1aDS\0\0\0"
NIL_STREAM = 0xFFFF
NIL_STREAM_SIZE = 0xFFFFFFFF

DBI_STREAM = 3
DBI_HEADER_FORMAT = "<iIIHHHHHHiiiiiIiiHHI"
DBI_HEADER_SIZE = 64
MODULE_INFO_FIXED_SIZE = 64
DBG_HEADER_SECTION_HDR = 5

S_PUB32 = 0x110E
S_LPROC32 = 0x110F
S_GPROC32 = 0x1110
S_LPROC32_ID = 0x1146
S_GPROC32_ID = 0x1147
PROC_KINDS = (S_LPROC32, S_GPROC32, S_LPROC32_ID, S_GPROC32_ID)
CVPSF_CODE = 0x1
CVPSF_FUNCTION = 0x2


class MsfFile:
    """Multi-stream file container: reassembles streams from their blocks."""

    FORMAT = "PDB"

    def __init__(self, data):
        self.data = data
        (self.block_size, _, self.num_blocks, directory_bytes, _,
         block_map_addr) = unpack_from("<6I", data, len(MSF_MAGIC), self.FORMAT)
        if self.block_size not in (512, 1024, 2048, 4096):
            raise MalformedContainerError(self.FORMAT, f"invalid block size {self.block_size}")

        directory_blocks = self._block_count(directory_bytes)
        block_list = unpack_from(f"<{directory_blocks}I", data,
                                 self._block_offset(block_map_addr), self.FORMAT)
        directory = self._read_blocks(block_list, directory_bytes)

        (num_streams,) = unpack_from("<I", directory, 0, self.FORMAT)
        sizes = unpack_from(f"<{num_streams}I", directory, 4, self.FORMAT)
        offset = 4 + 4 * num_streams
        self._streams: List[Tuple[int, Tuple[int, ...]]] = []
        for size in sizes:
            if size == NIL_STREAM_SIZE:
                self._streams.append((0, ()))
                continue
            count = self._block_count(size)
            blocks = unpack_from(f"<{count}I", directory, offset, self.FORMAT)
            offset += 4 * count
            self._streams.append((size, blocks))

    def _block_count(self, size: int) -> int:
        return (size + self.block_size - 1) // self.block_size

    def _block_offset(self, block: int) -> int:
        offset = block * self.block_size
        if block >= self.num_blocks or offset + self.block_size > len(self.data):
            raise MalformedContainerError(self.FORMAT, f"block {block} out of range")
        return offset

    def _read_blocks(self, blocks, size: int) -> bytes:
        chunks = []
        for block in blocks:
            offset = self._block_offset(block)
            chunks.append(bytes(self.data[offset:offset + self.block_size]))
        return b"".join(chunks)[:size]

    @property
    def stream_count(self) -> int:
        return len(self._streams)

    def stream(self, index: int) -> bytes:
        if not 0 <= index < len(self._streams):
            raise MalformedContainerError(self.FORMAT, f"stream {index} does not exist")
        size, blocks = self._streams[index]
        return self._read_blocks(blocks, size)


def iter_symbol_records(stream: bytes, start: int, end: int) -> Iterator[Tuple[int, int]]:
    """Yield (kind, data offset) for each CodeView record in ``stream[start:end]``."""
    offset = start
    end = min(end, len(stream))
    while offset + 4 <= end:
        length, kind = unpack_from("<HH", stream, offset, MsfFile.FORMAT)
        if length < 2:
            raise MalformedContainerError(MsfFile.FORMAT, f"symbol record at {offset:#x} has length {length}")
        yield kind, offset + 4
        offset += 2 + length


class PdbFormat(ContainerFormat):
    """Reads procedure symbols from a PDB, correlated with its executable."""

    name = "PDB"

    @classmethod
    def matches(cls, data) -> bool:
        return bytes(data[:len(MSF_MAGIC)]) == MSF_MAGIC

    def read_symbols(self, data, section: str,
                     companion: Optional[bytes] = None) -> SymbolTable:
        if companion is None:
            raise UnsupportedFormatError(
                "PDB files contain no code; analyze the executable and pass the PDB alongside it"
            )
        if not PeFormat.matches(companion):
            raise UnsupportedFormatError("The executable paired with a PDB must be a PE image")
        read_pe_headers(companion)

        msf = MsfFile(data)
        dbi = msf.stream(DBI_STREAM)
        header = unpack_from(DBI_HEADER_FORMAT, dbi, 0, self.name)
        sym_record_stream = header[7]
        mod_info_size, sec_contr_size, sec_map_size, source_info_size, type_server_size = header[9:14]
        optional_dbg_size, ec_size = header[15], header[16]

        sections = self._read_section_headers(
            msf, dbi,
            DBI_HEADER_SIZE + mod_info_size + sec_contr_size + sec_map_size
            + source_info_size + type_server_size + ec_size,
            optional_dbg_size,
        )
        target_index = None
        for index, sect in enumerate(sections, start=1):
            if sect.name == section:
                target_index = index
                break
        if target_index is None:
            raise SectionNotFoundError(section, [s.name for s in sections])

        def to_rva(segment: int, offset: int) -> Optional[int]:
            if 1 <= segment <= len(sections):
                return sections[segment - 1].virtual_address + offset
            return None

        publics = self._read_publics(msf, sym_record_stream, to_rva)

        entries: List[RawSymbolEntry] = []
        for stream_index, sym_size in self._iter_modules(dbi, mod_info_size):
            stream = msf.stream(stream_index)
            # Records start after the 4-byte CV signature.
            for kind, offset in iter_symbol_records(stream, 4, sym_size):
                if kind not in PROC_KINDS:
                    continue
                fields = unpack_from("<IIIIIIIIHB", stream, offset, self.name)
                code_size, code_offset, segment = fields[3], fields[7], fields[8]
                if segment != target_index:
                    continue
                rva = to_rva(segment, code_offset)
                name = read_cstring(stream, offset + 35, self.name)
                entries.append(RawSymbolEntry(
                    address=rva,
                    size=code_size,
                    section=section,
                    name=publics.get(rva, name),
                ))

        target = sections[target_index - 1]
        logger.debug("PDB: %d procedures in %s, %d public names", len(entries), section, len(publics))
        return SymbolTable(
            format_name=self.name,
            section=section,
            section_size=target.virtual_size,
            file_size=len(companion),
            entries=entries,
        )

    def _read_section_headers(self, msf: MsfFile, dbi: bytes, offset: int, size: int):
        count = size // 2
        if count <= DBG_HEADER_SECTION_HDR:
            raise MalformedContainerError(self.name, "DBI stream has no section header stream")
        streams = unpack_from(f"<{count}H", dbi, offset, self.name)
        index = streams[DBG_HEADER_SECTION_HDR]
        if index == NIL_STREAM:
            raise MalformedContainerError(self.name, "DBI stream has no section header stream")
        raw = msf.stream(index)
        return parse_section_headers(raw, 0, len(raw) // 40, self.name)

    def _read_publics(self, msf: MsfFile, stream_index: int, to_rva) -> Dict[int, str]:
        publics: Dict[int, str] = {}
        if stream_index == NIL_STREAM:
            return publics
        stream = msf.stream(stream_index)
        for kind, offset in iter_symbol_records(stream, 0, len(stream)):
            if kind != S_PUB32:
                continue
            flags, pub_offset, segment = unpack_from("<IIH", stream, offset, self.name)
            if not flags & (CVPSF_CODE | CVPSF_FUNCTION):
                continue
            rva = to_rva(segment, pub_offset)
            if rva is not None:
                publics.setdefault(rva, read_cstring(stream, offset + 10, self.name))
        return publics

    def _iter_modules(self, dbi: bytes, mod_info_size: int) -> Iterator[Tuple[int, int]]:
        """Yield (symbol stream index, symbol byte size) for each module."""
        offset = DBI_HEADER_SIZE
        end = DBI_HEADER_SIZE + mod_info_size
        while offset + MODULE_INFO_FIXED_SIZE <= end:
            stream_index, sym_size = unpack_from("<HI", dbi, offset + 34, self.name)
            offset += MODULE_INFO_FIXED_SIZE
            for _ in range(2):  # module name, object file name
                while offset < end and dbi[offset] != 0:
                    offset += 1
                offset += 1
            offset = (offset + 3) & ~3
            if stream_index != NIL_STREAM and sym_size:
                yield stream_index, sym_size
