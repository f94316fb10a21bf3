"""substance: attribute the bytes of a compiled binary to the crates that produced them."""

__version__ = "0.4.0"

from .analyzer import AnalysisResult, CrateSize, Symbol, aggregate, analyze, analyze_table
from .compare import AnalysisComparison, CrateChange, FileSizeDiff, SymbolChange, compare
from .config import AnalysisConfig
from .context import Artifact, BuildContext
from .demangle import DecodedName, ManglingScheme, decode_name, demangle
from .errors import (
    BinaryReadError,
    BuildContextError,
    IncompatibleResultsError,
    MalformedContainerError,
    SectionNotFoundError,
    SubstanceError,
    UnsupportedFormatError,
)
from .resolver import STD_GROUP, UNKNOWN_CRATE, CrateResolver, resolve_crate, resolve_symbols

__all__ = [
    'AnalysisComparison',
    'AnalysisConfig',
    'AnalysisResult',
    'Artifact',
    'BinaryReadError',
    'BuildContext',
    'BuildContextError',
    'CrateChange',
    'CrateResolver',
    'CrateSize',
    'DecodedName',
    'FileSizeDiff',
    'IncompatibleResultsError',
    'MalformedContainerError',
    'ManglingScheme',
    'STD_GROUP',
    'SectionNotFoundError',
    'SubstanceError',
    'Symbol',
    'SymbolChange',
    'UNKNOWN_CRATE',
    'UnsupportedFormatError',
    'aggregate',
    'analyze',
    'analyze_table',
    'compare',
    'decode_name',
    'demangle',
    'resolve_crate',
    'resolve_symbols',
]
