"""Error types raised by substance.

Every failure surfaced to callers derives from :class:`SubstanceError` and
also from the closest built-in exception, so existing ``except ValueError``
or ``except OSError`` handlers keep working.
"""

from typing import Optional


class SubstanceError(Exception):
    """Base class for all substance errors."""


class BinaryReadError(SubstanceError, OSError):
    """The binary file could not be opened or mapped."""


class UnsupportedFormatError(SubstanceError, ValueError):
    """No known container signature matched the input."""


class MalformedContainerError(SubstanceError, ValueError):
    """The container signature matched but its structure is invalid."""

    def __init__(self, format_name: str, message: str):
        super().__init__(f"Malformed {format_name} container: {message}")
        self.format_name = format_name


class SectionNotFoundError(SubstanceError, LookupError):
    """The requested section does not exist in the container."""

    def __init__(self, section: str, available: Optional[list] = None):
        message = f"Section '{section}' not found"
        if available:
            message += f" (available: {', '.join(available)})"
        super().__init__(message)
        self.section = section
        self.available = list(available or [])


class BuildContextError(SubstanceError, ValueError):
    """The supplied build context is empty or inconsistent."""


class IncompatibleResultsError(SubstanceError, ValueError):
    """Two analysis results cannot be compared."""
