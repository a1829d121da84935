"""Exception types raised by plot3dvtk readers and writers."""

from typing import Optional


class Plot3dVtkError(Exception):
    """Base class for all plot3dvtk errors."""


class ConfigurationError(Plot3dVtkError, ValueError):
    """Raised when a reader or writer is configured with invalid options.

    Examples are an unsupported dimensionality, an unsupported VTK file type,
    or requesting ascii output together with appended data.
    """


class MalformedStreamError(Plot3dVtkError, IOError):
    """Raised when an input stream cannot be parsed.

    Attributes:
        line_number: 1-based line reached when the error occurred (ascii
            input only, ``None`` for binary input)
    """

    def __init__(self, message: str, line_number: Optional[int] = None):
        self.line_number = line_number
        if line_number is not None:
            message = f"{message} (line {line_number})"
        super().__init__(message)


class RecordMismatchError(MalformedStreamError):
    """Raised when the trailing marker of a Fortran record differs from the leading one."""

    def __init__(self, expected: int, found: int):
        self.expected = expected
        self.found = found
        super().__init__(f"Record marker mismatch: opened with {expected} bytes, closed with {found}")


class WriterStateError(Plot3dVtkError, RuntimeError):
    """Raised when writer methods are called out of order."""
