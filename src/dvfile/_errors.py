"""Exceptions and warnings raised by dvfile."""

from __future__ import annotations


class DVFileError(Exception):
    """Base exception for all dvfile errors."""


class DVOpenError(DVFileError, OSError):
    """Raised when a file cannot be opened or is not a recognized DV file."""


class HeaderDecodeError(DVFileError, ValueError):
    """Raised when the fixed header cannot be decoded from the given bytes."""


class ClosedFileError(DVFileError, RuntimeError):
    """Raised when reading from a file that is not open."""


class CoordinateOutOfRangeError(DVFileError, IndexError):
    """Raised when a time, wavelength or section index exceeds its extent.

    Attributes
    ----------
    axis : str
        Name of the offending axis ("time", "wavelength" or "section").
    index : int
        The requested index.
    size : int
        The number of valid indices along `axis`.
    """

    def __init__(self, axis: str, index: int, size: int) -> None:
        self.axis = axis
        self.index = index
        self.size = size
        super().__init__(
            f"{axis.capitalize()} index {index} out of range (size {size})"
        )


class ShortReadError(DVFileError, OSError):
    """Raised when fewer bytes than a full plane could be read."""


class UnsupportedOperationError(DVFileError, NotImplementedError):
    """Raised by legacy write/extended-header operations that are not implemented."""


class HandleNotFoundError(DVFileError, KeyError):
    """Raised when a handle id is not registered in a HandleTable."""

    def __str__(self) -> str:
        # KeyError repr()s its argument; keep the plain message
        return str(self.args[0]) if self.args else ""


class UnsupportedOperationWarning(UserWarning):
    """Warning issued by legacy toggles that are accepted but have no effect."""
