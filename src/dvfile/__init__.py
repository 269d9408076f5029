"""Read DeltaVision (DV) microscopy image stacks."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("dvfile")
except PackageNotFoundError:  # pragma: no cover
    __version__ = "uninstalled"

from ._dvfile import DVFile
from ._errors import (
    ClosedFileError,
    CoordinateOutOfRangeError,
    DVFileError,
    DVOpenError,
    HandleNotFoundError,
    HeaderDecodeError,
    ShortReadError,
    UnsupportedOperationError,
    UnsupportedOperationWarning,
)
from ._handles import HandleTable, HeaderSummary
from ._header import HEADER_SIZE, DVHeader, detect_byte_order
from ._imread import imread, open_ome_zarr_group, open_zarr_array
from ._lazy_array import LazyDVArray
from ._pixel_types import PixelType, pixel_type_size

__all__ = [
    "HEADER_SIZE",
    "ClosedFileError",
    "CoordinateOutOfRangeError",
    "DVFile",
    "DVFileError",
    "DVHeader",
    "DVOpenError",
    "HandleNotFoundError",
    "HandleTable",
    "HeaderDecodeError",
    "HeaderSummary",
    "LazyDVArray",
    "PixelType",
    "ShortReadError",
    "UnsupportedOperationError",
    "UnsupportedOperationWarning",
    "__version__",
    "detect_byte_order",
    "imread",
    "open_ome_zarr_group",
    "open_zarr_array",
    "pixel_type_size",
]
