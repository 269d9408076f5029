"""Pixel type codes used by the DV header `mode` field."""

from __future__ import annotations

from enum import IntEnum
from typing import Literal

import numpy as np

ByteOrder = Literal["<", ">"]


class PixelType(IntEnum):
    """Sample encoding of the image data.

    Codes 3 and 4 are complex types: two signed 16-bit integers and two
    32-bit floats per pixel, respectively. Code 5 is the EM variant of
    signed 16-bit data and reads identically to code 1.
    """

    UINT8 = 0
    INT16 = 1
    FLOAT32 = 2
    COMPLEX_INT16 = 3
    COMPLEX64 = 4
    INT16_ALT = 5
    UINT16 = 6
    INT32 = 7

    @property
    def itemsize(self) -> int:
        """Number of bytes per pixel."""
        return _PIXEL_TYPE_SIZES[self]

    def dtype(self, byteorder: ByteOrder = "<") -> np.dtype:
        """Return the numpy dtype of one pixel in the given byte order."""
        dt = np.dtype(_PIXEL_TYPE_DTYPES[self])
        return dt.newbyteorder(byteorder)


_PIXEL_TYPE_SIZES: dict[PixelType, int] = {
    PixelType.UINT8: 1,
    PixelType.INT16: 2,
    PixelType.FLOAT32: 4,
    PixelType.COMPLEX_INT16: 2 * 2,
    PixelType.COMPLEX64: 2 * 4,
    PixelType.INT16_ALT: 2,
    PixelType.UINT16: 2,
    PixelType.INT32: 4,
}

# there is no numpy complex-int type, so code 3 is a (real, imag) record
_PIXEL_TYPE_DTYPES: dict[PixelType, str | list[tuple[str, str]]] = {
    PixelType.UINT8: "u1",
    PixelType.INT16: "i2",
    PixelType.FLOAT32: "f4",
    PixelType.COMPLEX_INT16: [("real", "i2"), ("imag", "i2")],
    PixelType.COMPLEX64: "c8",
    PixelType.INT16_ALT: "i2",
    PixelType.UINT16: "u2",
    PixelType.INT32: "i4",
}


def pixel_type_size(code: int) -> int:
    """Return the byte width of pixel type `code`.

    Raises
    ------
    ValueError
        If `code` is not one of the defined pixel types.
    """
    return PixelType(code).itemsize
