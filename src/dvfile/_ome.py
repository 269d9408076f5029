"""Build OME metadata from a DV header."""

from __future__ import annotations

from typing import TYPE_CHECKING

from ome_types import OME
from ome_types.model import Channel, Image, Pixels

from ._pixel_types import PixelType

if TYPE_CHECKING:
    from ._header import DVHeader

# OME has no complex-int type; code 3 is reported as float complex
_OME_PIXEL_TYPES: dict[PixelType, str] = {
    PixelType.UINT8: "uint8",
    PixelType.INT16: "int16",
    PixelType.FLOAT32: "float",
    PixelType.COMPLEX_INT16: "complex",
    PixelType.COMPLEX64: "complex",
    PixelType.INT16_ALT: "int16",
    PixelType.UINT16: "uint16",
    PixelType.INT32: "int32",
}


def header_to_ome(header: DVHeader, name: str | None = None) -> OME:
    """Return an `ome_types.OME` object with one Image described by `header`.

    Planes are stored T, then C, then Z, which is OME dimension order XYZCT.
    Physical sizes and emission wavelengths are only set when positive.
    """
    waves = header.wavelengths
    channels = []
    for c in range(header.wave_count):
        wave = waves[c] if c < len(waves) else 0
        if wave > 0:
            channels.append(Channel(name=f"{wave}nm", emission_wavelength=wave))
        else:
            channels.append(Channel(name=f"C{c}"))

    physical: dict[str, float] = {}
    for axis, size in (("x", header.xlen), ("y", header.ylen), ("z", header.zlen)):
        if size > 0:
            physical[f"physical_size_{axis}"] = size

    pixels = Pixels(
        dimension_order="XYZCT",
        type=_OME_PIXEL_TYPES[header.pixel_type],
        size_x=max(header.nx, 1),
        size_y=max(header.ny, 1),
        size_z=max(header.real_z_count, 1),
        size_c=header.wave_count,
        size_t=header.time_count,
        big_endian=header.byteorder == ">",
        channels=channels,
        **physical,
    )
    return OME(images=[Image(name=name, pixels=pixels)])
