"""Fixed 1024-byte DV header and the values derived from it."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Final

import numpy as np

from ._errors import DVOpenError, HeaderDecodeError
from ._pixel_types import ByteOrder, PixelType

if TYPE_CHECKING:
    from typing_extensions import Self

HEADER_SIZE: Final = 1024
MARKER_OFFSET: Final = 96
LITTLE_ENDIAN_MARKER: Final = b"\xa0\xc0"
BIG_ENDIAN_MARKER: Final = b"\xc0\xa0"
TITLE_LENGTH: Final = 80
MAX_TITLES: Final = 10

# Layout of the fixed header, in file order. Byte order is applied on decode.
HEADER_DTYPE: Final = np.dtype(
    [
        ("nx", "i4"),  # width
        ("ny", "i4"),  # height
        ("nz", "i4"),  # sections * waves * times
        ("mode", "i4"),  # pixel type
        ("nxst", "i4"),
        ("nyst", "i4"),
        ("nzst", "i4"),
        ("mx", "i4"),
        ("my", "i4"),
        ("mz", "i4"),
        ("xlen", "f4"),
        ("ylen", "f4"),
        ("zlen", "f4"),
        ("alpha", "f4"),
        ("beta", "f4"),
        ("gamma", "f4"),
        ("mapc", "i4"),
        ("mapr", "i4"),
        ("maps", "i4"),
        ("amin", "f4"),
        ("amax", "f4"),
        ("amean", "f4"),
        ("ispg", "i4"),
        ("inbsym", "i4"),  # extended header length in bytes
        ("dvid", "i2"),
        ("nblank", "i2"),
        ("ntst", "i4"),
        ("ibyte", "V24"),
        ("nint", "i2"),
        ("nreal", "i2"),
        ("nres", "i2"),
        ("nzfact", "i2"),
        ("min2", "f4"),
        ("max2", "f4"),
        ("min3", "f4"),
        ("max3", "f4"),
        ("min4", "f4"),
        ("max4", "f4"),
        ("file_type", "i2"),
        ("lens", "i2"),
        ("n1", "i2"),
        ("n2", "i2"),
        ("v1", "i2"),
        ("v2", "i2"),
        ("min5", "f4"),
        ("max5", "f4"),
        ("num_times", "i2"),
        ("interleaved", "i2"),
        ("tilt_x", "f4"),
        ("tilt_y", "f4"),
        ("tilt_z", "f4"),
        ("num_waves", "i2"),
        ("iwav1", "i2"),
        ("iwav2", "i2"),
        ("iwav3", "i2"),
        ("iwav4", "i2"),
        ("iwav5", "i2"),
        ("zorig", "f4"),
        ("xorig", "f4"),
        ("yorig", "f4"),
        ("nlab", "i4"),
        ("label", "S800"),
    ]
)
assert HEADER_DTYPE.itemsize == HEADER_SIZE

_BLOB_FIELDS = ("ibyte", "label")

_SEQUENCE_ORDERS: dict[int, str] = {0: "CTZ", 1: "TZC", 2: "TCZ"}
_DEFAULT_SEQUENCE_ORDER = "CTZ"

_IMAGE_KINDS: dict[int, str] = {
    0: "NORMAL",
    100: "NORMAL",
    1: "TILT_SERIES",
    2: "STEREO_TILT_SERIES",
    3: "AVERAGED_IMAGES",
    4: "AVERAGED_STEREO_PAIRS",
    5: "EM_TILT_SERIES",
    20: "MULTIPOSITION",
    8000: "PUPIL_FUNCTION",
}


def detect_byte_order(marker: bytes) -> ByteOrder:
    """Return the byte order indicated by the 2-byte marker at offset 96.

    Raises
    ------
    DVOpenError
        If `marker` is neither of the two recognized byte pairs.
    """
    marker = bytes(marker[:2])
    if marker == LITTLE_ENDIAN_MARKER:
        return "<"
    if marker == BIG_ENDIAN_MARKER:
        return ">"
    raise DVOpenError(f"Unrecognized DV marker {marker.hex()!r}")


@dataclass(frozen=True)
class DVHeader:
    """Decoded fixed header of a DV file.

    Field names follow the Priism/IVE header record. Everything that is not
    stored in the file (z count, axis order, image kind, ...) is derived on
    access.

    Use [`DVHeader.from_bytes`][dvfile.DVHeader.from_bytes] to decode.
    """

    nx: int
    ny: int
    nz: int
    mode: int
    nxst: int
    nyst: int
    nzst: int
    mx: int
    my: int
    mz: int
    xlen: float
    ylen: float
    zlen: float
    alpha: float
    beta: float
    gamma: float
    mapc: int
    mapr: int
    maps: int
    amin: float
    amax: float
    amean: float
    ispg: int
    inbsym: int
    dvid: int
    nblank: int
    ntst: int
    ibyte: bytes
    nint: int
    nreal: int
    nres: int
    nzfact: int
    min2: float
    max2: float
    min3: float
    max3: float
    min4: float
    max4: float
    file_type: int
    lens: int
    n1: int
    n2: int
    v1: int
    v2: int
    min5: float
    max5: float
    num_times: int
    interleaved: int
    tilt_x: float
    tilt_y: float
    tilt_z: float
    num_waves: int
    iwav1: int
    iwav2: int
    iwav3: int
    iwav4: int
    iwav5: int
    zorig: float
    xorig: float
    yorig: float
    nlab: int
    label: bytes
    byteorder: ByteOrder = "<"

    @classmethod
    def from_bytes(
        cls, data: bytes | bytearray | memoryview, byteorder: ByteOrder | None = None
    ) -> Self:
        """Decode the header from the first 1024 bytes of a DV file.

        Parameters
        ----------
        data : bytes-like
            At least 1024 bytes, starting at file offset 0.
        byteorder : {"<", ">"}, optional
            Byte order of multi-byte fields. If omitted, it is detected from
            the marker at offset 96.

        Raises
        ------
        HeaderDecodeError
            If fewer than 1024 bytes are given.
        DVOpenError
            If `byteorder` is omitted and the marker is not recognized.
        """
        data = bytes(data)
        if len(data) < HEADER_SIZE:
            raise HeaderDecodeError(
                f"DV header needs {HEADER_SIZE} bytes, got {len(data)}"
            )
        if byteorder is None:
            byteorder = detect_byte_order(data[MARKER_OFFSET : MARKER_OFFSET + 2])

        dtype = HEADER_DTYPE.newbyteorder(byteorder)
        rec = np.frombuffer(data, dtype=dtype, count=1)[0]
        values = {
            name: rec[name].item()
            for name in HEADER_DTYPE.names  # type: ignore[union-attr]
            if name not in _BLOB_FIELDS
        }
        # numpy strips trailing NULs from S fields; keep the raw blobs instead
        for name in _BLOB_FIELDS:
            offset = HEADER_DTYPE.fields[name][1]  # type: ignore[index]
            size = HEADER_DTYPE.fields[name][0].itemsize  # type: ignore[index]
            values[name] = data[offset : offset + size]
        return cls(**values, byteorder=byteorder)

    # ------------------------------------------------------------------
    # derived values
    # ------------------------------------------------------------------

    @property
    def wave_count(self) -> int:
        """Number of wavelengths (a stored 0 counts as 1)."""
        return max(self.num_waves, 1)

    @property
    def time_count(self) -> int:
        """Number of time points (a stored 0 counts as 1)."""
        return max(self.num_times, 1)

    @property
    def real_z_count(self) -> int:
        """Number of z sections per (time, wavelength)."""
        return self.nz // self.wave_count // self.time_count

    @property
    def sequence_order(self) -> str:
        """Three-letter C/T/Z order selected by the interleave code."""
        return _SEQUENCE_ORDERS.get(self.interleaved, _DEFAULT_SEQUENCE_ORDER)

    @property
    def axis_order(self) -> str:
        """Logical axis labels, e.g. "CTZYX".

        This is a label only: planes are always stored time-major, then
        wavelength, then section.
        """
        return self.sequence_order + "YX"

    @property
    def image_kind(self) -> str:
        """Image type label for the `file_type` code."""
        return _IMAGE_KINDS.get(self.file_type, "UNKNOWN")

    @property
    def axis_sizes(self) -> dict[str, int]:
        """Mapping of axis name to extent, ordered as in `axis_order`."""
        extents = {
            "T": self.time_count,
            "C": self.wave_count,
            "Z": self.real_z_count,
            "Y": self.ny,
            "X": self.nx,
        }
        return {axis: extents[axis] for axis in self.axis_order}

    @property
    def pixel_type(self) -> PixelType:
        """Pixel type of the image data.

        Raises ValueError if `mode` is not a defined pixel type.
        """
        return PixelType(self.mode)

    @property
    def pixel_size(self) -> int:
        """Bytes per pixel."""
        return self.pixel_type.itemsize

    @property
    def plane_nbytes(self) -> int:
        """Bytes in one ny * nx plane."""
        return self.nx * self.ny * self.pixel_size

    @property
    def data_offset(self) -> int:
        """File offset of the first plane (after the extended header)."""
        return HEADER_SIZE + self.inbsym

    @property
    def wavelengths(self) -> tuple[int, ...]:
        """Stored emission wavelengths (nm), one per wavelength channel."""
        waves = (self.iwav1, self.iwav2, self.iwav3, self.iwav4, self.iwav5)
        return waves[: min(self.num_waves, len(waves))]

    @property
    def wave_min_max(self) -> tuple[tuple[float, float], ...]:
        """(min, max) intensity per wavelength channel."""
        ranges = (
            (self.amin, self.amax),
            (self.min2, self.max2),
            (self.min3, self.max3),
            (self.min4, self.max4),
            (self.min5, self.max5),
        )
        return ranges[: min(self.wave_count, len(ranges))]

    @property
    def titles(self) -> list[str]:
        """The first `nlab` 80-character titles, right-stripped."""
        n = min(max(self.nlab, 0), MAX_TITLES)
        return [
            self.label[i * TITLE_LENGTH : (i + 1) * TITLE_LENGTH]
            .decode("latin-1")
            .rstrip("\x00 ")
            for i in range(n)
        ]

    def summary(self) -> str:
        """Return a human-readable multi-line description of the header."""
        try:
            ptype = self.pixel_type
        except ValueError:
            pixel = f"{self.mode} (unknown)"
            nbytes = "?"
        else:
            pixel = f"{self.mode} ({ptype.name})"
            nbytes = str(ptype.itemsize)
        lines = [
            "Header:",
            f"  Dimensions: {self.ny}x{self.nx}x{self.real_z_count}",
            f"  Number of wavelengths: {self.num_waves}",
            f"  Number of time points: {self.num_times}",
            f"  Pixel type: {pixel}",
            f"  Bytes per pixel: {nbytes}",
            f"  Pixel spacing: {self.xlen:g}x{self.ylen:g}x{self.zlen:g}",
            f"  mxyz: {self.mx}x{self.my}x{self.mz}",
            f"  Cell angles: {self.alpha:g}x{self.beta:g}x{self.gamma:g}",
            f"  Min/Max/Mean: {self.amin:g}/{self.amax:g}/{self.amean:g}",
            f"  Image type: {self.image_kind}",
            f"  Sequence order: {self.sequence_order}",
        ]
        return "\n".join(lines)
