from __future__ import annotations

from typing import TYPE_CHECKING, Any

import numpy as np
import pytest

from dvfile import DVFile, PixelType
from dvfile._header import HEADER_DTYPE

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator
    from pathlib import Path

# -16224 == 0xC0A0: bytes A0 C0 little-endian, C0 A0 big-endian
DV_MARKER = -16224

SIMPLE_HEADER: dict[str, Any] = {
    "nx": 32,
    "ny": 32,
    "nz": 18,
    "mode": 6,
    "num_waves": 3,
    "num_times": 2,
    "mx": 1,
    "my": 1,
    "mz": 1,
    "xlen": 0.1,
    "ylen": 0.1,
    "zlen": 0.3,
    "alpha": 90.0,
    "beta": 90.0,
    "gamma": 90.0,
    "amin": 215.0,
    "amax": 1743.0,
    "amean": 775.83331,
    "interleaved": 2,
    "iwav1": 525,
    "iwav2": 605,
    "iwav3": 685,
    "nlab": 1,
    "label": b"test stack".ljust(80),
}


def expected_plane(index: int, ny: int, nx: int, dtype: np.dtype) -> np.ndarray:
    """Return the content written for physical plane `index`."""
    values = np.arange(ny * nx).reshape(ny, nx) % 50 + index * 3
    if dtype.fields is not None:
        plane = np.empty((ny, nx), dtype=dtype)
        plane["real"] = values
        plane["imag"] = -values
        return plane
    return values.astype(dtype)


def dv_bytes(
    byteorder: str = "<",
    ext_header: int = 0,
    n_planes: int | None = None,
    marker: int = DV_MARKER,
    **fields: Any,
) -> bytes:
    """Build a DV file in memory. `fields` override SIMPLE_HEADER values."""
    values = {**SIMPLE_HEADER, **fields}
    hdr = np.zeros((), dtype=HEADER_DTYPE.newbyteorder(byteorder))
    for name, value in values.items():
        hdr[name] = value
    hdr["inbsym"] = ext_header
    hdr["dvid"] = marker

    dtype = PixelType(values["mode"]).dtype(byteorder)  # type: ignore[arg-type]
    ny, nx = values["ny"], values["nx"]
    if n_planes is None:
        n_planes = values["nz"]
    planes = [expected_plane(k, ny, nx, dtype) for k in range(n_planes)]
    data = b"".join(p.tobytes() for p in planes)
    return hdr.tobytes() + bytes(range(256)) * (ext_header // 256) + (
        b"\x07" * (ext_header % 256)
    ) + data


@pytest.fixture
def make_dv(tmp_path: Path) -> Callable[..., Path]:
    """Return a factory writing a DV file to tmp_path and returning its path."""
    counter = iter(range(1_000_000))

    def _make(name: str | None = None, **kwargs: Any) -> Path:
        path = tmp_path / (name or f"stack_{next(counter)}.dv")
        path.write_bytes(dv_bytes(**kwargs))
        return path

    return _make


@pytest.fixture
def simple_file(make_dv: Callable[..., Path]) -> Path:
    """32x32 uint16, 3 z * 3 waves * 2 times, little-endian."""
    return make_dv("simple.dv")


@pytest.fixture
def big_endian_file(make_dv: Callable[..., Path]) -> Path:
    return make_dv("big.dv", byteorder=">")


@pytest.fixture
def extended_header_file(make_dv: Callable[..., Path]) -> Path:
    return make_dv("ext.dv", ext_header=1000)


@pytest.fixture
def opened_dvfile(simple_file: Path) -> Iterator[DVFile]:
    with DVFile(simple_file) as dv:
        yield dv
