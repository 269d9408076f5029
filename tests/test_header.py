from __future__ import annotations

import pytest

from conftest import dv_bytes
from dvfile import DVHeader, DVOpenError, HeaderDecodeError, PixelType, detect_byte_order
from dvfile._header import BIG_ENDIAN_MARKER, LITTLE_ENDIAN_MARKER


def test_detect_byte_order() -> None:
    assert detect_byte_order(LITTLE_ENDIAN_MARKER) == "<"
    assert detect_byte_order(BIG_ENDIAN_MARKER) == ">"
    for bad in (b"\x00\x00", b"\xa0\xa0", b"\xc0\xc0", b"\xff\xff"):
        with pytest.raises(DVOpenError):
            detect_byte_order(bad)


def test_marker_bytes_in_file() -> None:
    assert dv_bytes("<")[96:98] == b"\xa0\xc0"
    assert dv_bytes(">")[96:98] == b"\xc0\xa0"


def test_decode_simple_header() -> None:
    hdr = DVHeader.from_bytes(dv_bytes())
    assert hdr.byteorder == "<"
    assert (hdr.nx, hdr.ny, hdr.nz) == (32, 32, 18)
    assert (hdr.mx, hdr.my, hdr.mz) == (1, 1, 1)
    assert hdr.mode == 6
    assert hdr.pixel_type is PixelType.UINT16
    assert hdr.pixel_size == 2
    assert hdr.plane_nbytes == 32 * 32 * 2
    assert hdr.amin == 215
    assert hdr.amax == 1743
    assert hdr.amean == pytest.approx(775.83331)
    assert hdr.num_waves == 3
    assert hdr.num_times == 2
    assert hdr.real_z_count == 3
    assert hdr.wavelengths == (525, 605, 685)
    assert hdr.data_offset == 1024


def test_big_endian_header_matches_little_endian() -> None:
    little = DVHeader.from_bytes(dv_bytes("<"))
    big = DVHeader.from_bytes(dv_bytes(">"))
    assert big.byteorder == ">"
    assert (big.nx, big.ny, big.nz, big.mode) == (little.nx, little.ny, little.nz, 6)
    assert big.amean == little.amean
    assert big.wavelengths == little.wavelengths


def test_decode_is_idempotent() -> None:
    data = dv_bytes(ext_header=512)
    assert DVHeader.from_bytes(data) == DVHeader.from_bytes(data)


def test_explicit_byte_order_skips_marker() -> None:
    data = dv_bytes(marker=0)
    with pytest.raises(DVOpenError):
        DVHeader.from_bytes(data)
    assert DVHeader.from_bytes(data, "<").nx == 32


def test_short_header() -> None:
    with pytest.raises(HeaderDecodeError, match="1024"):
        DVHeader.from_bytes(dv_bytes()[:1000])


@pytest.mark.parametrize(
    "code, order",
    [(0, "CTZYX"), (1, "TZCYX"), (2, "TCZYX"), (3, "CTZYX"), (-1, "CTZYX")],
)
def test_axis_order(code: int, order: str) -> None:
    hdr = DVHeader.from_bytes(dv_bytes(interleaved=code))
    assert hdr.axis_order == order
    assert list(hdr.axis_sizes) == list(order)
    assert hdr.axis_sizes["Z"] == 3


@pytest.mark.parametrize(
    "nz, waves, times, expected",
    [(18, 3, 2, 3), (10, 0, 0, 10), (10, 2, 0, 5), (10, 0, 5, 2), (7, 2, 1, 3)],
)
def test_real_z_count(nz: int, waves: int, times: int, expected: int) -> None:
    hdr = DVHeader.from_bytes(
        dv_bytes(nz=nz, num_waves=waves, num_times=times, n_planes=0)
    )
    assert hdr.real_z_count == expected
    assert hdr.wave_count == max(waves, 1)
    assert hdr.time_count == max(times, 1)


@pytest.mark.parametrize(
    "code, kind",
    [
        (0, "NORMAL"),
        (100, "NORMAL"),
        (1, "TILT_SERIES"),
        (2, "STEREO_TILT_SERIES"),
        (3, "AVERAGED_IMAGES"),
        (4, "AVERAGED_STEREO_PAIRS"),
        (5, "EM_TILT_SERIES"),
        (20, "MULTIPOSITION"),
        (8000, "PUPIL_FUNCTION"),
        (42, "UNKNOWN"),
    ],
)
def test_image_kind(code: int, kind: str) -> None:
    hdr = DVHeader.from_bytes(dv_bytes(file_type=code, n_planes=0))
    assert hdr.image_kind == kind


def test_titles() -> None:
    labels = b"first".ljust(80) + b"second".ljust(80, b"\x00") + b"unused".ljust(80)
    hdr = DVHeader.from_bytes(dv_bytes(nlab=2, label=labels, n_planes=0))
    assert hdr.titles == ["first", "second"]
    assert len(hdr.label) == 800


def test_wave_min_max() -> None:
    hdr = DVHeader.from_bytes(dv_bytes(min2=1.0, max2=2.0, min3=3.0, max3=4.0))
    assert hdr.wave_min_max == ((215.0, 1743.0), (1.0, 2.0), (3.0, 4.0))


def test_summary() -> None:
    text = DVHeader.from_bytes(dv_bytes()).summary()
    assert text.startswith("Header:")
    assert "Dimensions: 32x32x3" in text
    assert "Number of wavelengths: 3" in text
    assert "Number of time points: 2" in text
    assert "Pixel type: 6 (UINT16)" in text
    assert "mxyz: 1x1x1" in text
    assert "Sequence order: TCZ" in text


def test_summary_with_unknown_pixel_type() -> None:
    data = dv_bytes(n_planes=0)
    hdr = DVHeader.from_bytes(data[:12] + (99).to_bytes(4, "little") + data[16:])
    assert hdr.mode == 99
    assert "99 (unknown)" in hdr.summary()
    with pytest.raises(ValueError):
        hdr.pixel_type
