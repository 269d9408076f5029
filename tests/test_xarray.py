from pathlib import Path
from unittest.mock import patch

import pytest

from dvfile import DVFile
from dvfile._lazy_array import LazyDVArray

try:
    import xarray
except ImportError:
    pytest.skip("xarray is not installed", allow_module_level=True)


def test_to_xarray_basic(opened_dvfile: DVFile) -> None:
    """Test basic to_xarray functionality."""
    lzarr = opened_dvfile.as_array()
    xarr = opened_dvfile.to_xarray()

    # ensure the underlying data is still a LazyDVArray
    assert isinstance(xarr, xarray.DataArray)
    assert isinstance(xarr.variable._data, LazyDVArray)
    assert tuple(xarr.dims) == lzarr.dims
    assert xarr.shape == lzarr.shape
    assert "ome_metadata" in xarr.attrs
    assert xarr.attrs["dv_header"] is opened_dvfile.header
    assert set(xarr.coords) == {"T", "C", "Z", "Y", "X"}

    # now index into it, and ensure that LazyDVArray.__array__ is NOT called
    __array__ = LazyDVArray.__array__
    with patch.object(LazyDVArray, "__array__", autospec=True) as mock_array:
        mock_array.side_effect = __array__
        xarr_t0 = xarr.isel(T=0)
        assert "T" not in xarr_t0.dims
        assert isinstance(xarr_t0, xarray.DataArray)
        assert isinstance(xarr_t0.variable._data, LazyDVArray)
        mock_array.assert_not_called()
        _ = xarr_t0.data  # This should trigger __array__
        mock_array.assert_called_once_with(xarr_t0.variable._data)
        mock_array.reset_mock()

        xarr_t0c0 = xarr.isel(T=0, C=0)
        assert "C" not in xarr_t0c0.dims
        assert isinstance(xarr_t0c0, xarray.DataArray)
        assert isinstance(xarr_t0c0.variable._data, LazyDVArray)
        mock_array.assert_not_called()
        _ = xarr_t0c0.data  # This should trigger __array__
        mock_array.assert_called_with(xarr_t0c0.variable._data)


def test_to_xarray_select_by_wavelength(opened_dvfile: DVFile) -> None:
    """Channels can be selected by their emission wavelength label."""
    xarr = opened_dvfile.to_xarray()
    plane = xarr.sel(C="605nm").isel(T=1, Z=2)
    assert plane.shape == (32, 32)
    assert (plane.values == opened_dvfile.read_plane(1, 1, 2)).all()


def test_to_xarray_coords_from_ome(opened_dvfile: DVFile) -> None:
    """Test that coordinates agree with the OME metadata."""
    xarr = opened_dvfile.to_xarray()
    pixels = opened_dvfile.ome_metadata.images[0].pixels

    c_coords = xarr.coords["C"]
    assert list(c_coords.values) == [ch.name for ch in pixels.channels]

    x_coords = xarr.coords["X"]
    assert len(x_coords) == pixels.size_x
    # First coord should be 0, second should be physical_size_x
    assert float(x_coords[0]) == 0
    assert float(x_coords[1]) == pytest.approx(float(pixels.physical_size_x))


def test_to_xarray_without_spacing(make_dv) -> None:
    """Without pixel spacing or wavelengths, coords are plain indices."""
    path: Path = make_dv(xlen=0.0, ylen=0.0, zlen=0.0, iwav1=0, iwav2=0, iwav3=0)
    with DVFile(path) as dv:
        xarr = dv.to_xarray()
        assert list(xarr.coords["C"].values) == [0, 1, 2]
        assert list(xarr.coords["Z"].values) == [0, 1, 2]
