from __future__ import annotations

from pathlib import Path

import numpy as np
import pytest

from dvfile import DVFile, LazyDVArray, imread
from dvfile._utils import get_dask_tile_chunks


def test_lazy_array_basic(opened_dvfile: DVFile) -> None:
    arr = opened_dvfile.as_array()
    assert isinstance(arr, LazyDVArray)
    assert arr.shape == (2, 3, 3, 32, 32)
    assert arr.ndim == 5
    assert arr.dims == ("T", "C", "Z", "Y", "X")
    assert arr.dtype == opened_dvfile.dtype
    assert arr.size == 2 * 3 * 3 * 32 * 32
    assert arr.nbytes == arr.size * 2
    assert "LazyDVArray" in repr(arr)


def test_views_match_full_read(opened_dvfile: DVFile) -> None:
    arr = opened_dvfile.as_array()
    full = np.asarray(arr)
    assert full.shape == arr.shape

    view = arr[1, :, 2]
    assert isinstance(view, LazyDVArray)
    assert view.shape == (3, 32, 32)
    assert view.dims == ("C", "Y", "X")
    np.testing.assert_array_equal(view, full[1, :, 2])

    roi = arr[:, 1:, :, 4:10, 20:]
    np.testing.assert_array_equal(roi, full[:, 1:, :, 4:10, 20:])

    np.testing.assert_array_equal(arr[0][1][2], full[0, 1, 2])
    np.testing.assert_array_equal(arr[..., 5, 7], full[..., 5, 7])
    np.testing.assert_array_equal(arr[-1, -1, -1], full[-1, -1, -1])
    np.testing.assert_array_equal(arr[np.int64(1)], full[1])


def test_plane_content(opened_dvfile: DVFile) -> None:
    arr = opened_dvfile.as_array()
    for coords in [(0, 0, 0), (1, 2, 1), (0, 2, 2)]:
        np.testing.assert_array_equal(
            arr[coords], opened_dvfile.read_plane(*coords)
        )


def test_numpy_functions(opened_dvfile: DVFile) -> None:
    arr = opened_dvfile.as_array()
    full = np.asarray(arr)
    np.testing.assert_array_equal(np.max(arr, axis=2), full.max(axis=2))
    assert np.asarray(arr, dtype=np.float32).dtype == np.float32


def test_unsupported_indexing(opened_dvfile: DVFile) -> None:
    arr = opened_dvfile.as_array()
    with pytest.raises(NotImplementedError):
        arr[::2]
    with pytest.raises(NotImplementedError):
        arr[[0, 1]]
    with pytest.raises(NotImplementedError):
        arr[np.array([0])]
    with pytest.raises(IndexError):
        arr[2]
    with pytest.raises(IndexError):
        arr[0, 0, 0, 0, 0, 0]


def test_empty_view(opened_dvfile: DVFile) -> None:
    arr = opened_dvfile.as_array()
    view = arr[:, :, 3:]
    assert view.shape == (2, 3, 0, 32, 32)
    assert np.asarray(view).size == 0


def test_coords(opened_dvfile: DVFile) -> None:
    arr = opened_dvfile.as_array()
    coords = arr.coords
    assert list(coords["T"]) == [0, 1]
    assert list(coords["C"]) == ["525nm", "605nm", "685nm"]
    assert coords["Z"][1] == pytest.approx(0.3)
    assert coords["X"][1] == pytest.approx(0.1)

    view_coords = arr[0, 1].coords
    assert view_coords["T"] == 0
    assert view_coords["C"] == "605nm"


def test_big_endian_array(big_endian_file: Path, simple_file: Path) -> None:
    big = imread(big_endian_file)
    little = imread(simple_file)
    assert big.dtype == np.dtype(">u2")
    np.testing.assert_array_equal(big, little)


def test_tile_chunks() -> None:
    chunks = get_dask_tile_chunks(2, 1, 3, 40, 32, (16, 16))
    assert chunks == ((1, 1), (1,), (1, 1, 1), (16, 16, 8), (16, 16))
    with pytest.raises(ValueError):
        get_dask_tile_chunks(1, 1, 1, 32, 32, (0, 16))


def test_to_dask(opened_dvfile: DVFile) -> None:
    da = pytest.importorskip("dask.array")
    arr = opened_dvfile.as_array()
    darr = opened_dvfile.to_dask(chunks=(1, 1, 1, -1, -1))
    assert isinstance(darr, da.Array)
    assert darr.shape == arr.shape
    assert darr.chunksize == (1, 1, 1, 32, 32)
    np.testing.assert_array_equal(darr.compute(), np.asarray(arr))


def test_to_dask_tiles(opened_dvfile: DVFile) -> None:
    pytest.importorskip("dask.array")
    view = opened_dvfile.as_array()[0]
    darr = view.to_dask(tile_size=(16, 16))
    assert darr.chunks == ((1, 1, 1), (1, 1, 1), (16, 16), (16, 16))
    np.testing.assert_array_equal(darr[1, 2].compute(), np.asarray(view[1, 2]))

    with pytest.raises(ValueError, match="mutually exclusive"):
        view.to_dask(chunks=(1, 1, 32, 32), tile_size=(16, 16))
    with pytest.raises(ValueError, match="tuple of two integers"):
        view.to_dask(tile_size=(16,))  # type: ignore[arg-type]
