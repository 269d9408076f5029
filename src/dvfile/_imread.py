"""Convenience functions for reading DV files."""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np

from ._dvfile import DVFile

if TYPE_CHECKING:
    from pathlib import Path

    import zarr


def imread(path: str | Path) -> np.ndarray:
    """Read all planes of a DV file into a numpy array.

    Parameters
    ----------
    path : str or Path
        Path to the DV file

    Returns
    -------
    np.ndarray
        Image data with shape (T, C, Z, Y, X), in file byte order.

    Examples
    --------
    >>> from dvfile import imread
    >>> data = imread("image.dv")
    >>> print(data.shape, data.dtype)
    (2, 3, 3, 32, 32) uint16

    See Also
    --------
    DVFile : For lazy loading and more control over reading
    """
    with DVFile(path) as dv:
        return np.asarray(dv.as_array())


def open_zarr_array(path: str | Path) -> zarr.Array:
    """Open a DV file as a read-only (T, C, Z, Y, X) zarr array.

    The file handle is opened on demand for each chunk read.
    """
    try:
        import zarr
    except ImportError:
        raise ImportError("zarr must be installed to use open_zarr_array") from None

    with DVFile(path).ensure_open() as dv:
        store = dv.to_zarr_store()
    return zarr.open_array(store, mode="r")


def open_ome_zarr_group(path: str | Path) -> zarr.Group:
    """Open a DV file as a read-only OME-Zarr (NGFF v0.5) group.

    Examples
    --------
    >>> group = open_ome_zarr_group("image.dv")
    >>> arr = group["0"]
    """
    try:
        import zarr
    except ImportError:
        raise ImportError("zarr must be installed to use open_ome_zarr_group") from None

    with DVFile(path).ensure_open() as dv:
        store = dv.to_zarr_store(group=True)
    return zarr.open_group(store, mode="r")
