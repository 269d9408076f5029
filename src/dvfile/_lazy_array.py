"""Lazy numpy-compatible view of the plane stack of a DV file."""

from __future__ import annotations

import math
from itertools import product
from typing import TYPE_CHECKING, Any, TypeAlias, cast

import numpy as np

from dvfile._utils import get_dask_tile_chunks

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping, Sequence

    import dask.array
    import xarray as xr

    from dvfile._dvfile import DVFile
    from dvfile._zarr import DVArrayStore


BoundsTCZYX: TypeAlias = tuple[slice, slice, slice, slice, slice]
SqueezedTCZYX: TypeAlias = tuple[bool, bool, bool, bool, bool]
ShapeTCZYX: TypeAlias = tuple[int, int, int, int, int]

_AXES = "TCZYX"


class LazyDVArray:
    """Array-like (T, C, Z, Y, X) view of a DV file that reads on demand.

    Axes follow the physical storage order of DV planes (time, then
    wavelength, then section). Integer indexing drops an axis, slicing keeps
    it; neither touches the disk. Data is read plane by plane when the view
    is converted with `np.asarray()` or handed to a numpy function, so
    `arr[1][0][2]` costs a single plane read.

    Parameters
    ----------
    dvfile : DVFile
        Open DVFile to read from. It must stay open while the array is used.

    Examples
    --------
    >>> with DVFile("image.dv") as dv:
    ...     arr = dv.as_array()
    ...     sub = arr[0, :, 2, 8:24, 8:24]  # still lazy
    ...     data = np.asarray(sub)  # reads 3 planes
    ...     mip = np.max(arr, axis=2)  # numpy functions materialize first

    Notes
    -----
    Only integers and contiguous slices are accepted. Every read fetches the
    full plane and crops it in memory.
    """

    __slots__ = (
        "_bounds_tczyx",
        "_dtype",
        "_dvfile",
        "_full_shape_tczyx",
        "_shape",
        "_squeezed_tczyx",
    )

    def __init__(self, dvfile: DVFile) -> None:
        self._dvfile = dvfile
        self._dtype = dvfile.dtype
        self._full_shape_tczyx = full = cast("ShapeTCZYX", dvfile.shape)
        self._bounds_tczyx = cast("BoundsTCZYX", tuple(slice(0, n) for n in full))
        self._squeezed_tczyx: SqueezedTCZYX = (False,) * 5  # type: ignore[assignment]
        self._shape = self._visible_shape()

    @property
    def shape(self) -> tuple[int, ...]:
        return self._shape

    @property
    def size(self) -> int:
        return math.prod(self._shape)

    @property
    def nbytes(self) -> int:
        return self.size * self._dtype.itemsize

    @property
    def dtype(self) -> np.dtype:
        """Pixel dtype, in file byte order."""
        return self._dtype

    @property
    def ndim(self) -> int:
        return len(self._shape)

    @property
    def dims(self) -> tuple[str, ...]:
        """Axis names of the visible (not integer-indexed) dimensions."""
        return tuple(
            ax for ax, gone in zip(_AXES, self._squeezed_tczyx, strict=True) if not gone
        )

    @property
    def coords(self) -> Mapping[str, Any]:
        """Coordinate values per axis for this view.

        C is labelled with emission wavelengths (e.g. "525nm") when every
        channel has one. Z, Y and X are multiplied by the header spacing when
        it is positive. Integer-indexed axes map to a single scalar.
        """
        coords: dict[str, Sequence[Any]] = {
            ax: range(*bound.indices(n))
            for ax, bound, n in zip(
                _AXES, self._bounds_tczyx, self._full_shape_tczyx, strict=True
            )
        }

        hdr = self._dvfile.header
        waves = hdr.wavelengths
        if len(waves) >= hdr.wave_count and all(w > 0 for w in waves):
            coords["C"] = [f"{waves[ci]}nm" for ci in coords["C"]]

        for ax, step in (("Z", hdr.zlen), ("Y", hdr.ylen), ("X", hdr.xlen)):
            if step > 0:
                coords[ax] = np.asarray(coords[ax]) * float(step)  # type: ignore

        for ax, gone in zip(_AXES, self._squeezed_tczyx, strict=True):
            if gone:
                coords[ax] = coords[ax][0]
        return coords

    def to_dask(
        self,
        *,
        chunks: str | tuple = "auto",
        tile_size: tuple[int, int] | None = None,
    ) -> dask.array.Array:
        """Wrap this view in a dask array.

        Parameters
        ----------
        chunks : str or tuple, default "auto"
            Passed to `dask.array.from_array`; e.g. ``(1, 1, 1, -1, -1)`` for
            one chunk per plane. Cannot be combined with `tile_size`.
        tile_size : tuple[int, int], optional
            Chunk Y and X into tiles of this size, with one chunk per T, C and
            Z index.
        """
        try:
            import dask.array as da
        except ImportError as e:
            raise ImportError(
                "to_dask() needs dask. Install with `pip install dvfile[dask]`"
            ) from e

        if tile_size is not None:
            if chunks != "auto":
                raise ValueError("chunks and tile_size are mutually exclusive")
            if not (
                isinstance(tile_size, tuple)
                and len(tile_size) == 2
                and all(isinstance(x, int) for x in tile_size)
            ):
                raise ValueError(
                    f"tile_size must be a tuple of two integers, got {tile_size}"
                )
            per_axis = get_dask_tile_chunks(*self._view_shape_tczyx(), tile_size)
            chunks = tuple(
                c
                for c, gone in zip(per_axis, self._squeezed_tczyx, strict=True)
                if not gone
            )

        # all chunks share one file handle
        return da.from_array(self, chunks=chunks, lock=self._dvfile._lock)  # type: ignore

    def to_xarray(self) -> xr.DataArray:
        """Wrap this view in an `xarray.DataArray` without reading data.

        `attrs` holds the `ome_types.OME` description as "ome_metadata" and
        the decoded header as "dv_header".
        """
        try:
            import xarray as xr
        except ImportError as e:
            raise ImportError(
                "to_xarray() needs xarray. Install with `pip install dvfile[xarray]`"
            ) from e

        return xr.DataArray(
            self,
            dims=self.dims,
            coords=self.coords,
            attrs={
                "ome_metadata": self._dvfile.ome_metadata,
                "dv_header": self._dvfile.header,
            },
        )

    def to_zarr_store(
        self,
        *,
        tile_size: tuple[int, int] | None = None,
        squeeze_singletons: bool = False,
    ) -> DVArrayStore:
        """Return a read-only zarr v3 store over the whole file.

        Needs the ``zarr`` extra. Chunks are full planes unless `tile_size`
        is given. With `squeeze_singletons`, T, C and Z axes of extent 1 are
        left out of the array.
        """
        from dvfile._zarr import DVArrayStore

        return DVArrayStore(
            self._dvfile, tile_size=tile_size, squeeze_singletons=squeeze_singletons
        )

    def __repr__(self) -> str:
        return (
            f"LazyDVArray(shape={self.shape}, dtype={self.dtype}, "
            f"file='{self._dvfile.filename}')"
        )

    def __getitem__(self, key: Any) -> LazyDVArray:
        """Return a lazy sub-view.

        Raises
        ------
        NotImplementedError
            For list, array or strided indices.
        IndexError
            For out-of-range integers or too many indices.
        """
        bounds, squeezed = self._apply_key(self._expand_key(key))
        view = LazyDVArray.__new__(LazyDVArray)
        view._dvfile = self._dvfile
        view._dtype = self._dtype
        view._full_shape_tczyx = self._full_shape_tczyx
        view._bounds_tczyx = bounds
        view._squeezed_tczyx = squeezed
        view._shape = view._visible_shape()
        return view

    # ------------------------------------------------------------------
    # numpy protocols
    # ------------------------------------------------------------------

    def __array__(
        self, dtype: np.dtype | None = None, copy: bool | None = None
    ) -> np.ndarray:
        """Read the planes of this view into a new array."""
        out = np.empty(self._shape, dtype=self._dtype)
        self._read_planes_into(out)
        if dtype is not None and out.dtype != dtype:
            out = out.astype(dtype, copy=False)
        # `out` is already a private buffer
        return out.copy() if copy else out

    def __array_function__(
        self, func: Callable, types: list[type], args: tuple, kwargs: dict
    ) -> Any:
        # materialize, then let numpy do the work; keeps xarray wrappers lazy
        def materialize(a: Any) -> Any:
            if isinstance(a, LazyDVArray):
                return np.asarray(a)
            if isinstance(a, (list, tuple)):
                return type(a)(materialize(x) for x in a)
            return a

        return func(
            *(materialize(a) for a in args),
            **{k: materialize(v) for k, v in kwargs.items()},
        )

    # dask probes this while computing meta in from_array; it is not a cast.
    def astype(self, dtype: np.dtype) -> Any:
        return self

    # ------------------------------------------------------------------
    # internals
    # ------------------------------------------------------------------

    def _view_shape_tczyx(self) -> ShapeTCZYX:
        """Extent of every axis of the view, integer-indexed ones included."""
        return tuple(  # type: ignore[return-value]
            len(range(*bound.indices(n)))
            for n, bound in zip(
                self._full_shape_tczyx, self._bounds_tczyx, strict=True
            )
        )

    def _visible_shape(self) -> tuple[int, ...]:
        return tuple(
            n
            for n, gone in zip(
                self._view_shape_tczyx(), self._squeezed_tczyx, strict=True
            )
            if not gone
        )

    def _expand_key(self, key: Any) -> tuple[int | slice, ...]:
        """Turn `key` into one int or slice per visible axis."""
        key = key if isinstance(key, tuple) else (key,)
        for k in key:
            if isinstance(k, (list, np.ndarray)):
                raise NotImplementedError(
                    f"fancy indexing with {type(k).__name__} is not supported"
                )
            if isinstance(k, slice) and k.step not in (None, 1):
                raise NotImplementedError(
                    f"step != 1 is not supported (got step={k.step})"
                )

        if Ellipsis in key:
            at = key.index(Ellipsis)
            fill = (slice(None),) * (self.ndim - len(key) + 1)
            key = key[:at] + fill + key[at + 1 :]
        if len(key) > self.ndim:
            raise IndexError(
                f"too many indices: array is {self.ndim}-dimensional, "
                f"got {len(key)} indices"
            )
        return key + (slice(None),) * (self.ndim - len(key))

    def _apply_key(
        self, key: tuple[int | slice, ...]
    ) -> tuple[BoundsTCZYX, SqueezedTCZYX]:
        """Narrow the bounds of the visible axes by `key`."""
        bounds = list(self._bounds_tczyx)
        squeezed = list(self._squeezed_tczyx)
        keys = iter(key)
        for axis, n in enumerate(self._full_shape_tczyx):
            if squeezed[axis]:
                continue
            bounds[axis], squeezed[axis] = _compose_index(next(keys), bounds[axis], n)
        return tuple(bounds), tuple(squeezed)  # type: ignore[return-value]

    def _read_planes_into(self, out: np.ndarray) -> None:
        if out.size == 0:
            return
        t_bound, c_bound, z_bound, y_bound, x_bound = self._bounds_tczyx
        nt, nc, nz, _, _ = self._full_shape_tczyx
        drop_t, drop_c, drop_z, drop_y, drop_x = self._squeezed_tczyx

        # integer-indexed Y/X drop out of the cropped plane
        crop = (
            y_bound.start if drop_y else y_bound,
            x_bound.start if drop_x else x_bound,
        )

        dv = self._dvfile
        plane = np.empty(dv.shape[3:], dtype=self._dtype)
        with dv._lock:
            for (ti, t), (ci, c), (zi, z) in product(
                enumerate(range(*t_bound.indices(nt))),
                enumerate(range(*c_bound.indices(nc))),
                enumerate(range(*z_bound.indices(nz))),
            ):
                dv.read_plane(t, c, z, buffer=plane)
                dest = tuple(
                    i
                    for i, gone in zip((ti, ci, zi), (drop_t, drop_c, drop_z))
                    if not gone
                )
                out[dest] = plane[crop]


def _compose_index(
    index: int | slice, bound: slice, full_size: int
) -> tuple[slice, bool]:
    """Apply `index` to the parent `bound`; return (new bound, axis dropped).

    Examples
    --------
    >>> _compose_index(slice(1, 4), slice(5, 15), 50)
    (slice(6, 9, None), False)
    >>> _compose_index(-1, slice(5, 15), 50)
    (slice(14, 15, None), True)
    """
    start, stop, _ = bound.indices(full_size)
    extent = stop - start

    if isinstance(index, (int, np.integer)):
        i = int(index)
        if i < 0:
            i += extent
        if not 0 <= i < extent:
            raise IndexError(f"index {index} is out of bounds for size {extent}")
        return slice(start + i, start + i + 1), True

    lo, hi, step = index.indices(extent)
    if step != 1:
        raise NotImplementedError(f"step != 1 is not supported (got step={step})")
    return slice(start + lo, start + max(hi, lo)), False
