from __future__ import annotations

import io
import os
import weakref
from contextlib import AbstractContextManager, suppress
from pathlib import Path
from threading import RLock
from typing import TYPE_CHECKING, Any, BinaryIO, Literal, overload

import numpy as np

from ._errors import (
    ClosedFileError,
    CoordinateOutOfRangeError,
    DVOpenError,
    ShortReadError,
)
from ._header import HEADER_SIZE, MARKER_OFFSET, DVHeader, detect_byte_order

if TYPE_CHECKING:
    from types import TracebackType

    import dask.array
    import xarray as xr
    from ome_types import OME
    from typing_extensions import Self

    from dvfile._lazy_array import LazyDVArray
    from dvfile._pixel_types import ByteOrder
    from dvfile._zarr import DVArrayStore, DVOmeZarrStore


class DVFile:
    """Read image planes and header from a DeltaVision (DV) file.

    DVFile instances must be explicitly opened before use, either by:

    1. Using a context manager: `with DVFile(path) as dv: ...`
    2. Explicitly calling `open()`: `dv = DVFile(path).open()`

    DVFile instances are not thread-safe. Create separate instances per thread,
    or serialize calls with an external lock.

    Lifecycle
    ---------
    DVFile manages the underlying file object through three states:

        UNINITIALIZED ── open() ──> OPEN ── close() ──> SUSPENDED
             ↑    ↑                  │ ↑                     │
             │    └── destroy() ─────┘ └──── open() ─────────┘
             └─────── destroy() ─────────────────────────────┘

    - `open()` first call: detects byte order and decodes the header.
    - `close()`: releases the file handle but keeps the decoded header.
    - `open()` after `close()`: reacquires a fresh file handle for the same path.
    - `destroy()` / `__exit__()`: full teardown, returning to `UNINITIALIZED`.
    - `__del__` GC finalizer: releases the file handle.

    Parameters
    ----------
    path : str or Path
        Path to the DV file.
    """

    def __init__(self, path: str | os.PathLike) -> None:
        self._path = str(path)
        self._lock = RLock()
        self._fh: BinaryIO | None = None
        self._header: DVHeader | None = None
        self._finalizer: weakref.finalize | None = None
        self._cached_ome_meta: OME | None = None

    def open(self) -> Self:
        """Open file and decode the header, or re-open if previously closed.

        On first call, checks the byte-order marker at offset 96 and decodes
        the 1024-byte header. If the file was previously closed via `close()`,
        only a new file handle is acquired.

        Calling it on an open file does nothing.

        Returns
        -------
        Self
            Returns `self` for method chaining.

        Raises
        ------
        DVOpenError
            If the file cannot be opened or its marker is not recognized.
        """
        with self._lock:
            if self._fh is not None:
                return self  # Already open

            fh = self._open_handle()
            if self._header is None:
                try:
                    self._header = self._read_header(fh)
                except Exception:
                    fh.close()
                    raise

            self._fh = fh
            self._finalizer = weakref.finalize(self, _close_handle, fh)
        return self

    def ensure_open(self) -> _EnsureOpenContext:
        """Context manager that temporarily opens the file if closed.

        Opens the file if needed, then on exit: closes it if it started
        closed, or leaves it open if it started open.

        Examples
        --------
        ```python
        dv = DVFile(path)
        with dv.ensure_open():
            data = dv.read_plane()
        assert dv.closed
        ```
        """
        return _EnsureOpenContext(self, close_on_exit=self.closed)

    def close(self) -> None:
        """Close the file handle while keeping the decoded header.

        The header remains accessible while the file is closed. Reads raise
        `ClosedFileError` until `open()` is called again.

        Calling it on a closed file does nothing.
        """
        with self._lock:
            if self._finalizer is not None:
                self._finalizer()
                self._finalizer = None
            self._fh = None

    def destroy(self) -> None:
        """Full cleanup: close the file handle and drop the decoded header.

        Safe to call multiple times or from any state.
        """
        with self._lock:
            self.close()
            self._header = None
            self._cached_ome_meta = None

    # ========================== properties ==========================

    @property
    def closed(self) -> bool:
        """Return True if the file is currently closed (uninitialized or suspended)."""
        return self._fh is None

    @property
    def suspended(self) -> bool:
        """Return True if the file was opened and closed, but not destroyed."""
        return self._fh is None and self._header is not None

    @property
    def filename(self) -> str:
        """Return path of the file."""
        return self._path

    @property
    def header(self) -> DVHeader:
        """Decoded file header.

        Raises
        ------
        ClosedFileError
            If the file has never been opened (or was destroyed).
        """
        if self._header is None:
            raise ClosedFileError("File not open - call open() first")
        return self._header

    @property
    def byteorder(self) -> ByteOrder:
        """Byte order detected from the file marker ("<" or ">")."""
        return self.header.byteorder

    @property
    def dtype(self) -> np.dtype:
        """Numpy dtype of one pixel, in file byte order."""
        return self.header.pixel_type.dtype(self.byteorder)

    @property
    def shape(self) -> tuple[int, int, int, int, int]:
        """Physical (T, C, Z, Y, X) shape of the plane stack."""
        hdr = self.header
        return (hdr.time_count, hdr.wave_count, hdr.real_z_count, hdr.ny, hdr.nx)

    @property
    def sizes(self) -> dict[str, int]:
        """Axis name to extent, ordered as the header's axis order label."""
        return self.header.axis_sizes

    @property
    def plane_nbytes(self) -> int:
        """Number of bytes in one plane."""
        return self.header.plane_nbytes

    @property
    def ome_metadata(self) -> OME:
        """Return [`ome_types.OME`][] object describing the image."""
        if self._cached_ome_meta is None:
            from dvfile._ome import header_to_ome

            self._cached_ome_meta = header_to_ome(
                self.header, name=Path(self._path).name
            )
        return self._cached_ome_meta

    def summary(self) -> str:
        """Return a human-readable description of the header."""
        return self.header.summary()

    # ========================== addressing ==========================

    def validate_coords(self, t: int, c: int, z: int) -> None:
        """Raise if (t, c, z) is outside the stack.

        Time is checked first, then wavelength, then section.

        Raises
        ------
        CoordinateOutOfRangeError
            With `axis` set to "time", "wavelength" or "section".
        """
        hdr = self.header
        for axis, index, size in (
            ("time", t, hdr.time_count),
            ("wavelength", c, hdr.wave_count),
            ("section", z, hdr.real_z_count),
        ):
            if not 0 <= index < size:
                raise CoordinateOutOfRangeError(axis, index, size)

    def plane_index(self, t: int = 0, c: int = 0, z: int = 0) -> int:
        """Return the physical index of plane (t, c, z) in the stack.

        Planes are stored time-major, then wavelength, then section,
        regardless of the header's axis order label.
        """
        self.validate_coords(t, c, z)
        hdr = self.header
        nz = hdr.real_z_count
        return t * hdr.wave_count * nz + c * nz + z

    def plane_offset(self, t: int = 0, c: int = 0, z: int = 0) -> int:
        """Return the byte offset of plane (t, c, z) in the file."""
        hdr = self.header
        return hdr.data_offset + self.plane_index(t, c, z) * hdr.plane_nbytes

    def seek_plane(self, t: int = 0, c: int = 0, z: int = 0) -> None:
        """Position the file so the next sequential read returns plane (t, c, z)."""
        offset = self.plane_offset(t, c, z)
        self._ensure_handle().seek(offset)

    # ========================== reading ==========================

    def read_plane(
        self,
        t: int = 0,
        c: int = 0,
        z: int = 0,
        buffer: np.ndarray | bytearray | memoryview | None = None,
    ) -> np.ndarray:
        """Read the plane at time `t`, wavelength `c`, section `z`.

        Parameters
        ----------
        t : int, optional
            Time index, by default 0
        c : int, optional
            Wavelength (channel) index, by default 0
        z : int, optional
            Z-section index, by default 0
        buffer : writable buffer, optional
            Pre-allocated storage of at least `plane_nbytes` bytes, for
            efficient reuse in loops.

        Returns
        -------
        np.ndarray
            Shape (Y, X), in file byte order.

        Raises
        ------
        ClosedFileError
            If the file is not open.
        CoordinateOutOfRangeError
            If any coordinate is out of range.
        ShortReadError
            If the file ends before the plane does.

        Examples
        --------
        >>> with DVFile("image.dv") as dv:
        ...     plane = dv.read_plane(t=0, c=1, z=5)
        """
        fh = self._ensure_handle()
        fh.seek(self.plane_offset(t, c, z))
        return self._read_into(fh, buffer)

    def read_next_plane(
        self, buffer: np.ndarray | bytearray | memoryview | None = None
    ) -> np.ndarray:
        """Read one plane from the current file position.

        No seek and no coordinate validation is performed; the position
        advances by exactly `plane_nbytes`. Results are only meaningful if the
        file is positioned at the start of a plane (see `seek_plane`).

        Raises
        ------
        ClosedFileError
            If the file is not open.
        ShortReadError
            If the file ends before the plane does.
        """
        return self._read_into(self._ensure_handle(), buffer)

    def as_array(self) -> LazyDVArray:
        """Return a lazy numpy-compatible (T, C, Z, Y, X) array.

        The returned array reads planes from disk only when indexed and
        materialized.

        Examples
        --------
        >>> with DVFile("image.dv") as dv:
        ...     arr = dv.as_array()  # No data read yet
        ...     plane = arr[0, 0, 2]  # Lazy view of (t=0, c=0, z=2)
        ...     data = np.asarray(plane)  # Only this plane read from disk
        ...     full_data = np.array(arr)  # Materialize all data
        """
        from dvfile._lazy_array import LazyDVArray

        return LazyDVArray(self)

    @overload
    def to_zarr_store(
        self,
        *,
        group: Literal[False] = ...,
        tile_size: tuple[int, int] | None = ...,
    ) -> DVArrayStore: ...
    @overload
    def to_zarr_store(
        self,
        *,
        group: Literal[True],
        tile_size: tuple[int, int] | None = ...,
    ) -> DVOmeZarrStore: ...
    def to_zarr_store(
        self,
        *,
        group: bool = False,
        tile_size: tuple[int, int] | None = None,
    ) -> DVArrayStore | DVOmeZarrStore:
        """Return a read-only zarr v3 store backed by this file.

        Parameters
        ----------
        group : bool, optional
            If True, return an OME-Zarr (NGFF v0.5) group store containing the
            image as dataset "0". By default, return a plain array store.
        tile_size : tuple[int, int], optional
            If provided, Y and X are chunked into tiles of this size instead of
            full planes.
        """
        if group:
            from dvfile._zarr import DVOmeZarrStore

            return DVOmeZarrStore(self, tile_size=tile_size)
        return self.as_array().to_zarr_store(tile_size=tile_size)

    def to_dask(
        self,
        *,
        chunks: str | tuple = "auto",
        tile_size: tuple[int, int] | None = None,
    ) -> dask.array.Array:
        """Create a dask array in TCZYX order that reads planes on demand.

        Parameters
        ----------
        chunks : str or tuple, default "auto"
            Chunk specification, e.g. (1, 1, 1, -1, -1) for one plane per
            chunk. Mutually exclusive with tile_size.
        tile_size : tuple[int, int], optional
            Tile-based chunking for Y,X dimensions (T,C,Z get chunks of 1).
        """
        return self.as_array().to_dask(chunks=chunks, tile_size=tile_size)

    def to_xarray(self) -> xr.DataArray:
        """Return xarray.DataArray with TCZYX dims and header-derived coords."""
        return self.as_array().to_xarray()

    def __enter__(self) -> Self:
        """Enter context manager - ensures file is open."""
        self.open()
        return self

    def __exit__(self, *_args: Any) -> None:
        """Exit context manager and destroy the file state."""
        self.destroy()

    def __repr__(self) -> str:
        name = Path(self._path).name
        if self.closed:
            return f"DVFile('{name}', closed)"
        sizes = ", ".join(f"{k}={v}" for k, v in self.sizes.items())
        return f"DVFile('{name}', {sizes})"

    # ========================== Internal methods ==========================

    def _open_handle(self) -> BinaryIO:
        try:
            return open(self._path, "rb")  # noqa: SIM115
        except OSError as e:
            raise DVOpenError(f"Failed to open {self._path!r}: {e}") from e

    def _read_header(self, fh: BinaryIO) -> DVHeader:
        """Detect byte order from the marker, then decode the fixed header."""
        fh.seek(MARKER_OFFSET)
        try:
            byteorder = detect_byte_order(fh.read(2))
        except DVOpenError as e:
            raise DVOpenError(f"{self._path} is not a recognized DV file.") from e
        fh.seek(0)
        data = fh.read(HEADER_SIZE)
        if len(data) < HEADER_SIZE:
            raise DVOpenError(
                f"{self._path} is truncated: header has {len(data)} bytes"
            )
        return DVHeader.from_bytes(data, byteorder)

    def _ensure_handle(self) -> BinaryIO:
        """Return the open file handle, raising if closed."""
        if self._fh is None:
            raise ClosedFileError(
                "Cannot read from closed file. Please reopen with .open()"
            )
        return self._fh

    def _read_into(
        self, fh: BinaryIO, buffer: np.ndarray | bytearray | memoryview | None
    ) -> np.ndarray:
        hdr = self.header
        nbytes = hdr.plane_nbytes
        shape = (hdr.ny, hdr.nx)
        dtype = self.dtype

        if buffer is None:
            out = np.empty(shape, dtype=dtype)
            raw: np.ndarray | memoryview = out.reshape(-1).view(np.uint8)
        elif isinstance(buffer, np.ndarray):
            if not (buffer.flags.c_contiguous and buffer.flags.writeable):
                raise ValueError("buffer must be a writeable, C-contiguous array")
            raw = buffer.reshape(-1).view(np.uint8)
            if raw.nbytes < nbytes:
                raise ValueError(
                    f"buffer too small: need {nbytes} bytes, got {raw.nbytes}"
                )
            raw = raw[:nbytes]
            if buffer.shape == shape and buffer.dtype == dtype:
                out = buffer
            else:
                out = raw.view(dtype).reshape(shape)
        else:
            raw = memoryview(buffer).cast("B")
            if raw.nbytes < nbytes:
                raise ValueError(
                    f"buffer too small: need {nbytes} bytes, got {raw.nbytes}"
                )
            raw = raw[:nbytes]
            out = np.frombuffer(raw, dtype=dtype).reshape(shape)

        n = fh.readinto(raw)  # type: ignore[attr-defined]
        if n is None or n < nbytes:
            raise ShortReadError(
                f"Short read from {self._path!r}: expected {nbytes} bytes, "
                f"got {n or 0}"
            )
        return out


def _close_handle(fh: io.IOBase) -> None:
    """Close a file handle.

    Used as weakref finalizer for last-resort cleanup. This can ONLY close
    the handle - it cannot access instance state because it may be called
    after the DVFile instance is garbage collected.
    """
    with suppress(OSError):
        fh.close()


class _EnsureOpenContext(AbstractContextManager[DVFile]):
    """A context manager that ensures DVFile is open and restores state on exit.

    Unlike DVFile.__enter__/__exit__ which destroys on exit, this context manager
    ensures the file is open for the duration of the block, then restores it to
    whatever state it was in before (open or closed).
    """

    def __init__(self, dvfile: DVFile, close_on_exit: bool) -> None:
        self.dvfile = dvfile
        self.close_on_exit = close_on_exit

    def __enter__(self) -> DVFile:
        if self.dvfile.closed:
            self.dvfile.open()
        return self.dvfile

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
        /,
    ) -> Any:
        if self.close_on_exit:
            self.dvfile.close()
