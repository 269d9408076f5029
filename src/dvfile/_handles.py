"""Integer-handle compatibility layer for code written against the IVE stream API.

The IVE image library addresses open files by small integers ("streams"):
open a stream, read its header, position it at a (z, w, t) section, then read
sections one after another. `HandleTable` provides those calls on top of
[`DVFile`][dvfile.DVFile]. Each table owns its handles; create one per
session and clear it (or use it as a context manager) at shutdown.
"""

from __future__ import annotations

import os
import warnings
from typing import TYPE_CHECKING, Any, NamedTuple

from ._dvfile import DVFile
from ._errors import (
    DVOpenError,
    HandleNotFoundError,
    UnsupportedOperationError,
    UnsupportedOperationWarning,
)

if TYPE_CHECKING:
    from collections.abc import Iterator

    import numpy as np
    from typing_extensions import Self

    from ._header import DVHeader

READ_ONLY = "ro"


class HeaderSummary(NamedTuple):
    """Scalar header values returned by `HandleTable.read_header`."""

    ixyz: tuple[int, int, int]
    mxyz: tuple[int, int, int]
    mode: int
    dmin: float
    dmax: float
    dmean: float


class HandleTable:
    """Mapping of integer handle ids to open DVFile instances.

    Examples
    --------
    >>> with HandleTable() as streams:
    ...     streams.open(1, "image.dv")
    ...     streams.position(1, z=0, w=0, t=0)
    ...     first = streams.read_section(1)
    ...     second = streams.read_section(1)  # next plane in the file
    """

    def __init__(self) -> None:
        self._files: dict[int, DVFile] = {}

    def open(
        self, handle_id: int, path: str | os.PathLike, mode: str = READ_ONLY
    ) -> DVFile:
        """Open `path` under `handle_id`.

        If `handle_id` is already in use, the previous file is closed first
        and a RuntimeWarning is issued.

        Raises
        ------
        DVOpenError
            If `mode` is not "ro", or the file cannot be opened or is not a
            DV file. No handle is registered in that case.
        """
        if handle_id in self._files:
            self._files.pop(handle_id).destroy()
            warnings.warn(
                f"Reusing stream identifier {handle_id}. Previous stream closed.",
                RuntimeWarning,
                stacklevel=2,
            )

        if mode != READ_ONLY:
            raise DVOpenError(f"Unknown file mode: {mode!r}")

        dv = DVFile(path).open()
        self._files[handle_id] = dv
        return dv

    def close(self, handle_id: int) -> None:
        """Close and forget `handle_id`. Unknown ids are ignored."""
        if (dv := self._files.pop(handle_id, None)) is not None:
            dv.destroy()

    def clear(self) -> None:
        """Close every open handle."""
        while self._files:
            _, dv = self._files.popitem()
            dv.destroy()

    def get(self, handle_id: int) -> DVFile:
        """Return the DVFile registered under `handle_id`.

        Raises
        ------
        HandleNotFoundError
            If no file is open under `handle_id`.
        """
        try:
            return self._files[handle_id]
        except KeyError:
            raise HandleNotFoundError(f"Stream not found: {handle_id}") from None

    def get_header(self, handle_id: int) -> DVHeader:
        """Return the (immutable) header of `handle_id`."""
        return self.get(handle_id).header

    def read_header(self, handle_id: int) -> HeaderSummary:
        """Return dimensions, interval counts, pixel type and intensity stats."""
        hdr = self.get_header(handle_id)
        return HeaderSummary(
            ixyz=(hdr.nx, hdr.ny, hdr.nz),
            mxyz=(hdr.mx, hdr.my, hdr.mz),
            mode=hdr.mode,
            dmin=hdr.amin,
            dmax=hdr.amax,
            dmean=hdr.amean,
        )

    def position(self, handle_id: int, z: int, w: int, t: int) -> None:
        """Position `handle_id` so the next `read_section` returns (z, w, t).

        Raises
        ------
        CoordinateOutOfRangeError
            If any index is out of range; the position is left unchanged.
        """
        self.get(handle_id).seek_plane(t=t, c=w, z=z)

    def read_section(
        self,
        handle_id: int,
        buffer: np.ndarray | bytearray | memoryview | None = None,
    ) -> np.ndarray:
        """Read the next section of `handle_id` and advance to the one after.

        Reads from wherever the file currently points: the start of the data
        only if `position` was called.
        """
        return self.get(handle_id).read_next_plane(buffer)

    # ---------------------- accepted, no effect ----------------------

    def set_conversion(self, handle_id: int, flag: bool) -> None:
        """Accept the legacy float-conversion toggle.

        Data is always returned in its stored type, so enabling conversion
        only issues a warning.
        """
        self.get(handle_id)
        if flag:
            warnings.warn(
                "Conversion to float is not implemented; data keeps its stored type.",
                UnsupportedOperationWarning,
                stacklevel=2,
            )

    def set_printing(self, flag: bool) -> None:
        """Accept the legacy stdout-printing toggle. Nothing is ever printed."""
        if flag:
            warnings.warn(
                "Printing header information is not implemented.",
                UnsupportedOperationWarning,
                stacklevel=2,
            )

    # ------------------------ not implemented ------------------------

    def set_labels(self, handle_id: int, labels: Any, num_labels: int) -> None:
        raise UnsupportedOperationError("Changing titles is not implemented.")

    def put_header(self, handle_id: int, header: DVHeader) -> None:
        raise UnsupportedOperationError("Replacing the header is not implemented.")

    def write_header(
        self,
        handle_id: int,
        title: str,
        ntflag: int,
        dmin: float,
        dmax: float,
        dmean: float,
    ) -> None:
        raise UnsupportedOperationError("Writing headers is not implemented.")

    def write_section(self, handle_id: int, data: Any) -> None:
        raise UnsupportedOperationError("Writing sections is not implemented.")

    def read_extended_header(self, handle_id: int, z: int, w: int, t: int) -> Any:
        raise UnsupportedOperationError(
            "Reading extended header values is not implemented."
        )

    # ----------------------------------------------------------------

    def __contains__(self, handle_id: object) -> bool:
        return handle_id in self._files

    def __len__(self) -> int:
        return len(self._files)

    def __iter__(self) -> Iterator[int]:
        return iter(list(self._files))

    def __enter__(self) -> Self:
        return self

    def __exit__(self, *_args: Any) -> None:
        self.clear()

    def __repr__(self) -> str:
        return f"HandleTable({sorted(self._files)})"
