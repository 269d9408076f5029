"""Read-only zarr v3 array store over the plane stack of a DV file."""

from __future__ import annotations

import json
import math
from itertools import compress, product
from typing import TYPE_CHECKING, Any

import numpy as np

from dvfile._zarr._base_store import ReadOnlyStore

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Iterator

    from zarr.abc.store import ByteRequest
    from zarr.core.buffer import Buffer, BufferPrototype

    from dvfile._dvfile import DVFile

PlaneTile = tuple[int, int, int, int, int]  # t, c, z, tile row, tile column


class DVArrayStore(ReadOnlyStore):
    """Zarr v3 store presenting a DV file as one (T, C, Z, Y, X) array.

    Nothing is written anywhere: ``zarr.json`` is generated from the header
    and every chunk key ``c/t/c/z/row/col`` is answered by one plane read.

    Parameters
    ----------
    dvfile : DVFile
        DVFile to read from. Its owner decides when it is opened and closed;
        chunk reads reopen it temporarily if needed.
    tile_size : tuple[int, int], optional
        Chunk each plane into (tile_y, tile_x) tiles. By default a chunk is a
        whole plane.
    squeeze_singletons : bool, optional
        Leave T, C and Z axes of extent 1 out of the array. Y and X are
        always kept.

    Raises
    ------
    NotImplementedError
        For complex 16-bit integer data, which has no zarr data type.

    Examples
    --------
    >>> with DVFile("image.dv") as dv:
    ...     arr = zarr.open_array(dv.to_zarr_store(), mode="r")
    ...     plane = arr[0, 1, 2]
    """

    def __init__(
        self,
        dvfile: DVFile,
        /,
        *,
        tile_size: tuple[int, int] | None = None,
        squeeze_singletons: bool = False,
    ) -> None:
        super().__init__(read_only=True)
        if dvfile.dtype.fields is not None:
            raise NotImplementedError(
                f"zarr stores do not support pixel type {dvfile.header.pixel_type.name}"
            )
        self._dvfile = dvfile
        self._dtype = dvfile.dtype
        self._full_shape = dvfile.shape
        self._tile_size = tile_size
        self._metadata: bytes | None = None
        self._is_open = True

        nt, nc, nz, ny, nx = self._full_shape
        # which of (T, C, Z, Y, X) appear in the array
        self._dim_filter = [True] * 5
        if squeeze_singletons:
            self._dim_filter[:3] = [nt > 1, nc > 1, nz > 1]

        ty, tx = tile_size or (ny, nx)
        grid = [nt, nc, nz, math.ceil(ny / ty), math.ceil(nx / tx)]
        self._chunk_grid = tuple(compress(grid, self._dim_filter))
        self._shape = tuple(compress(self._full_shape, self._dim_filter))

    def dimension_names(self) -> Iterator[str]:
        """Yield the lowercase names of the axes present in the array."""
        yield from compress("tczyx", self._dim_filter)

    # ------------------------------------------------------------------
    # keys and metadata
    # ------------------------------------------------------------------

    def _array_metadata(self) -> bytes:
        if self._metadata is None:
            _, _, _, ny, nx = self._full_shape
            ty, tx = self._tile_size or (ny, nx)
            chunk_shape = list(compress([1, 1, 1, ty, tx], self._dim_filter))
            endian = "big" if self._dvfile.byteorder == ">" else "little"
            metadata: dict[str, Any] = {
                "zarr_format": 3,
                "node_type": "array",
                "shape": list(self._shape),
                "data_type": self._dtype.name,
                "chunk_grid": {
                    "name": "regular",
                    "configuration": {"chunk_shape": chunk_shape},
                },
                "chunk_key_encoding": {
                    "name": "default",
                    "configuration": {"separator": "/"},
                },
                "fill_value": [0.0, 0.0] if self._dtype.kind == "c" else 0,
                "codecs": [{"name": "bytes", "configuration": {"endian": endian}}],
                "dimension_names": list(self.dimension_names()),
            }
            self._metadata = json.dumps(metadata).encode()
        return self._metadata

    def _chunk_keys(self) -> Iterator[str]:
        for idx in product(*(range(n) for n in self._chunk_grid)):
            yield "c/" + "/".join(map(str, idx))

    def _plane_tile(self, key: str) -> PlaneTile | None:
        """Map a chunk key to (t, c, z, row, col), or None if it is not one."""
        prefix, _, rest = key.partition("/")
        parts = rest.split("/")
        if prefix != "c" or len(parts) != len(self._chunk_grid):
            return None
        for part, n in zip(parts, self._chunk_grid):
            if not part.isdigit() or int(part) >= n:
                return None

        values = iter(int(p) for p in parts)
        tile = [next(values) if keep else 0 for keep in self._dim_filter]
        return tuple(tile)  # type: ignore[return-value]

    def _read_tile(self, where: PlaneTile) -> bytes:
        t, c, z, row, col = where
        with self._dvfile._lock:
            data = self._dvfile.read_plane(t, c, z)

        if self._tile_size is not None:
            ty, tx = self._tile_size
            data = data[row * ty : (row + 1) * ty, col * tx : (col + 1) * tx]
            if data.shape != (ty, tx):
                # zarr expects every chunk at full size, edge tiles included
                padded = np.zeros((ty, tx), dtype=self._dtype)
                padded[: data.shape[0], : data.shape[1]] = data
                data = padded
        return np.ascontiguousarray(data).tobytes()

    # ------------------------------------------------------------------
    # zarr.abc.store.Store
    # ------------------------------------------------------------------

    def __eq__(self, value: object) -> bool:
        if not isinstance(value, DVArrayStore):
            return NotImplemented  # pragma: no cover
        return (
            self._dvfile.filename == value._dvfile.filename
            and self._tile_size == value._tile_size
            and self._dim_filter == value._dim_filter
        )

    async def get(
        self,
        key: str,
        prototype: BufferPrototype,
        byte_range: ByteRequest | None = None,
    ) -> Buffer | None:
        if key == "zarr.json":
            data = self._array_metadata()
        elif (where := self._plane_tile(key)) is not None:
            with self._dvfile.ensure_open():
                data = self._read_tile(where)
        else:
            return None

        if byte_range is not None:
            data = self._apply_byte_range(data, byte_range)
        return prototype.buffer.from_bytes(data)

    async def exists(self, key: str) -> bool:
        return key == "zarr.json" or self._plane_tile(key) is not None

    async def list(self) -> AsyncIterator[str]:
        yield "zarr.json"
        for key in self._chunk_keys():
            yield key

    def close(self) -> None:
        """Close the store. The DVFile is left to its owner."""
        self._is_open = False

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._dvfile.filename!r}, shape={self._shape})"
