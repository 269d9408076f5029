"""Read-only OME-Zarr (NGFF v0.5) group store backed by a DV file."""

from __future__ import annotations

import json
from itertools import compress
from typing import TYPE_CHECKING, Any

import zarr
from zarr.core.buffer import default_buffer_prototype
from zarr.core.sync import sync

from dvfile._zarr._array_store import DVArrayStore
from dvfile._zarr._base_store import ReadOnlyStore

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Iterator

    from zarr.abc.store import ByteRequest, Store
    from zarr.core.buffer import Buffer, BufferPrototype
    from zarr.storage import StoreLike

    from dvfile._dvfile import DVFile

# NGFF axis types
_DIMENSION_TYPES = {
    "t": "time",
    "c": "channel",
    "z": "space",
    "y": "space",
    "x": "space",
}

# DV pixel spacing and origin are stored in micrometers
_SPACE_UNIT = "micrometer"

_DATASET_PATH = "0"


class DVOmeZarrStore(ReadOnlyStore):
    """Read-only zarr v3 group store presenting a DV file as OME-Zarr.

    Directory structure::

        root/
        ├── zarr.json (multiscales + omero metadata, ome.version=0.5)
        └── 0/ (full resolution)
            ├── zarr.json (array)
            └── c/... (chunks)

    Singleton T/C/Z axes are omitted, as NGFF recommends.

    Parameters
    ----------
    dvfile : DVFile
        DVFile to read from. Chunk reads reopen it if it was closed.
    tile_size : tuple[int, int], optional
        If provided, Y and X are chunked into tiles of this size.

    Examples
    --------
    >>> with DVFile("image.dv") as dv:
    ...     group = zarr.open_group(dv.to_zarr_store(group=True), mode="r")
    ...     data = group["0"][0, 0]
    """

    def __init__(
        self,
        dvfile: DVFile,
        /,
        *,
        tile_size: tuple[int, int] | None = None,
    ) -> None:
        super().__init__(read_only=True)
        self._dvfile = dvfile
        self._tile_size = tile_size
        self._array_store = DVArrayStore(
            dvfile, tile_size=tile_size, squeeze_singletons=True
        )
        self._is_open = True

    # ------------------------------------------------------------------
    # Metadata builders
    # ------------------------------------------------------------------

    def _build_root_metadata(self) -> bytes:
        """Build multiscales group metadata with axes, datasets and omero."""
        hdr = self._dvfile.header
        scale = list(
            compress(
                [1.0, 1.0, *self._physical_sizes()],
                self._array_store._dim_filter,
            )
        )
        metadata: dict[str, Any] = {
            "zarr_format": 3,
            "node_type": "group",
            "attributes": {
                "ome": {
                    "version": "0.5",
                    "multiscales": [
                        {
                            "name": self._dvfile.ome_metadata.images[0].name,
                            "axes": list(self._build_axes()),
                            "datasets": [
                                {
                                    "path": _DATASET_PATH,
                                    "coordinateTransformations": [
                                        {"type": "scale", "scale": scale}
                                    ],
                                }
                            ],
                        }
                    ],
                    "omero": {
                        "channels": [
                            {
                                "label": channel.name,
                                "window": {
                                    "min": wmin,
                                    "max": wmax,
                                    "start": wmin,
                                    "end": wmax,
                                },
                                "active": True,
                            }
                            for channel, (wmin, wmax) in zip(
                                self._dvfile.ome_metadata.images[0].pixels.channels,
                                self._channel_windows(),
                                strict=False,
                            )
                        ],
                        "rdefs": {"defaultT": 0, "defaultZ": hdr.real_z_count // 2},
                    },
                },
            },
        }
        return json.dumps(metadata).encode()

    def _build_axes(self) -> Iterator[dict[str, str]]:
        """Build axes list, delegating the singleton filter to the array store."""
        for name in self._array_store.dimension_names():
            dim_type = _DIMENSION_TYPES.get(name, "other")
            axis: dict[str, str] = {"name": name, "type": dim_type}
            if dim_type == "space":
                axis["unit"] = _SPACE_UNIT
            yield axis

    def _physical_sizes(self) -> list[float]:
        """Return (z, y, x) pixel spacing, 1.0 where the header has none."""
        hdr = self._dvfile.header
        return [size if size > 0 else 1.0 for size in (hdr.zlen, hdr.ylen, hdr.xlen)]

    def _channel_windows(self) -> list[tuple[float, float]]:
        """Return one (min, max) display window per channel."""
        hdr = self._dvfile.header
        windows = list(hdr.wave_min_max)
        windows += [(hdr.amin, hdr.amax)] * (hdr.wave_count - len(windows))
        return windows

    # ------------------------------------------------------------------
    # zarr.abc.store.Store
    # ------------------------------------------------------------------

    def __eq__(self, value: object) -> bool:
        if not isinstance(value, type(self)):  # pragma: no cover
            return NotImplemented
        return (
            self._dvfile.filename == value._dvfile.filename
            and self._tile_size == value._tile_size
        )

    async def get(
        self,
        key: str,
        prototype: BufferPrototype,
        byte_range: ByteRequest | None = None,
    ) -> Buffer | None:
        """Serve the root group metadata or delegate "0/..." to the array."""
        match key.split("/", 1):
            case ["zarr.json"]:
                data = self._build_root_metadata()
            case ["0", array_key]:
                return await self._array_store.get(array_key, prototype, byte_range)
            case _:
                return None

        if byte_range is not None:
            data = self._apply_byte_range(data, byte_range)
        return prototype.buffer.from_bytes(data)

    async def exists(self, key: str) -> bool:
        match key.split("/", 1):
            case ["zarr.json"]:
                return True
            case ["0", array_key]:
                return await self._array_store.exists(array_key)
            case _:
                return False

    async def list(self) -> AsyncIterator[str]:
        """Yield the root metadata key, then every key of dataset "0"."""
        yield "zarr.json"
        async for key in self._array_store.list():
            yield f"{_DATASET_PATH}/{key}"

    def close(self) -> None:
        """Close the store and its array store."""
        self._is_open = False
        self._array_store.close()

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._dvfile.filename!r})"

    def save(self, dest: StoreLike) -> None:
        """Write a real OME-Zarr copy of the file to `dest`.

        `dest` is anything `zarr.open_group` accepts, usually a directory path.
        Every plane is read once.
        """
        group = zarr.open_group(dest, mode="w")
        sync(self._copy_to(group.store))

    async def _copy_to(self, dest: Store) -> None:
        proto = default_buffer_prototype()
        async for key in self.list():
            buf = await self.get(key, prototype=proto)
            if buf is not None:
                await dest.set(key, buf)
