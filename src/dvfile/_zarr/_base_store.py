"""Shared base for the read-only zarr v3 stores."""

from __future__ import annotations

from typing import TYPE_CHECKING

from zarr.abc.store import (
    OffsetByteRequest,
    RangeByteRequest,
    Store,
    SuffixByteRequest,
)

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Iterable

    from zarr.abc.store import ByteRequest
    from zarr.core.buffer import Buffer, BufferPrototype


class ReadOnlyStore(Store):
    """zarr v3 Store that serves virtual keys and rejects all writes.

    Subclasses implement `get`, `exists`, `list` and `__eq__`.
    """

    @property
    def supports_writes(self) -> bool:
        return False

    @property
    def supports_deletes(self) -> bool:
        return False

    @property
    def supports_partial_writes(self) -> bool:
        return False

    @property
    def supports_listing(self) -> bool:
        return True

    async def set(self, key: str, value: Buffer) -> None:
        raise PermissionError(f"{type(self).__name__} is read-only")

    async def delete(self, key: str) -> None:
        raise PermissionError(f"{type(self).__name__} is read-only")

    async def set_partial_values(
        self, key_start_values: Iterable[tuple[str, int, bytes]]
    ) -> None:
        raise PermissionError(f"{type(self).__name__} is read-only")

    async def get_partial_values(
        self,
        prototype: BufferPrototype,
        key_ranges: Iterable[tuple[str, ByteRequest | None]],
    ) -> list[Buffer | None]:
        return [await self.get(key, prototype, rng) for key, rng in key_ranges]

    async def list_prefix(self, prefix: str) -> AsyncIterator[str]:
        async for key in self.list():
            if key.startswith(prefix):
                yield key

    async def list_dir(self, prefix: str) -> AsyncIterator[str]:
        prefix = prefix.rstrip("/")
        prefix = f"{prefix}/" if prefix else ""
        seen: set[str] = set()
        async for key in self.list():
            if not key.startswith(prefix):
                continue
            child = key[len(prefix) :].split("/", 1)[0]
            if child not in seen:
                seen.add(child)
                yield child

    @staticmethod
    def _apply_byte_range(data: bytes, byte_range: ByteRequest) -> bytes:
        """Return the slice of `data` selected by a zarr ByteRequest."""
        if isinstance(byte_range, RangeByteRequest):
            return data[byte_range.start : byte_range.end]
        if isinstance(byte_range, OffsetByteRequest):
            return data[byte_range.offset :]
        if isinstance(byte_range, SuffixByteRequest):
            return data[-byte_range.suffix :] if byte_range.suffix else b""
        raise TypeError(f"Unexpected byte_range: {byte_range!r}")  # pragma: no cover
