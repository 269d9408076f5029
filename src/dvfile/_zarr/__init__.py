"""Read-only zarr v3 stores backed by DV files."""

from dvfile._zarr._array_store import DVArrayStore
from dvfile._zarr._group_store import DVOmeZarrStore

__all__ = ["DVArrayStore", "DVOmeZarrStore"]
