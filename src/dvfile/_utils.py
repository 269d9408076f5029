from __future__ import annotations


def _axis_chunks(size: int, tile: int) -> tuple[int, ...]:
    if size == 0:
        return (0,)
    full, rem = divmod(size, tile)
    return (tile,) * full + ((rem,) if rem else ())


def get_dask_tile_chunks(
    nt: int, nc: int, nz: int, ny: int, nx: int, tile_size: tuple[int, int]
) -> tuple[tuple[int, ...], ...]:
    """Return explicit dask chunks: one per T/C/Z index, Y/X split into tiles.

    Edge tiles are smaller when the plane size is not a multiple of the tile.
    """
    ty, tx = tile_size
    if ty <= 0 or tx <= 0:
        raise ValueError(f"tile_size must be positive, got {tile_size}")
    return (
        (1,) * nt or (0,),
        (1,) * nc or (0,),
        (1,) * nz or (0,),
        _axis_chunks(ny, ty),
        _axis_chunks(nx, tx),
    )
