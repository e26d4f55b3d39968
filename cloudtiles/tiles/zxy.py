"""
Conversion between (z, x, y) tile coordinates and PMTiles tile IDs.

Tile IDs order every tile of every zoom level along a single line. All the
tiles of zoom level z come after those of the lower levels, and within a
level they follow a Hilbert curve over the 2^z x 2^z grid:

    tile_id = (4^0 + 4^1 + ... + 4^(z-1)) + hilbert(z, x, y)
"""

from dataclasses import dataclass

from .core import InvalidCoordinateError, InvalidTileIdError

MAX_ZOOM = 31
"Highest zoom level whose tile IDs fit in an unsigned 64-bit integer."


def tiles_before_zoom(z: int) -> int:
    """
    Number of tiles in all the zoom levels below z, i.e. the first tile ID
    of level z.
    """
    return ((1 << (2 * z)) - 1) // 3


def _rotate(n: int, x: int, y: int, rx: int, ry: int) -> tuple[int, int]:
    if ry == 0:
        if rx == 1:
            x = n - 1 - x
            y = n - 1 - y
        x, y = y, x

    return x, y


def hilbert_xy_to_index(z: int, x: int, y: int) -> int:
    n = 1 << z
    d = 0
    s = n >> 1

    while s > 0:
        rx = 1 if (x & s) > 0 else 0
        ry = 1 if (y & s) > 0 else 0
        d += s * s * ((3 * rx) ^ ry)
        x, y = _rotate(n, x, y, rx, ry)
        s >>= 1

    return d


def hilbert_index_to_xy(z: int, d: int) -> tuple[int, int]:
    n = 1 << z
    x = y = 0
    s = 1

    while s < n:
        rx = 1 & (d >> 1)
        ry = 1 & (d ^ rx)
        x, y = _rotate(s, x, y, rx, ry)
        x += s * rx
        y += s * ry
        d >>= 2
        s <<= 1

    return x, y


def validate_zxy(z: int, x: int, y: int):
    if z < 0:
        raise InvalidCoordinateError(f"Zoom level must be non-negative, got {z}")

    if z > MAX_ZOOM:
        raise InvalidCoordinateError(
            f"Zoom level {z} exceeds the 64-bit tile ID limit of {MAX_ZOOM}"
        )

    limit = 1 << z

    if not 0 <= x < limit:
        raise InvalidCoordinateError(
            f"X coordinate {x} is outside of 0 to {limit - 1} for zoom level {z}"
        )

    if not 0 <= y < limit:
        raise InvalidCoordinateError(
            f"Y coordinate {y} is outside of 0 to {limit - 1} for zoom level {z}"
        )


def zxy_to_tileid(z: int, x: int, y: int) -> int:
    validate_zxy(z, x, y)
    return tiles_before_zoom(z) + hilbert_xy_to_index(z, x, y)


def tileid_to_zxy(tile_id: int) -> tuple[int, int, int]:
    if tile_id < 0:
        raise InvalidTileIdError(f"Tile ID must be non-negative, got {tile_id}")

    acc = 0
    for z in range(MAX_ZOOM + 1):
        num_tiles = 1 << (2 * z)

        if tile_id < acc + num_tiles:
            x, y = hilbert_index_to_xy(z, tile_id - acc)
            return z, x, y

        acc += num_tiles

    raise InvalidTileIdError(f"Tile ID {tile_id} is beyond zoom level {MAX_ZOOM}")


@dataclass(frozen=True)
class ZXY:
    """
    An individual tile address in the XYZ (slippy map) convention. No
    flipping to or from TMS is ever applied.
    """

    z: int
    x: int
    y: int

    def __post_init__(self):
        validate_zxy(self.z, self.x, self.y)

    @property
    def tile_id(self) -> int:
        return tiles_before_zoom(self.z) + hilbert_xy_to_index(self.z, self.x, self.y)

    @classmethod
    def from_tile_id(cls, tile_id: int) -> "ZXY":
        return cls(*tileid_to_zxy(tile_id))

    def __str__(self) -> str:
        return f"{self.z}/{self.x}/{self.y}"
