"""
The fixed 127-byte PMTiles v3 header.

Layout (all integers little-endian):

    offset  size  field
    0       7     magic, b"PMTiles"
    7       1     version, 3
    8       8     root directory offset
    16      8     root directory length
    24      8     JSON metadata offset
    32      8     JSON metadata length
    40      8     leaf directories offset
    48      8     leaf directories length
    56      8     tile data offset
    64      8     tile data length
    72      8     number of addressed tiles
    80      8     number of tile entries
    88      8     number of tile contents
    96      1     clustered
    97      1     internal compression
    98      1     tile compression
    99      1     tile type
    100     1     min zoom
    101     1     max zoom
    102     4     min longitude (e7)
    106     4     min latitude (e7)
    110     4     max longitude (e7)
    114     4     max latitude (e7)
    118     1     center zoom
    119     4     center longitude (e7)
    123     4     center latitude (e7)
"""

import struct
from enum import IntEnum
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .core import InvalidHeaderError

MAGIC = b"PMTiles"
VERSION = 3
HEADER_SIZE = 127

HEADER_STRUCT = struct.Struct("<7sB11QBBBBBB4iB2i")

# Ranges of the struct fields.
UInt64 = Annotated[int, Field(ge=0, le=2**64 - 1)]
UInt8 = Annotated[int, Field(ge=0, le=255)]
Int32 = Annotated[int, Field(ge=-(2**31), le=2**31 - 1)]


class Compression(IntEnum):
    UNKNOWN = 0
    NONE = 1
    GZIP = 2
    BROTLI = 3
    ZSTD = 4


class TileType(IntEnum):
    UNKNOWN = 0
    MVT = 1
    PNG = 2
    JPEG = 3
    WEBP = 4
    AVIF = 5

    @property
    def media_type(self) -> str:
        return {
            TileType.MVT: "application/vnd.mapbox-vector-tile",
            TileType.PNG: "image/png",
            TileType.JPEG: "image/jpeg",
            TileType.WEBP: "image/webp",
            TileType.AVIF: "image/avif",
        }.get(self, "application/octet-stream")

    @property
    def extension(self) -> str:
        return {
            TileType.MVT: "mvt",
            TileType.PNG: "png",
            TileType.JPEG: "jpg",
            TileType.WEBP: "webp",
            TileType.AVIF: "avif",
        }.get(self, "bin")


def to_e7(degrees: float) -> int:
    return int(round(degrees * 10_000_000))


class Header(BaseModel):
    model_config = ConfigDict(frozen=True)

    root_offset: UInt64 = HEADER_SIZE
    root_length: UInt64 = 0
    metadata_offset: UInt64 = 0
    metadata_length: UInt64 = 0
    leaf_directory_offset: UInt64 = 0
    leaf_directory_length: UInt64 = 0
    tile_data_offset: UInt64 = 0
    tile_data_length: UInt64 = 0

    addressed_tiles_count: UInt64 = 0
    "Total number of tiles before run-length encoding, or 0 if unknown."
    tile_entries_count: UInt64 = 0
    "Number of directory entries with a run length greater than zero."
    tile_contents_count: UInt64 = 0
    "Number of distinct tile payloads."
    clustered: bool = False
    "Whether the tile data is ordered by tile ID."

    internal_compression: Compression = Compression.GZIP
    tile_compression: Compression = Compression.GZIP
    tile_type: TileType = TileType.MVT

    min_zoom: UInt8 = 0
    max_zoom: UInt8 = 0

    min_lon_e7: Int32 = -1_800_000_000
    min_lat_e7: Int32 = -850_000_000
    max_lon_e7: Int32 = 1_800_000_000
    max_lat_e7: Int32 = 850_000_000

    center_zoom: UInt8 = 0
    center_lon_e7: Int32 = 0
    center_lat_e7: Int32 = 0

    @model_validator(mode="after")
    def check_zoom_order(self) -> "Header":
        if self.min_zoom > self.max_zoom:
            raise ValueError(
                f"min_zoom ({self.min_zoom}) is greater than max_zoom ({self.max_zoom})"
            )

        return self

    @property
    def bounds(self) -> tuple[float, float, float, float]:
        """(min_lon, min_lat, max_lon, max_lat) in degrees."""
        return (
            self.min_lon_e7 / 10_000_000,
            self.min_lat_e7 / 10_000_000,
            self.max_lon_e7 / 10_000_000,
            self.max_lat_e7 / 10_000_000,
        )

    @property
    def center(self) -> tuple[float, float, int]:
        return (
            self.center_lon_e7 / 10_000_000,
            self.center_lat_e7 / 10_000_000,
            self.center_zoom,
        )

    def serialize(self) -> bytes:
        return HEADER_STRUCT.pack(
            MAGIC,
            VERSION,
            self.root_offset,
            self.root_length,
            self.metadata_offset,
            self.metadata_length,
            self.leaf_directory_offset,
            self.leaf_directory_length,
            self.tile_data_offset,
            self.tile_data_length,
            self.addressed_tiles_count,
            self.tile_entries_count,
            self.tile_contents_count,
            1 if self.clustered else 0,
            self.internal_compression,
            self.tile_compression,
            self.tile_type,
            self.min_zoom,
            self.max_zoom,
            self.min_lon_e7,
            self.min_lat_e7,
            self.max_lon_e7,
            self.max_lat_e7,
            self.center_zoom,
            self.center_lon_e7,
            self.center_lat_e7,
        )

    @classmethod
    def deserialize(cls, data: bytes) -> "Header":
        if len(data) < HEADER_SIZE:
            raise InvalidHeaderError(
                f"Header must be {HEADER_SIZE} bytes, got {len(data)}"
            )

        values = HEADER_STRUCT.unpack(bytes(data[:HEADER_SIZE]))

        if values[0] != MAGIC:
            raise InvalidHeaderError("Invalid magic number, not a PMTiles archive")

        if values[1] != VERSION:
            raise InvalidHeaderError(f"Unsupported PMTiles version {values[1]}")

        (
            root_offset,
            root_length,
            metadata_offset,
            metadata_length,
            leaf_directory_offset,
            leaf_directory_length,
            tile_data_offset,
            tile_data_length,
            addressed_tiles_count,
            tile_entries_count,
            tile_contents_count,
            clustered,
            internal_compression,
            tile_compression,
            tile_type,
            min_zoom,
            max_zoom,
            min_lon_e7,
            min_lat_e7,
            max_lon_e7,
            max_lat_e7,
            center_zoom,
            center_lon_e7,
            center_lat_e7,
        ) = values[2:]

        try:
            internal_compression = Compression(internal_compression)
            tile_compression = Compression(tile_compression)
            tile_type = TileType(tile_type)
        except ValueError as e:
            raise InvalidHeaderError(str(e)) from e

        if min_zoom > max_zoom:
            raise InvalidHeaderError(
                f"min_zoom ({min_zoom}) is greater than max_zoom ({max_zoom})"
            )

        return cls(
            root_offset=root_offset,
            root_length=root_length,
            metadata_offset=metadata_offset,
            metadata_length=metadata_length,
            leaf_directory_offset=leaf_directory_offset,
            leaf_directory_length=leaf_directory_length,
            tile_data_offset=tile_data_offset,
            tile_data_length=tile_data_length,
            addressed_tiles_count=addressed_tiles_count,
            tile_entries_count=tile_entries_count,
            tile_contents_count=tile_contents_count,
            clustered=clustered == 1,
            internal_compression=internal_compression,
            tile_compression=tile_compression,
            tile_type=tile_type,
            min_zoom=min_zoom,
            max_zoom=max_zoom,
            min_lon_e7=min_lon_e7,
            min_lat_e7=min_lat_e7,
            max_lon_e7=max_lon_e7,
            max_lat_e7=max_lat_e7,
            center_zoom=center_zoom,
            center_lon_e7=center_lon_e7,
            center_lat_e7=center_lat_e7,
        )
