"""
Binary codecs for the PMTiles v3 container.
"""

from .core import (
    CompressionError,
    DirectoryDecodeError,
    InvalidCoordinateError,
    InvalidHeaderError,
    InvalidTileIdError,
    OutOfZoomRangeError,
    PMTilesError,
    UnsupportedCompressionError,
)
from .directory import Entry
from .header import Compression, Header, TileType
from .zxy import ZXY, tileid_to_zxy, zxy_to_tileid

__all__ = (
    "ZXY",
    "Entry",
    "Header",
    "Compression",
    "TileType",
    "zxy_to_tileid",
    "tileid_to_zxy",
    "PMTilesError",
    "InvalidHeaderError",
    "UnsupportedCompressionError",
    "CompressionError",
    "InvalidCoordinateError",
    "OutOfZoomRangeError",
    "InvalidTileIdError",
    "DirectoryDecodeError",
)
