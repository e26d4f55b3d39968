"""
Reading and writing PMTiles v3 archives.
"""

from .metadata import PMTilesMetadata, TileJSON, VectorLayer
from .reader import PMTilesReader
from .writer import (
    IllegalWriterStateError,
    OrderingViolationError,
    PMTilesWriter,
    ProgressListener,
    WriteCancelledError,
)

__all__ = (
    "PMTilesReader",
    "PMTilesWriter",
    "PMTilesMetadata",
    "ProgressListener",
    "TileJSON",
    "VectorLayer",
    "OrderingViolationError",
    "IllegalWriterStateError",
    "WriteCancelledError",
)
