"""
Fixtures for building archives on disk.
"""

import pytest
import structlog

from cloudtiles.archive.writer import PMTilesWriter
from cloudtiles.tiles.header import Compression, TileType
from cloudtiles.tiles.zxy import zxy_to_tileid


@pytest.fixture(autouse=True)
def reset_logging():
    yield

    structlog.reset_defaults()


def build_archive(path, tiles, metadata=None, **kwargs):
    """
    Write ``tiles`` (an iterable of (z, x, y, data)) to ``path``, sorted by
    tile ID, and return the completed header.
    """
    ordered = sorted(tiles, key=lambda t: zxy_to_tileid(t[0], t[1], t[2]))

    with PMTilesWriter(path, **kwargs) as writer:
        for z, x, y, data in ordered:
            writer.add_tile(z, x, y, data)

        if metadata is not None:
            writer.set_metadata(metadata)

        return writer.complete()


@pytest.fixture
def write_archive(tmp_path):
    def write(tiles, name="test.pmtiles", metadata=None, **kwargs):
        path = tmp_path / name
        build_archive(path, tiles, metadata=metadata, **kwargs)
        return path

    return write


@pytest.fixture
def two_tile_archive(write_archive):
    return write_archive(
        [(0, 0, 0, b"world"), (1, 0, 0, b"north-west")],
        tile_compression=Compression.NONE,
        internal_compression=Compression.NONE,
    )


@pytest.fixture
def vector_archive(write_archive):
    tiles = [(0, 0, 0, b"root tile")]
    tiles += [(1, x, y, f"tile 1/{x}/{y}".encode()) for x in range(2) for y in range(2)]
    tiles += [(2, 1, 1, b"tile 2/1/1")]

    return write_archive(
        tiles,
        metadata={
            "name": "Test tiles",
            "attribution": "Nobody",
            "vector_layers": [{"id": "roads", "fields": {"name": "String"}}],
        },
        tile_type=TileType.MVT,
        tile_compression=Compression.GZIP,
        bounds=(-10.0, -5.0, 10.0, 5.0),
    )
