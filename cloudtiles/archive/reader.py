"""
Reading tiles out of an archive through a range reader.
"""

import json
import threading
from typing import Any, Iterator

import structlog
from cachetools import LRUCache
from pydantic import ValidationError

from cloudtiles.sources.core import RangeReader
from cloudtiles.tiles.compression import decompress
from cloudtiles.tiles.core import (
    CompressionError,
    DirectoryDecodeError,
    InvalidCoordinateError,
    InvalidHeaderError,
    OutOfZoomRangeError,
)
from cloudtiles.tiles.directory import Entry, deserialize_directory, find_entry
from cloudtiles.tiles.header import HEADER_SIZE, Header
from cloudtiles.tiles.zxy import MAX_ZOOM, ZXY, tileid_to_zxy, tiles_before_zoom

from .metadata import PMTilesMetadata

DEFAULT_LEAF_CACHE_SIZE = 64


def check_layout(header: Header, size: int, identity: str = "archive"):
    """
    Check that the sections the header points to lie within the ``size``
    bytes of the archive, after the header, without overlapping.
    """
    sections = [
        ("root directory", header.root_offset, header.root_length),
        ("metadata", header.metadata_offset, header.metadata_length),
        ("leaf directories", header.leaf_directory_offset, header.leaf_directory_length),
        ("tile data", header.tile_data_offset, header.tile_data_length),
    ]

    previous = None

    for name, offset, length in sorted(
        (s for s in sections if s[2] > 0), key=lambda s: s[1]
    ):
        if offset < HEADER_SIZE:
            raise InvalidHeaderError(f"The {name} of {identity} overlaps the header")

        if offset + length > size:
            raise InvalidHeaderError(
                f"The {name} of {identity} ({length} bytes at {offset}) extends "
                f"past the end of the archive ({size} bytes)"
            )

        if previous is not None and offset < previous[1] + previous[2]:
            raise InvalidHeaderError(
                f"The {name} of {identity} overlaps its {previous[0]}"
            )

        previous = (name, offset, length)


class PMTilesReader:
    """
    Random access to the tiles of an archive. The header and root directory
    are read once, when the reader is opened; leaf directories are fetched
    on demand and kept in a small LRU cache.

    The reader owns its source, and closing it closes the source.
    """

    source: RangeReader
    header: Header
    root: list[Entry]

    def __init__(self, source: RangeReader, leaf_cache_size: int = DEFAULT_LEAF_CACHE_SIZE):
        self.source = source
        self.logger = structlog.get_logger()

        if source.size < HEADER_SIZE:
            raise InvalidHeaderError(
                f"{source.identity} is {source.size} bytes, too short for a header"
            )

        self.header = Header.deserialize(source.read_range(0, HEADER_SIZE))
        check_layout(self.header, source.size, source.identity)

        self.root = self._read_directory(
            self.header.root_offset, self.header.root_length
        )

        self._leaves = LRUCache(maxsize=leaf_cache_size)
        self._leaf_lock = threading.Lock()

        self.logger.info(
            "reader.opened",
            source=source.identity,
            min_zoom=self.header.min_zoom,
            max_zoom=self.header.max_zoom,
            root_entries=len(self.root),
        )

    def _read_directory(self, offset: int, length: int) -> list[Entry]:
        if length == 0:
            return []

        if offset + length > self.source.size:
            raise DirectoryDecodeError(
                f"Directory at {offset} ({length} bytes) extends past the end of "
                f"{self.source.identity}"
            )

        try:
            data = decompress(
                self.source.read_range(offset, length),
                self.header.internal_compression,
            )
        except CompressionError as e:
            raise DirectoryDecodeError(
                f"Unable to decompress directory at {offset} ({length} bytes)"
            ) from e

        return deserialize_directory(data)

    def _leaf(self, entry: Entry) -> list[Entry]:
        offset = self.header.leaf_directory_offset + entry.offset

        with self._leaf_lock:
            leaf = self._leaves.get(offset, None)

        if leaf is not None:
            return leaf

        # Racing readers may both fetch the same leaf, which is harmless.
        leaf = self._read_directory(offset, entry.length)

        self.logger.debug(
            "reader.leaf.fetched",
            source=self.source.identity,
            offset=offset,
            entries=len(leaf),
        )

        with self._leaf_lock:
            self._leaves[offset] = leaf

        return leaf

    def find_tile_entry(self, tile_id: int) -> Entry | None:
        entry = find_entry(self.root, tile_id)

        if entry is not None and entry.is_leaf:
            entry = find_entry(self._leaf(entry), tile_id)

            if entry is not None and entry.is_leaf:
                raise DirectoryDecodeError(
                    f"Leaf directory for tile {tile_id} points to another leaf"
                )

        return entry

    def _read_tile(self, entry: Entry) -> bytes:
        if entry.length == 0:
            return b""

        if entry.offset + entry.length > self.header.tile_data_length:
            raise DirectoryDecodeError(
                f"Entry for tile {entry.tile_id} points past the end of the tile data"
            )

        data = self.source.read_range(
            self.header.tile_data_offset + entry.offset, entry.length
        )

        return decompress(data, self.header.tile_compression)

    def get_tile_by_id(self, tile_id: int) -> bytes | None:
        entry = self.find_tile_entry(tile_id)

        if entry is None:
            return None

        return self._read_tile(entry)

    def get_tile(self, z: int, x: int, y: int) -> bytes | None:
        """
        Get the decompressed payload of tile z/x/y, or None when the archive
        has no such tile.

        Raises
        ------
        OutOfZoomRangeError
            If z is outside of the archive's zoom range.
        InvalidCoordinateError
            If x or y are outside of the grid at zoom z.
        """
        if not self.header.min_zoom <= z <= self.header.max_zoom:
            raise OutOfZoomRangeError(
                f"Zoom level {z} is outside of the archive's range "
                f"{self.header.min_zoom} to {self.header.max_zoom}"
            )

        tile_id = ZXY(z=z, x=x, y=y).tile_id

        self.logger.debug("reader.tile", source=self.source.identity, tile_id=tile_id)

        return self.get_tile_by_id(tile_id)

    def get_raw_metadata(self) -> bytes:
        if self.header.metadata_length == 0:
            return b"{}"

        try:
            return decompress(
                self.source.read_range(
                    self.header.metadata_offset, self.header.metadata_length
                ),
                self.header.internal_compression,
            )
        except CompressionError as e:
            raise DirectoryDecodeError("Unable to decompress the metadata block") from e

    def get_metadata(self) -> dict[str, Any]:
        try:
            metadata = json.loads(self.get_raw_metadata())
        except ValueError as e:
            raise DirectoryDecodeError("Metadata block is not valid JSON") from e

        if not isinstance(metadata, dict):
            raise DirectoryDecodeError("Metadata block is not a JSON object")

        return metadata

    def get_metadata_model(self) -> PMTilesMetadata:
        try:
            return PMTilesMetadata.model_validate(self.get_metadata())
        except ValidationError as e:
            raise DirectoryDecodeError(f"Unexpected metadata contents: {e}") from e

    def iter_entries(self, start: int = 0, stop: int | None = None) -> Iterator[Entry]:
        """
        Tile entries in tile ID order, with leaf directories resolved. With
        ``start`` and ``stop``, only the entries overlapping tile IDs
        [start, stop) are returned, and leaves outside of the range are not
        fetched.
        """
        for index, entry in enumerate(self.root):
            if stop is not None and entry.tile_id >= stop:
                return

            if entry.is_leaf:
                # A leaf covers the tile IDs up to the next root entry.
                following = self.root[index + 1] if index + 1 < len(self.root) else None

                if following is not None and following.tile_id <= start:
                    continue

                children = self._leaf(entry)
            else:
                children = [entry]

            for child in children:
                if stop is not None and child.tile_id >= stop:
                    return

                if child.tile_id + child.run_length > start:
                    yield child

    def _zoom_range(self, zoom: int | None) -> tuple[int, int | None]:
        if zoom is None:
            return 0, None

        if not 0 <= zoom <= MAX_ZOOM:
            raise InvalidCoordinateError(
                f"Zoom level must be between 0 and {MAX_ZOOM}, got {zoom}"
            )

        return tiles_before_zoom(zoom), tiles_before_zoom(zoom + 1)

    def iter_tile_ids(self, zoom: int | None = None) -> Iterator[int]:
        """
        The IDs of the tiles present in the archive, in order, optionally
        only those of one zoom level.
        """
        start, stop = self._zoom_range(zoom)

        for entry in self.iter_entries(start, stop):
            first = max(entry.tile_id, start)
            last = entry.tile_id + entry.run_length

            yield from range(first, last if stop is None else min(last, stop))

    def iter_tiles(self, zoom: int | None = None) -> Iterator[tuple[ZXY, bytes]]:
        """
        Every tile in the archive (or in one zoom level), in tile ID order,
        with runs expanded.
        """
        start, stop = self._zoom_range(zoom)

        for entry in self.iter_entries(start, stop):
            data = self._read_tile(entry)
            last = entry.tile_id + entry.run_length

            for tile_id in range(
                max(entry.tile_id, start), last if stop is None else min(last, stop)
            ):
                yield ZXY(*tileid_to_zxy(tile_id)), data

    def close(self):
        with self._leaf_lock:
            self._leaves.clear()

        self.source.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.close()
