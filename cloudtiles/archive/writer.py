"""
Writing archives.

The header has to be the first 127 bytes of an archive, but it records the
offsets and lengths of everything after it. The writer therefore streams
tile data to a temporary file while tiles are added, and only lays out the
archive in ``complete()``, once every section's size is known:

    header | root directory | metadata | leaf directories | tile data

The output never needs to be seekable.
"""

import hashlib
import json
import tempfile
from pathlib import Path
from typing import Any, BinaryIO

import structlog

from cloudtiles.tiles.compression import compress
from cloudtiles.tiles.core import OutOfZoomRangeError, PMTilesError
from cloudtiles.tiles.directory import (
    MAX_ROOT_DIRECTORY_BYTES,
    Entry,
    build_directories,
)
from cloudtiles.tiles.header import HEADER_SIZE, Compression, Header, TileType, to_e7
from cloudtiles.tiles.zxy import ZXY

from .metadata import PMTilesMetadata

COPY_CHUNK_SIZE = 1024 * 1024
"Size of the chunks in which tile data is copied to the output."

DIRECTORIES_PROGRESS = 0.1
"Share of ``complete()`` reported once the directories are built."


class OrderingViolationError(PMTilesError):
    """Raised when tiles are not added in strictly increasing tile ID order."""

    pass


class IllegalWriterStateError(PMTilesError):
    pass


class WriteCancelledError(PMTilesError):
    """Raised by ``complete()`` when its progress listener cancels the write."""

    pass


class ProgressListener:
    """
    Receives the progress of ``PMTilesWriter.complete()`` and may cancel it.
    The default implementation ignores progress and never cancels.
    """

    def on_progress(self, fraction: float):
        pass

    def is_cancelled(self) -> bool:
        return False


class PMTilesWriter:
    """
    Single-threaded, append-only archive writer.

    Tiles must be added in strictly increasing tile ID order. Payloads are
    compressed with ``tile_compression`` and deduplicated across the whole
    archive; consecutive tiles with identical payloads share one directory
    entry. ``set_metadata`` may be called any number of times before
    ``complete()``, the last call wins.

    Closing the writer (or leaving its context) without calling
    ``complete()`` discards everything that was added.
    """

    def __init__(
        self,
        output: str | Path | BinaryIO,
        tile_type: TileType = TileType.MVT,
        tile_compression: Compression = Compression.GZIP,
        internal_compression: Compression = Compression.GZIP,
        min_zoom: int | None = None,
        max_zoom: int | None = None,
        bounds: tuple[float, float, float, float] | None = None,
        center: tuple[float, float, int] | None = None,
        max_root_directory_bytes: int = MAX_ROOT_DIRECTORY_BYTES,
        progress_listener: ProgressListener | None = None,
    ):
        if min_zoom is not None and max_zoom is not None and min_zoom > max_zoom:
            raise ValueError(f"min_zoom ({min_zoom}) is greater than max_zoom ({max_zoom})")

        self.output = output
        self.tile_type = tile_type
        self.tile_compression = tile_compression
        self.internal_compression = internal_compression
        self.min_zoom = min_zoom
        self.max_zoom = max_zoom
        self.bounds = bounds
        self.center = center
        self.max_root_directory_bytes = max_root_directory_bytes
        self.progress_listener = progress_listener or ProgressListener()

        self.logger = structlog.get_logger()

        self._tile_data = tempfile.TemporaryFile()
        self._entries: list[Entry] = []
        self._contents: dict[bytes, tuple[int, int]] = {}
        self._last_tile_id = -1
        self._addressed_tiles = 0
        self._seen_min_zoom: int | None = None
        self._seen_max_zoom: int | None = None
        self._metadata = b"{}"

        self.completed = False
        self.closed = False

    def _check_building(self, operation: str):
        if self.completed:
            raise IllegalWriterStateError(
                f"Cannot {operation}: the archive has already been completed"
            )

        if self.closed:
            raise IllegalWriterStateError(f"Cannot {operation}: the writer is closed")

    def add_tile(self, z: int, x: int, y: int, data: bytes):
        self._check_building("add a tile")

        if (self.min_zoom is not None and z < self.min_zoom) or (
            self.max_zoom is not None and z > self.max_zoom
        ):
            raise OutOfZoomRangeError(
                f"Tile {z}/{x}/{y} is outside of the zoom range "
                f"{self.min_zoom} to {self.max_zoom}"
            )

        tile_id = ZXY(z=z, x=x, y=y).tile_id

        if tile_id <= self._last_tile_id:
            raise OrderingViolationError(
                f"Tile {z}/{x}/{y} (ID {tile_id}) must come after tile ID "
                f"{self._last_tile_id}"
            )

        # Hash the uncompressed payload: gzip output embeds a timestamp.
        digest = hashlib.sha256(data).digest()

        if digest in self._contents:
            offset, length = self._contents[digest]
        else:
            payload = compress(data, self.tile_compression)
            offset, length = self._tile_data.tell(), len(payload)
            self._tile_data.write(payload)
            self._contents[digest] = (offset, length)

        last = self._entries[-1] if self._entries else None

        if (
            last is not None
            and last.offset == offset
            and last.length == length
            and last.tile_id + last.run_length == tile_id
        ):
            self._entries[-1] = Entry(
                tile_id=last.tile_id,
                offset=offset,
                length=length,
                run_length=last.run_length + 1,
            )
        else:
            self._entries.append(
                Entry(tile_id=tile_id, offset=offset, length=length, run_length=1)
            )

        self._last_tile_id = tile_id
        self._addressed_tiles += 1
        self._seen_min_zoom = z if self._seen_min_zoom is None else min(self._seen_min_zoom, z)
        self._seen_max_zoom = z if self._seen_max_zoom is None else max(self._seen_max_zoom, z)

    def set_metadata(self, metadata: dict[str, Any] | PMTilesMetadata | str | bytes):
        """
        Set the JSON metadata block, replacing any earlier value. Strings and
        bytes must hold a JSON object.
        """
        self._check_building("set metadata")

        if isinstance(metadata, PMTilesMetadata):
            self._metadata = metadata.to_json()
            return

        if isinstance(metadata, dict):
            self._metadata = json.dumps(metadata).encode("utf-8")
            return

        raw = metadata.encode("utf-8") if isinstance(metadata, str) else bytes(metadata)

        if not isinstance(json.loads(raw), dict):
            raise ValueError("Metadata must be a JSON object")

        self._metadata = raw

    def _header(self, root: bytes, metadata: bytes, leaves: bytes) -> Header:
        min_zoom = self.min_zoom
        if min_zoom is None:
            min_zoom = self._seen_min_zoom if self._seen_min_zoom is not None else 0

        max_zoom = self.max_zoom
        if max_zoom is None:
            max_zoom = self._seen_max_zoom if self._seen_max_zoom is not None else min_zoom

        min_lon, min_lat, max_lon, max_lat = self.bounds or (-180.0, -85.0, 180.0, 85.0)

        if self.center is not None:
            center_lon, center_lat, center_zoom = self.center
        else:
            center_lon = (min_lon + max_lon) / 2
            center_lat = (min_lat + max_lat) / 2
            center_zoom = min_zoom

        metadata_offset = HEADER_SIZE + len(root)
        leaf_directory_offset = metadata_offset + len(metadata)
        tile_data_offset = leaf_directory_offset + len(leaves)

        return Header(
            root_offset=HEADER_SIZE,
            root_length=len(root),
            metadata_offset=metadata_offset,
            metadata_length=len(metadata),
            leaf_directory_offset=leaf_directory_offset,
            leaf_directory_length=len(leaves),
            tile_data_offset=tile_data_offset,
            tile_data_length=self._tile_data.tell(),
            addressed_tiles_count=self._addressed_tiles,
            tile_entries_count=len(self._entries),
            tile_contents_count=len(self._contents),
            clustered=True,
            internal_compression=self.internal_compression,
            tile_compression=self.tile_compression,
            tile_type=self.tile_type,
            min_zoom=min_zoom,
            max_zoom=max_zoom,
            min_lon_e7=to_e7(min_lon),
            min_lat_e7=to_e7(min_lat),
            max_lon_e7=to_e7(max_lon),
            max_lat_e7=to_e7(max_lat),
            center_zoom=center_zoom,
            center_lon_e7=to_e7(center_lon),
            center_lat_e7=to_e7(center_lat),
        )

    def _progress(self, fraction: float):
        self.progress_listener.on_progress(fraction)

        if self.progress_listener.is_cancelled():
            raise WriteCancelledError("Writing the archive was cancelled")

    def _write(self, stream: BinaryIO, header: Header, sections: list[bytes]):
        stream.write(header.serialize())

        for section in sections:
            stream.write(section)

        total = header.tile_data_length
        copied = 0
        self._tile_data.seek(0)

        while chunk := self._tile_data.read(COPY_CHUNK_SIZE):
            stream.write(chunk)
            copied += len(chunk)
            self._progress(
                DIRECTORIES_PROGRESS + (1 - DIRECTORIES_PROGRESS) * copied / total
            )

        stream.flush()

    def _discard(self):
        if isinstance(self.output, (str, Path)):
            Path(self.output).unlink(missing_ok=True)

        self.close()

    def complete(self) -> Header:
        """
        Write out the archive and return its header. No tile can be added
        afterwards.

        The progress listener is told the completed fraction after the
        directories are built and after each chunk of tile data. If it
        cancels, a partially written output file is removed, the writer is
        closed and ``WriteCancelledError`` is raised.
        """
        self._check_building("complete the archive")

        try:
            self._progress(0.0)

            layout = build_directories(
                self._entries,
                self.internal_compression,
                max_root_bytes=self.max_root_directory_bytes,
            )
            metadata = compress(self._metadata, self.internal_compression)
            header = self._header(layout.root, metadata, layout.leaves)
            sections = [layout.root, metadata, layout.leaves]

            self._progress(DIRECTORIES_PROGRESS)
        except WriteCancelledError:
            self.close()
            raise

        # Cancelling past this point leaves a partially written output.
        try:
            if isinstance(self.output, (str, Path)):
                with open(self.output, "wb") as stream:
                    self._write(stream, header, sections)
            else:
                self._write(self.output, header, sections)
        except WriteCancelledError:
            self.logger.warning(
                "writer.cancelled",
                output=str(getattr(self.output, "name", self.output)),
            )
            self._discard()
            raise

        if header.tile_data_length == 0:
            self.progress_listener.on_progress(1.0)

        self.completed = True
        self._tile_data.close()

        self.logger.info(
            "writer.completed",
            output=str(getattr(self.output, "name", self.output)),
            addressed_tiles=header.addressed_tiles_count,
            tile_entries=header.tile_entries_count,
            tile_contents=header.tile_contents_count,
            leaves=layout.num_leaves,
            size=header.tile_data_offset + header.tile_data_length,
        )

        return header

    def close(self):
        if self.closed:
            return

        if not self.completed:
            self.logger.warning(
                "writer.discarded",
                output=str(getattr(self.output, "name", self.output)),
                addressed_tiles=self._addressed_tiles,
            )

        self._tile_data.close()
        self.closed = True

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.close()
