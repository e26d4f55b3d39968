"""
Directories: the spatial index mapping runs of tile IDs to byte ranges.

A serialized directory is a varint entry count followed by four columns of
varints, one per entry field:

- tile IDs, each stored as the delta from the previous entry;
- run lengths (0 marks a pointer to a leaf directory);
- lengths;
- offsets, stored as offset + 1, or as 0 when the entry starts exactly where
  the previous one ended.

The whole blob is then compressed with the header's internal compression.
"""

import io
from bisect import bisect_right
from dataclasses import dataclass
from typing import Iterable

from .compression import compress
from .core import DirectoryDecodeError
from .header import Compression

MAX_ROOT_DIRECTORY_BYTES = 16384
"Root directory budget, so that header and root fit in one 16 KiB read."

INITIAL_LEAF_SIZE = 4096


@dataclass(frozen=True, slots=True)
class Entry:
    tile_id: int
    offset: int
    length: int
    run_length: int

    @property
    def is_leaf(self) -> bool:
        return self.run_length == 0

    def covers(self, tile_id: int) -> bool:
        return self.tile_id <= tile_id < self.tile_id + max(1, self.run_length)


def write_varint(buffer: io.BytesIO, value: int):
    if value < 0:
        raise ValueError(f"Varints must be non-negative, got {value}")

    while value >= 0x80:
        buffer.write(bytes(((value & 0x7F) | 0x80,)))
        value >>= 7

    buffer.write(bytes((value,)))


def read_varint(data: bytes, position: int) -> tuple[int, int]:
    value = 0
    shift = 0

    while True:
        if position >= len(data):
            raise DirectoryDecodeError("Unexpected end of directory while reading varint")

        if shift >= 64:
            raise DirectoryDecodeError("Varint is longer than 64 bits")

        byte = data[position]
        position += 1
        value |= (byte & 0x7F) << shift
        shift += 7

        if byte & 0x80 == 0:
            return value, position


def serialize_directory(entries: list[Entry]) -> bytes:
    """
    Serialize entries to the uncompressed wire format. Entries must already
    be sorted by tile ID.
    """
    buffer = io.BytesIO()

    write_varint(buffer, len(entries))

    last_id = 0
    for entry in entries:
        if entry.tile_id < last_id:
            raise ValueError("Directory entries must be sorted by tile ID")

        write_varint(buffer, entry.tile_id - last_id)
        last_id = entry.tile_id

    for entry in entries:
        write_varint(buffer, entry.run_length)

    for entry in entries:
        write_varint(buffer, entry.length)

    for i, entry in enumerate(entries):
        previous = entries[i - 1] if i > 0 else None

        if previous is not None and entry.offset == previous.offset + previous.length:
            write_varint(buffer, 0)
        else:
            write_varint(buffer, entry.offset + 1)

    return buffer.getvalue()


def deserialize_directory(data: bytes) -> list[Entry]:
    """
    Decode an uncompressed directory blob. Raises DirectoryDecodeError on any
    truncation or trailing data.
    """
    data = bytes(data)

    count, position = read_varint(data, 0)

    # Every entry needs at least four bytes, which bounds garbage counts.
    if count * 4 > len(data) - position:
        raise DirectoryDecodeError(
            f"Directory claims {count} entries but only has {len(data)} bytes"
        )

    tile_ids = []
    last_id = 0
    for _ in range(count):
        delta, position = read_varint(data, position)
        last_id += delta
        tile_ids.append(last_id)

    run_lengths = []
    for _ in range(count):
        run_length, position = read_varint(data, position)
        run_lengths.append(run_length)

    lengths = []
    for _ in range(count):
        length, position = read_varint(data, position)
        lengths.append(length)

    offsets = []
    for i in range(count):
        raw, position = read_varint(data, position)

        if raw == 0:
            if i == 0:
                raise DirectoryDecodeError("First directory entry has no offset")
            offsets.append(offsets[i - 1] + lengths[i - 1])
        else:
            offsets.append(raw - 1)

    if position != len(data):
        raise DirectoryDecodeError(
            f"Malformed directory: {len(data) - position} bytes of trailing data"
        )

    return [
        Entry(tile_id=t, offset=o, length=l, run_length=r)
        for t, o, l, r in zip(tile_ids, offsets, lengths, run_lengths)
    ]


def find_entry(entries: list[Entry], tile_id: int) -> Entry | None:
    """
    Find the entry covering tile_id: the last entry starting at or before it,
    if that entry is a leaf pointer or its run reaches tile_id.
    """
    index = bisect_right(entries, tile_id, key=lambda e: e.tile_id) - 1

    if index < 0:
        return None

    candidate = entries[index]

    if candidate.is_leaf or tile_id - candidate.tile_id < candidate.run_length:
        return candidate

    return None


@dataclass(frozen=True)
class DirectoryLayout:
    root: bytes
    "The compressed root directory."
    leaves: bytes
    "All compressed leaf directories, concatenated."
    num_leaves: int


def _build_with_leaf_size(
    entries: list[Entry], compression: Compression, leaf_size: int
) -> DirectoryLayout:
    root_entries = []
    leaves = io.BytesIO()
    num_leaves = 0

    for start in range(0, len(entries), leaf_size):
        chunk = entries[start : start + leaf_size]
        blob = compress(serialize_directory(chunk), compression)

        root_entries.append(
            Entry(
                tile_id=chunk[0].tile_id,
                offset=leaves.tell(),
                length=len(blob),
                run_length=0,
            )
        )
        leaves.write(blob)
        num_leaves += 1

    root = compress(serialize_directory(root_entries), compression)

    return DirectoryLayout(root=root, leaves=leaves.getvalue(), num_leaves=num_leaves)


def build_directories(
    entries: Iterable[Entry],
    compression: Compression,
    max_root_bytes: int = MAX_ROOT_DIRECTORY_BYTES,
    leaf_size: int = INITIAL_LEAF_SIZE,
) -> DirectoryLayout:
    """
    Build the root directory and, when the entries do not fit in the root,
    a single level of leaf directories. Leaf offsets are relative to the
    start of the leaf directory section.
    """
    entries = list(entries)

    root = compress(serialize_directory(entries), compression)

    if len(root) <= max_root_bytes:
        return DirectoryLayout(root=root, leaves=b"", num_leaves=0)

    while True:
        layout = _build_with_leaf_size(entries, compression, leaf_size)

        if len(layout.root) <= max_root_bytes:
            return layout

        if leaf_size >= len(entries):
            raise ValueError(
                f"Root directory cannot be made smaller than {len(layout.root)} bytes"
            )

        leaf_size *= 2
