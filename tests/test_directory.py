import io

import pytest

from cloudtiles.tiles.compression import decompress
from cloudtiles.tiles.core import DirectoryDecodeError
from cloudtiles.tiles.directory import (
    Entry,
    build_directories,
    deserialize_directory,
    find_entry,
    read_varint,
    serialize_directory,
    write_varint,
)
from cloudtiles.tiles.header import Compression


@pytest.mark.parametrize("value", [0, 1, 127, 128, 300, 16384, 2**32, 2**63 - 1])
def test_varints(value):
    buffer = io.BytesIO()
    write_varint(buffer, value)
    data = buffer.getvalue()

    assert read_varint(data, 0) == (value, len(data))


def test_varint_encoding():
    buffer = io.BytesIO()
    write_varint(buffer, 300)

    assert buffer.getvalue() == b"\xac\x02"


def test_truncated_varint():
    with pytest.raises(DirectoryDecodeError):
        read_varint(b"\x80\x80", 0)


def test_overlong_varint():
    with pytest.raises(DirectoryDecodeError):
        read_varint(b"\xff" * 11 + b"\x01", 0)


def test_wire_format():
    entries = [
        Entry(tile_id=0, offset=0, length=10, run_length=1),
        Entry(tile_id=1, offset=10, length=5, run_length=2),
    ]

    data = serialize_directory(entries)

    assert data == b"\x02\x00\x01\x01\x02\x0a\x05\x01\x00"
    assert deserialize_directory(data) == entries


def test_round_trip():
    entries = [
        Entry(tile_id=3, offset=0, length=100, run_length=1),
        Entry(tile_id=4, offset=100, length=20, run_length=5),
        Entry(tile_id=9, offset=0, length=100, run_length=1),
        Entry(tile_id=1000, offset=120, length=7, run_length=1),
        Entry(tile_id=123456789, offset=5000, length=4096, run_length=300),
        Entry(tile_id=123457089, offset=2000, length=3000, run_length=0),
    ]

    assert deserialize_directory(serialize_directory(entries)) == entries


def test_empty_directory():
    assert serialize_directory([]) == b"\x00"
    assert deserialize_directory(b"\x00") == []


def test_unsorted_entries():
    entries = [
        Entry(tile_id=5, offset=0, length=1, run_length=1),
        Entry(tile_id=2, offset=1, length=1, run_length=1),
    ]

    with pytest.raises(ValueError):
        serialize_directory(entries)


@pytest.mark.parametrize(
    "data",
    [
        b"",
        b"\x02\x00\x01\x01\x02\x0a\x05\x01",
        b"\x02\x00\x01\x01\x02\x0a\x05\x01\x00\x00",
        b"\x01\x00\x01\x01\x00",
        b"\xff\xff\x03\x00",
    ],
    ids=["empty", "truncated", "trailing", "no-first-offset", "huge-count"],
)
def test_malformed(data):
    with pytest.raises(DirectoryDecodeError):
        deserialize_directory(data)


def test_find_entry():
    entries = [
        Entry(tile_id=5, offset=0, length=1, run_length=3),
        Entry(tile_id=10, offset=1, length=1, run_length=1),
    ]

    assert find_entry(entries, 4) is None
    assert find_entry(entries, 5) == entries[0]
    assert find_entry(entries, 7) == entries[0]
    assert find_entry(entries, 8) is None
    assert find_entry(entries, 10) == entries[1]
    assert find_entry(entries, 11) is None
    assert find_entry([], 0) is None


def test_find_leaf_entry():
    leaves = [
        Entry(tile_id=0, offset=0, length=100, run_length=0),
        Entry(tile_id=5000, offset=100, length=100, run_length=0),
    ]

    assert find_entry(leaves, 4999) == leaves[0]
    assert find_entry(leaves, 10**9) == leaves[1]


def contiguous_entries(count: int) -> list[Entry]:
    return [Entry(tile_id=i, offset=i * 10, length=10, run_length=1) for i in range(count)]


def test_small_directory_has_no_leaves():
    entries = contiguous_entries(100)

    layout = build_directories(entries, Compression.GZIP)

    assert layout.num_leaves == 0
    assert layout.leaves == b""
    assert deserialize_directory(decompress(layout.root, Compression.GZIP)) == entries


def test_leaf_directories():
    entries = contiguous_entries(1000)

    layout = build_directories(
        entries, Compression.NONE, max_root_bytes=200, leaf_size=100
    )

    assert layout.num_leaves == 10
    assert len(layout.root) <= 200

    root = deserialize_directory(layout.root)
    assert all(entry.is_leaf for entry in root)

    resolved = []
    for entry in root:
        leaf = deserialize_directory(
            layout.leaves[entry.offset : entry.offset + entry.length]
        )
        assert leaf[0].tile_id == entry.tile_id
        resolved.extend(leaf)

    assert resolved == entries


def test_leaf_size_grows_until_root_fits():
    entries = contiguous_entries(1000)

    layout = build_directories(
        entries, Compression.NONE, max_root_bytes=40, leaf_size=100
    )

    assert layout.num_leaves == 5
    assert len(layout.root) <= 40


def test_root_cannot_fit():
    with pytest.raises(ValueError):
        build_directories(contiguous_entries(1000), Compression.NONE, max_root_bytes=1)
