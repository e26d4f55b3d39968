import struct

import pytest
from pydantic import ValidationError

from cloudtiles.tiles.core import InvalidHeaderError
from cloudtiles.tiles.header import HEADER_SIZE, Compression, Header, TileType, to_e7


def make_header(**kwargs) -> Header:
    values = dict(
        root_offset=127,
        root_length=250,
        metadata_offset=377,
        metadata_length=1000,
        leaf_directory_offset=1377,
        leaf_directory_length=4000,
        tile_data_offset=5377,
        tile_data_length=123456789,
        addressed_tiles_count=1000,
        tile_entries_count=900,
        tile_contents_count=800,
        clustered=True,
        internal_compression=Compression.GZIP,
        tile_compression=Compression.BROTLI,
        tile_type=TileType.PNG,
        min_zoom=2,
        max_zoom=14,
        min_lon_e7=to_e7(-12.5),
        min_lat_e7=to_e7(-45.25),
        max_lon_e7=to_e7(33.125),
        max_lat_e7=to_e7(60.0),
        center_zoom=7,
        center_lon_e7=to_e7(10.0),
        center_lat_e7=to_e7(7.5),
    )
    values.update(kwargs)
    return Header(**values)


def test_serialized_size_and_magic():
    data = make_header().serialize()

    assert len(data) == HEADER_SIZE
    assert data[:7] == b"PMTiles"
    assert data[7] == 3


def test_field_positions():
    data = make_header().serialize()

    assert struct.unpack_from("<Q", data, 8)[0] == 127
    assert struct.unpack_from("<Q", data, 56)[0] == 5377
    assert data[96] == 1
    assert data[97] == Compression.GZIP
    assert data[98] == Compression.BROTLI
    assert data[99] == TileType.PNG
    assert data[100] == 2
    assert data[101] == 14
    assert struct.unpack_from("<i", data, 102)[0] == -125_000_000
    assert data[118] == 7
    assert struct.unpack_from("<i", data, 123)[0] == 75_000_000


def test_round_trip():
    header = make_header()

    assert Header.deserialize(header.serialize()) == header


def test_round_trip_defaults():
    header = Header()

    assert Header.deserialize(header.serialize()) == header


def test_trailing_bytes_are_ignored():
    header = make_header()

    assert Header.deserialize(header.serialize() + b"\x00" * 100) == header


def test_too_short():
    with pytest.raises(InvalidHeaderError):
        Header.deserialize(make_header().serialize()[:100])


def test_bad_magic():
    data = bytearray(make_header().serialize())
    data[0:7] = b"MBTiles"

    with pytest.raises(InvalidHeaderError):
        Header.deserialize(bytes(data))


def test_bad_version():
    data = bytearray(make_header().serialize())
    data[7] = 2

    with pytest.raises(InvalidHeaderError):
        Header.deserialize(bytes(data))


@pytest.mark.parametrize("position", [97, 98, 99])
def test_unknown_enum_values(position):
    data = bytearray(make_header().serialize())
    data[position] = 42

    with pytest.raises(InvalidHeaderError):
        Header.deserialize(bytes(data))


def test_zoom_order():
    data = bytearray(make_header().serialize())
    data[100] = 15

    with pytest.raises(InvalidHeaderError):
        Header.deserialize(bytes(data))

    with pytest.raises(ValidationError):
        make_header(min_zoom=5, max_zoom=4)


@pytest.mark.parametrize(
    "field, value",
    [
        ("max_zoom", 300),
        ("center_zoom", -1),
        ("root_offset", -1),
        ("tile_data_length", 2**64),
        ("min_lon_e7", 2**31),
        ("center_lat_e7", -(2**31) - 1),
    ],
)
def test_field_ranges(field, value):
    with pytest.raises(ValidationError):
        make_header(**{field: value})


def test_largest_values_serialize():
    header = make_header(
        max_zoom=255, center_zoom=255, tile_data_length=2**64 - 1, max_lon_e7=2**31 - 1
    )

    assert Header.deserialize(header.serialize()) == header


def test_bounds_and_center():
    header = make_header()

    assert header.bounds == (-12.5, -45.25, 33.125, 60.0)
    assert header.center == (10.0, 7.5, 7)


def test_tile_type_properties():
    assert TileType.MVT.media_type == "application/vnd.mapbox-vector-tile"
    assert TileType.JPEG.extension == "jpg"
    assert TileType.UNKNOWN.extension == "bin"
