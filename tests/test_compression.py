import pytest

from cloudtiles.tiles.compression import compress, decompress
from cloudtiles.tiles.core import CompressionError, UnsupportedCompressionError
from cloudtiles.tiles.header import Compression

PAYLOAD = b"A tile payload, repeated. " * 200


@pytest.mark.parametrize(
    "compression",
    [Compression.NONE, Compression.GZIP, Compression.BROTLI, Compression.ZSTD],
)
def test_codecs(compression):
    compressed = compress(PAYLOAD, compression)

    if compression != Compression.NONE:
        assert len(compressed) < len(PAYLOAD)

    assert decompress(compressed, compression) == PAYLOAD


@pytest.mark.parametrize(
    "compression", [Compression.GZIP, Compression.BROTLI, Compression.ZSTD]
)
def test_corrupt_data(compression):
    with pytest.raises(CompressionError):
        decompress(b"this is not compressed at all", compression)


def test_unknown_compression():
    with pytest.raises(UnsupportedCompressionError):
        compress(PAYLOAD, Compression.UNKNOWN)

    with pytest.raises(UnsupportedCompressionError):
        decompress(PAYLOAD, Compression.UNKNOWN)
