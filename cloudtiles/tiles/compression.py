"""
Compression codecs for tile payloads and for the internal (directory and
metadata) blobs.
"""

import gzip
import zlib

import brotli
import zstandard

from .core import CompressionError, UnsupportedCompressionError
from .header import Compression


def compress(data: bytes, compression: Compression) -> bytes:
    try:
        if compression == Compression.NONE:
            return bytes(data)
        elif compression == Compression.GZIP:
            return gzip.compress(data)
        elif compression == Compression.BROTLI:
            return brotli.compress(data)
        elif compression == Compression.ZSTD:
            return zstandard.ZstdCompressor().compress(data)
    except (zlib.error, brotli.error, zstandard.ZstdError) as e:
        raise CompressionError(f"Unable to compress with {compression.name}") from e

    raise UnsupportedCompressionError(f"Compression {compression!r} is not supported")


def decompress(data: bytes, compression: Compression) -> bytes:
    try:
        if compression == Compression.NONE:
            return bytes(data)
        elif compression == Compression.GZIP:
            return gzip.decompress(data)
        elif compression == Compression.BROTLI:
            return brotli.decompress(data)
        elif compression == Compression.ZSTD:
            # Frames written without a content size need the streaming reader.
            with zstandard.ZstdDecompressor().stream_reader(data) as reader:
                return reader.read()
    except (OSError, EOFError, zlib.error, brotli.error, zstandard.ZstdError) as e:
        raise CompressionError(f"Unable to decompress {compression.name} data") from e

    raise UnsupportedCompressionError(f"Compression {compression!r} is not supported")
