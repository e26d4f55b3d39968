"""
Byte-range sources: storage backends and the decorators layered over them.
"""

from .aligned import BlockAlignedRangeReader
from .caching import CachingRangeReader, InMemoryBlockCache, PassThroughBlockCache
from .core import InvalidRangeError, RangeReader
from .file import FileRangeReader
from .http import HttpRangeReader
from .memory import MemoryRangeReader

__all__ = (
    "RangeReader",
    "InvalidRangeError",
    "FileRangeReader",
    "MemoryRangeReader",
    "HttpRangeReader",
    "BlockAlignedRangeReader",
    "CachingRangeReader",
    "InMemoryBlockCache",
    "PassThroughBlockCache",
)
