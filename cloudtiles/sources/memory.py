"""
Range reader over an in-memory buffer.
"""

from .core import RangeReader


class MemoryRangeReader(RangeReader):
    data: bytes

    def __init__(self, data: bytes, identity: str | None = None):
        self.data = bytes(data)
        super().__init__(identity=identity or f"memory:{id(self):x}")

    @property
    def size(self) -> int:
        return len(self.data)

    def _read_range(self, offset: int, length: int) -> bytes:
        return self.data[offset : offset + length]
