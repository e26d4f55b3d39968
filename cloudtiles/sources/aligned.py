"""
Block-aligning decorator for range readers.
"""

from .core import RangeReader

DEFAULT_BLOCK_SIZE = 64 * 1024


def validate_block_size(block_size: int):
    if block_size <= 0 or block_size & (block_size - 1) != 0:
        raise ValueError(f"Block size must be a positive power of two, got {block_size}")


def block_span(offset: int, length: int, block_size: int) -> range:
    """Indices of the blocks covering [offset, offset + length)."""
    return range(offset // block_size, (offset + length - 1) // block_size + 1)


class BlockAlignedRangeReader(RangeReader):
    """
    Widens every request to whole blocks of ``block_size`` bytes, issuing one
    delegate read per block, and slices out the bytes asked for. The final
    block of the source is truncated to its size.
    """

    delegate: RangeReader
    block_size: int

    def __init__(self, delegate: RangeReader, block_size: int = DEFAULT_BLOCK_SIZE):
        validate_block_size(block_size)
        self.delegate = delegate
        self.block_size = block_size
        super().__init__(identity=delegate.identity)

    @property
    def size(self) -> int:
        return self.delegate.size

    def read_block(self, index: int) -> bytes:
        start = index * self.block_size
        length = min(self.block_size, self.size - start)
        return self.delegate.read_range(start, length)

    def _read_range(self, offset: int, length: int) -> bytes:
        blocks = block_span(offset, length, self.block_size)

        log = self.logger.bind(
            source=self.identity, offset=offset, length=length, blocks=len(blocks)
        )
        log.debug("aligned.read")

        data = b"".join(self.read_block(index) for index in blocks)
        start = offset - blocks.start * self.block_size

        return data[start : start + length]

    def close(self):
        self.delegate.close()
