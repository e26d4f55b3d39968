"""
Core (abstract) range reader.
"""

from abc import ABC, abstractmethod

import structlog
from structlog.types import FilteringBoundLogger


class InvalidRangeError(ValueError):
    pass


class RangeReader(ABC):
    """
    Reads byte ranges from a source of known size. Implementations must be
    safe to call from several threads at once.

    Decorators own the reader they wrap: closing the outermost reader closes
    the whole chain.
    """

    identity: str
    "Stable name of the underlying source, shared by every decorator over it."
    logger: FilteringBoundLogger

    def __init__(self, identity: str):
        self.identity = identity
        self.logger = structlog.get_logger()

    @property
    @abstractmethod
    def size(self) -> int:
        raise NotImplementedError

    @abstractmethod
    def _read_range(self, offset: int, length: int) -> bytes:
        """
        Read exactly ``length`` bytes at ``offset``. Arguments have already
        been checked against the size of the source.
        """
        raise NotImplementedError

    def read_range(self, offset: int, length: int) -> bytes:
        if offset < 0:
            raise InvalidRangeError(f"Offset must be non-negative, got {offset}")

        if length <= 0:
            raise InvalidRangeError(f"Length must be positive, got {length}")

        if offset + length > self.size:
            raise InvalidRangeError(
                f"Range [{offset}, {offset + length}) extends past the end of "
                f"{self.identity} ({self.size} bytes)"
            )

        data = self._read_range(offset, length)

        if len(data) != length:
            raise OSError(
                f"Short read from {self.identity}: expected {length} bytes at "
                f"{offset}, got {len(data)}"
            )

        return data

    def close(self):
        return

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.close()

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.identity!r})"
