"""
Range reader for local files.
"""

import os
import threading
from pathlib import Path

from .core import RangeReader


class FileRangeReader(RangeReader):
    """
    Positioned reads from a local file. ``os.pread`` does not move a shared
    file position, so no locking is needed where it exists; elsewhere reads
    are serialized with a lock.
    """

    path: Path

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self._fd = os.open(self.path, os.O_RDONLY | getattr(os, "O_BINARY", 0))
        self._size = os.fstat(self._fd).st_size
        self._lock = threading.Lock()
        super().__init__(identity=self.path.resolve().as_uri())

        self.logger.debug("file.opened", source=self.identity, size=self._size)

    @property
    def size(self) -> int:
        return self._size

    def _read_range(self, offset: int, length: int) -> bytes:
        if hasattr(os, "pread"):
            chunks = []
            while length > 0:
                chunk = os.pread(self._fd, length, offset)
                if not chunk:
                    break
                chunks.append(chunk)
                offset += len(chunk)
                length -= len(chunk)
            return b"".join(chunks)

        with self._lock:
            os.lseek(self._fd, offset, os.SEEK_SET)
            return os.read(self._fd, length)

    def close(self):
        if self._fd >= 0:
            os.close(self._fd)
            self._fd = -1
