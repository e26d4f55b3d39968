"""
Caches for blocks of remote sources, and the caching range reader using them.
"""

import abc
import threading
from hashlib import md5

from cachetools import LRUCache
from pymemcache.client.base import Client

from .aligned import DEFAULT_BLOCK_SIZE, block_span, validate_block_size
from .core import RangeReader


class BlockNotFound(Exception):
    """Raised when a block is not found in the cache."""

    pass


class BlockCache(abc.ABC):
    @abc.abstractmethod
    def get_block(self, key: str) -> bytes:
        raise NotImplementedError

    @abc.abstractmethod
    def set_block(self, key: str, data: bytes) -> None:
        raise NotImplementedError

    def close(self) -> None:
        return


class PassThroughBlockCache(BlockCache):
    def get_block(self, key: str) -> bytes:
        """
        A cache that does nothing. It is used when caching is disabled.
        """
        raise BlockNotFound(f"Block {key} not found in cache.")

    def set_block(self, key: str, data: bytes) -> None:
        """
        A cache that does nothing. It is used when caching is disabled.
        """
        pass


class InMemoryBlockCache(BlockCache):
    """
    A bounded, least-recently-used, in-memory cache for blocks.
    """

    def __init__(self, cache_size: int = 1024):
        self.cache = LRUCache(maxsize=cache_size)
        self.lock = threading.Lock()

    def get_block(self, key: str) -> bytes:
        with self.lock:
            data = self.cache.get(key, None)

        if data is None:
            raise BlockNotFound(f"Block {key} not found in cache.")

        return data

    def set_block(self, key: str, data: bytes) -> None:
        with self.lock:
            self.cache[key] = bytes(data)

    def __len__(self) -> int:
        with self.lock:
            return len(self.cache)

    def close(self) -> None:
        with self.lock:
            self.cache.clear()


class MemcachedBlockCache(BlockCache):
    """
    A cache that uses Memcached for storing blocks, shared between processes.
    """

    def __init__(self, client: Client, prefix: str = "cloudtiles"):
        self.client = client
        self.prefix = prefix

    def get_block(self, key: str) -> bytes:
        res = self.client.get(f"{self.prefix}-{key}", None)

        if res is None:
            raise BlockNotFound(f"Block {key} not found in cache.")

        return res

    def set_block(self, key: str, data: bytes) -> None:
        self.client.set(f"{self.prefix}-{key}", bytes(data), noreply=True)

    def close(self) -> None:
        self.client.close()


def source_hash(identity: str) -> str:
    return md5(identity.encode("utf-8")).hexdigest()[:16]


class CachingRangeReader(RangeReader):
    """
    Serves reads from whole blocks kept in a block cache. Blocks missing from
    the cache are fetched from the delegate, with each contiguous run of
    missing blocks read in a single request, then stored.

    A cache passed in is shared by default and left open on close; one
    created here (or passed with ``owns_cache=True``) is closed with the
    reader.

    Archives are immutable once published, so cached blocks are never
    re-validated. Concurrent readers may fetch the same block twice; the
    cache only ever holds complete blocks.
    """

    delegate: RangeReader
    cache: BlockCache
    block_size: int

    def __init__(
        self,
        delegate: RangeReader,
        cache: BlockCache | None = None,
        block_size: int = DEFAULT_BLOCK_SIZE,
        owns_cache: bool | None = None,
    ):
        validate_block_size(block_size)
        self.delegate = delegate
        self.owns_cache = cache is None if owns_cache is None else owns_cache
        self.cache = cache if cache is not None else InMemoryBlockCache()
        self.block_size = block_size
        super().__init__(identity=delegate.identity)
        self._key_prefix = f"{source_hash(self.identity)}-{block_size}"

    @property
    def size(self) -> int:
        return self.delegate.size

    def block_key(self, index: int) -> str:
        return f"{self._key_prefix}-{index}"

    def _fetch_blocks(self, first: int, count: int) -> list[bytes]:
        start = first * self.block_size
        length = min(count * self.block_size, self.size - start)

        data = self.delegate.read_range(start, length)

        blocks = []
        for i in range(count):
            block = data[i * self.block_size : (i + 1) * self.block_size]
            self.cache.set_block(self.block_key(first + i), block)
            blocks.append(block)

        return blocks

    def _read_range(self, offset: int, length: int) -> bytes:
        log = self.logger.bind(source=self.identity, offset=offset, length=length)

        span = block_span(offset, length, self.block_size)
        blocks: dict[int, bytes] = {}
        missing = []

        for index in span:
            try:
                blocks[index] = self.cache.get_block(self.block_key(index))
            except BlockNotFound:
                missing.append(index)

        if missing:
            log.debug("cache.miss", blocks=len(missing), cached=len(blocks))
        else:
            log.debug("cache.hit", blocks=len(blocks))

        # Group the missing blocks into contiguous runs.
        run_start = None
        previous = None
        for index in missing + [None]:
            if run_start is not None and (index is None or index != previous + 1):
                fetched = self._fetch_blocks(run_start, previous - run_start + 1)
                blocks.update(zip(range(run_start, previous + 1), fetched))
                run_start = None

            if index is not None and run_start is None:
                run_start = index

            previous = index

        data = b"".join(blocks[index] for index in span)
        start = offset - span.start * self.block_size

        return data[start : start + length]

    def close(self):
        self.delegate.close()

        if self.owns_cache:
            self.cache.close()
