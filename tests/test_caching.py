import random
from unittest.mock import MagicMock

import pytest

from cloudtiles.sources.caching import (
    BlockNotFound,
    CachingRangeReader,
    InMemoryBlockCache,
    MemcachedBlockCache,
    PassThroughBlockCache,
)
from cloudtiles.sources.memory import MemoryRangeReader

from .test_sources import CountingReader

DATA = bytes(random.Random(1).getrandbits(8) for _ in range(10_000))


def test_cache_is_transparent():
    plain = MemoryRangeReader(DATA)
    cached = CachingRangeReader(MemoryRangeReader(DATA), block_size=256)
    rng = random.Random(42)

    for _ in range(500):
        offset = rng.randrange(len(DATA))
        length = rng.randint(1, min(2000, len(DATA) - offset))

        assert cached.read_range(offset, length) == plain.read_range(offset, length)


def test_repeated_reads_hit_the_cache():
    delegate = CountingReader(DATA)
    reader = CachingRangeReader(delegate, block_size=1024)

    first = reader.read_range(100, 50)
    second = reader.read_range(120, 10)

    assert first == DATA[100:150]
    assert second == DATA[120:130]
    assert delegate.requests == [(0, 1024)]


def test_missing_runs_are_fetched_together():
    data = DATA[:100]
    delegate = CountingReader(data)
    reader = CachingRangeReader(delegate, block_size=16)

    assert reader.read_range(0, 64) == data[:64]
    assert delegate.requests == [(0, 64)]

    delegate.requests.clear()
    assert reader.read_range(0, 100) == data
    assert delegate.requests == [(64, 36)]


def test_gaps_are_fetched_separately():
    delegate = CountingReader(DATA)
    reader = CachingRangeReader(delegate, block_size=16)

    reader.read_range(16, 16)
    delegate.requests.clear()

    assert reader.read_range(0, 48) == DATA[:48]
    assert delegate.requests == [(0, 16), (32, 16)]


def test_shared_cache_keys_by_source():
    cache = InMemoryBlockCache()
    first = CachingRangeReader(MemoryRangeReader(b"a" * 64, identity="one"), cache=cache)
    second = CachingRangeReader(MemoryRangeReader(b"b" * 64, identity="two"), cache=cache)

    assert first.read_range(0, 10) == b"a" * 10
    assert second.read_range(0, 10) == b"b" * 10
    assert len(cache) == 2


def test_in_memory_cache_evicts_least_recently_used():
    cache = InMemoryBlockCache(cache_size=2)

    cache.set_block("a", b"1")
    cache.set_block("b", b"2")
    cache.get_block("a")
    cache.set_block("c", b"3")

    assert cache.get_block("a") == b"1"
    assert cache.get_block("c") == b"3"

    with pytest.raises(BlockNotFound):
        cache.get_block("b")


def test_pass_through_cache_never_hits():
    cache = PassThroughBlockCache()
    cache.set_block("a", b"1")

    with pytest.raises(BlockNotFound):
        cache.get_block("a")


def test_memcached_cache():
    client = MagicMock()
    client.get.return_value = None
    cache = MemcachedBlockCache(client=client)

    with pytest.raises(BlockNotFound):
        cache.get_block("key")

    client.get.assert_called_with("cloudtiles-key", None)

    cache.set_block("key", b"data")
    client.set.assert_called_with("cloudtiles-key", b"data", noreply=True)

    client.get.return_value = b"data"
    assert cache.get_block("key") == b"data"


def test_owned_cache_is_closed():
    reader = CachingRangeReader(MemoryRangeReader(DATA), block_size=1024)
    reader.read_range(0, 10)
    assert len(reader.cache) == 1

    reader.close()
    assert len(reader.cache) == 0


def test_shared_cache_is_left_open():
    cache = InMemoryBlockCache()
    reader = CachingRangeReader(MemoryRangeReader(DATA), cache=cache, block_size=1024)
    reader.read_range(0, 10)

    reader.close()
    assert len(cache) == 1
