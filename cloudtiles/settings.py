"""
Settings for the project.
"""

from pathlib import Path
from typing import TYPE_CHECKING, Literal
from urllib.parse import unquote, urlparse

from fastapi import FastAPI
from pydantic_settings import BaseSettings

from cloudtiles.sources.auth import HttpAuthentication

if TYPE_CHECKING:
    from cloudtiles.archive.reader import PMTilesReader
    from cloudtiles.archive.writer import PMTilesWriter
    from cloudtiles.sources.caching import BlockCache
    from cloudtiles.sources.core import RangeReader


class Settings(BaseSettings):
    archive: str | None = None
    "Location of the archive to serve: a path, or a file://, http(s)://, s3:// or azure:// URI."

    origins: list[str] | None = ["*"]
    add_cors: bool = True
    "Settings for managing CORS middleware; useful for development."

    # Range reading
    block_size: int = 64 * 1024
    "Size of the aligned blocks read from remote sources. Must be a power of two."
    cache_local_files: bool = False
    "Whether local files are also read through the block cache."

    # Caching settings
    cache_type: Literal["in_memory", "memcached", "pass_through"] = "in_memory"
    "Type of caching to use for blocks. Options are 'in_memory', 'memcached', or 'pass_through'."
    cache_blocks: int = 1024
    "Number of blocks kept by the in-memory cache."
    memcached_host: str = "localhost"
    "Host for the Memcached server."
    memcached_port: int = 11211
    "Port for the Memcached server."
    memcached_client_pool_size: int = 4
    "Number of connections in the Memcached client pool."
    memcached_timeout_seconds: float = 0.5
    "Timeout for Memcached operations in seconds."

    # Backends
    http_timeout_seconds: float = 30.0
    http_auth: HttpAuthentication | None = None
    "Authentication for HTTP sources, as JSON with an 'auth_type' key."
    s3_endpoint_url: str | None = None
    "Endpoint of an S3-compatible store; None for AWS."
    s3_region: str | None = None
    azure_connection_string: str | None = None
    "Used for azure:// URIs. Without it, blobs are read anonymously."

    # Writing
    max_root_directory_bytes: int = 16384
    "Largest compressed root directory the writer produces before splitting into leaves."

    class Config:
        env_prefix = "CLOUDTILES_"

    def create_cache(self) -> "BlockCache":
        """
        Create a block cache instance based on the settings.
        """
        if self.cache_type == "in_memory":
            from cloudtiles.sources.caching import InMemoryBlockCache

            return InMemoryBlockCache(cache_size=self.cache_blocks)
        elif self.cache_type == "memcached":
            from pymemcache.client.base import PooledClient

            from cloudtiles.sources.caching import MemcachedBlockCache

            client = PooledClient(
                server=(self.memcached_host, self.memcached_port),
                max_pool_size=self.memcached_client_pool_size,
                timeout=self.memcached_timeout_seconds,
                ignore_exc=True,
            )
            return MemcachedBlockCache(client=client)
        else:
            from cloudtiles.sources.caching import PassThroughBlockCache

            return PassThroughBlockCache()

    def open_backend(self, uri: str) -> "RangeReader":
        """
        Open the storage backend for a location, without any caching.
        """
        parsed = urlparse(uri)

        if parsed.scheme in ("http", "https"):
            from cloudtiles.sources.http import HttpRangeReader

            return HttpRangeReader(
                uri, auth=self.http_auth, timeout=self.http_timeout_seconds
            )
        elif parsed.scheme == "s3":
            from cloudtiles.sources.s3 import S3RangeReader

            return S3RangeReader.from_uri(
                uri, endpoint_url=self.s3_endpoint_url, region_name=self.s3_region
            )
        elif parsed.scheme == "azure":
            from cloudtiles.sources.azure import AzureBlobRangeReader

            container, _, blob = parsed.path.lstrip("/").partition("/")

            if not parsed.netloc or not container or not blob:
                raise ValueError(
                    f"Expected a URI of the form azure://account/container/blob, got {uri!r}"
                )

            if self.azure_connection_string is not None:
                return AzureBlobRangeReader.from_connection_string(
                    self.azure_connection_string, container=container, blob=blob
                )

            return AzureBlobRangeReader.from_url(
                f"https://{parsed.netloc}.blob.core.windows.net/{container}/{blob}"
            )
        elif parsed.scheme == "file":
            from cloudtiles.sources.file import FileRangeReader

            return FileRangeReader(Path(unquote(parsed.path)))
        elif parsed.scheme == "" or len(parsed.scheme) == 1:
            # Plain paths, including Windows drive letters.
            from cloudtiles.sources.file import FileRangeReader

            return FileRangeReader(Path(uri))

        raise ValueError(f"Unsupported archive location {uri!r}")

    def open_source(self, uri: str) -> "RangeReader":
        """
        Open a location as a range reader, wrapped in the block cache (or,
        with the 'pass_through' cache type, only aligned to blocks).
        """
        source = self.open_backend(uri)

        if source.identity.startswith("file:") and not self.cache_local_files:
            return source

        if self.cache_type == "pass_through":
            from cloudtiles.sources.aligned import BlockAlignedRangeReader

            return BlockAlignedRangeReader(source, block_size=self.block_size)

        from cloudtiles.sources.caching import CachingRangeReader

        return CachingRangeReader(
            source,
            cache=self.create_cache(),
            block_size=self.block_size,
            owns_cache=True,
        )

    def open_reader(self, uri: str | None = None) -> "PMTilesReader":
        from cloudtiles.archive.reader import PMTilesReader

        uri = uri or self.archive

        if uri is None:
            raise ValueError("No archive given, set CLOUDTILES_ARCHIVE")

        source = self.open_source(uri)

        try:
            return PMTilesReader(source)
        except Exception:
            source.close()
            raise

    def create_writer(self, output: str | Path, **kwargs) -> "PMTilesWriter":
        from cloudtiles.archive.writer import PMTilesWriter

        kwargs.setdefault("max_root_directory_bytes", self.max_root_directory_bytes)

        return PMTilesWriter(output, **kwargs)

    def setup_app(self, app: FastAPI):
        app.reader = self.open_reader()

        return app


settings = Settings()
