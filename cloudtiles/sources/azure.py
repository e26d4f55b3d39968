"""
Range reader for Azure Blob Storage.
"""

from azure.storage.blob import BlobClient

from .core import RangeReader


class AzureBlobRangeReader(RangeReader):
    """
    Reads ranges of a single blob. Construct either from a full blob URL
    (with a SAS token or anonymous access) or from a connection string with
    the container and blob names.
    """

    def __init__(self, client: BlobClient):
        self.client = client
        self._size: int | None = None
        super().__init__(identity=client.url.split("?")[0])

    @classmethod
    def from_url(cls, url: str, credential=None) -> "AzureBlobRangeReader":
        return cls(BlobClient.from_blob_url(url, credential=credential))

    @classmethod
    def from_connection_string(
        cls, connection_string: str, container: str, blob: str
    ) -> "AzureBlobRangeReader":
        return cls(
            BlobClient.from_connection_string(
                connection_string, container_name=container, blob_name=blob
            )
        )

    @property
    def size(self) -> int:
        if self._size is None:
            self._size = int(self.client.get_blob_properties().size)
            self.logger.debug("azure.size", source=self.identity, size=self._size)

        return self._size

    def _read_range(self, offset: int, length: int) -> bytes:
        self.logger.debug(
            "azure.read", source=self.identity, offset=offset, length=length
        )
        return self.client.download_blob(offset=offset, length=length).readall()

    def close(self):
        self.client.close()
