import io
from unittest.mock import MagicMock

from cloudtiles.sources.azure import AzureBlobRangeReader
from cloudtiles.sources.s3 import S3RangeReader

DATA = bytes(range(256))


def test_s3_reads():
    client = MagicMock()
    client.head_object.return_value = {"ContentLength": len(DATA)}
    client.get_object.return_value = {"Body": io.BytesIO(DATA[10:20])}

    reader = S3RangeReader("bucket", "archive.pmtiles", client=client)

    assert reader.identity == "s3://bucket/archive.pmtiles"
    assert reader.size == len(DATA)
    assert reader.read_range(10, 10) == DATA[10:20]

    client.get_object.assert_called_once_with(
        Bucket="bucket", Key="archive.pmtiles", Range="bytes=10-19"
    )

    reader.close()
    client.close.assert_called_once()


def test_azure_reads():
    client = MagicMock()
    client.url = "https://account.blob.core.windows.net/tiles/archive.pmtiles?sig=secret"
    client.get_blob_properties.return_value.size = len(DATA)
    client.download_blob.return_value.readall.return_value = DATA[5:15]

    reader = AzureBlobRangeReader(client)

    assert reader.identity == "https://account.blob.core.windows.net/tiles/archive.pmtiles"
    assert reader.size == len(DATA)
    assert reader.read_range(5, 10) == DATA[5:15]

    client.download_blob.assert_called_once_with(offset=5, length=10)
