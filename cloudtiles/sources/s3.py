"""
Range reader for objects in S3 (or S3-compatible) storage.
"""

from urllib.parse import urlparse

import boto3

from .core import RangeReader


def parse_s3_uri(uri: str) -> tuple[str, str]:
    """
    Split ``s3://bucket/key`` into bucket and key.
    """
    parsed = urlparse(uri)

    if parsed.scheme != "s3" or not parsed.netloc or not parsed.path.strip("/"):
        raise ValueError(f"Expected a URI of the form s3://bucket/key, got {uri!r}")

    return parsed.netloc, parsed.path.lstrip("/")


class S3RangeReader(RangeReader):
    bucket: str
    key: str

    def __init__(
        self,
        bucket: str,
        key: str,
        endpoint_url: str | None = None,
        region_name: str | None = None,
        client=None,
    ):
        self.bucket = bucket
        self.key = key
        self.client = (
            client
            if client is not None
            else boto3.client("s3", endpoint_url=endpoint_url, region_name=region_name)
        )
        self._size: int | None = None
        super().__init__(identity=f"s3://{bucket}/{key}")

    @classmethod
    def from_uri(cls, uri: str, **kwargs) -> "S3RangeReader":
        bucket, key = parse_s3_uri(uri)
        return cls(bucket=bucket, key=key, **kwargs)

    @property
    def size(self) -> int:
        if self._size is None:
            response = self.client.head_object(Bucket=self.bucket, Key=self.key)
            self._size = int(response["ContentLength"])
            self.logger.debug("s3.size", source=self.identity, size=self._size)

        return self._size

    def _read_range(self, offset: int, length: int) -> bytes:
        self.logger.debug(
            "s3.read", source=self.identity, offset=offset, length=length
        )

        response = self.client.get_object(
            Bucket=self.bucket,
            Key=self.key,
            Range=f"bytes={offset}-{offset + length - 1}",
        )

        body = response["Body"]

        try:
            return body.read()
        finally:
            body.close()

    def close(self):
        self.client.close()
