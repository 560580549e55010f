"""
Bucket clients for S3 and S3-compatible object stores.

S3BucketClient wraps boto3 and translates botocore failures into the
filesystem's error types. MockBucketClient keeps objects in memory so
the server and the tests can run without provisioning a real bucket.

Both satisfy the BucketClient protocol from the core package.
"""

import io
import logging
from datetime import datetime, timezone
from typing import Optional

from ...core.filesystem.errors import NotFoundError, TransportError
from ...core.filesystem.models import Listing, ListingItem, MountConfig, ObjectInfo
from ...core.filesystem.reader import BucketClient, ChunkBody

logger = logging.getLogger(__name__)

# S3 never returns more than this many keys per ListObjectsV2 page
LIST_PAGE_SIZE = 1000

_MISSING_OBJECT_CODES = {"404", "NoSuchKey", "NotFound"}


class S3ChunkBody:
    """
    A ranged GET response body.

    Read errors from botocore/urllib3 come out as TransportError so the
    reader only has one failure type to deal with.
    """

    def __init__(self, body, key: str) -> None:
        self._body = body
        self._key = key

    def read(self, size: int) -> bytes:
        from botocore.exceptions import BotoCoreError

        try:
            return self._body.read(size)
        except (BotoCoreError, OSError) as e:
            raise TransportError(f"Failed reading {self._key!r}: {e}") from e

    def close(self) -> None:
        self._body.close()


class S3BucketClient:
    """
    One authenticated boto3 client bound to one bucket.

    boto3 clients are thread-safe, so a single instance serves every
    concurrent request for its bucket.
    """

    def __init__(self, config: MountConfig) -> None:
        """
        Create the boto3 client for ``config.bucket``.

        boto3 is imported here so mock mode can run without it.
        """
        try:
            import boto3
            from botocore.config import Config
        except ImportError:
            raise ImportError(
                "boto3 is required for S3 storage. Install with: pip install boto3"
            )

        self.bucket = config.bucket

        boto_config = Config(signature_version="s3v4")

        self._s3_client = boto3.client(
            "s3",
            endpoint_url=config.endpoint_url,
            aws_access_key_id=config.access_key or None,
            aws_secret_access_key=config.secret_key or None,
            region_name=config.region,
            config=boto_config,
        )

        logger.info(
            "Initialized S3 bucket client",
            extra={
                "bucket": config.bucket,
                "region": config.region,
                "endpoint": config.endpoint_url,
            },
        )

    def head_object(self, key: str) -> ObjectInfo:
        from botocore.exceptions import BotoCoreError, ClientError

        try:
            response = self._s3_client.head_object(Bucket=self.bucket, Key=key)
        except ClientError as e:
            code = str(e.response.get("Error", {}).get("Code", ""))
            if code in _MISSING_OBJECT_CODES:
                raise NotFoundError(f"No such object: {self.bucket}/{key}") from e
            raise TransportError(f"HEAD {self.bucket}/{key} failed: {e}") from e
        except BotoCoreError as e:
            raise TransportError(f"HEAD {self.bucket}/{key} failed: {e}") from e

        return ObjectInfo(
            key=key,
            size=response["ContentLength"],
            last_modified=response["LastModified"],
        )

    def get_range(self, key: str, start: int, end: int) -> ChunkBody:
        """Open a streaming body for bytes ``start`` through ``end`` inclusive."""
        from botocore.exceptions import BotoCoreError, ClientError

        byte_range = f"bytes={start}-{end}"
        try:
            response = self._s3_client.get_object(
                Bucket=self.bucket,
                Key=key,
                Range=byte_range,
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(
                "Failed to fetch range",
                extra={"bucket": self.bucket, "key": key, "range": byte_range, "error": str(e)},
            )
            raise TransportError(f"GET {self.bucket}/{key} {byte_range} failed: {e}") from e

        return S3ChunkBody(response["Body"], key)

    def list_objects(self, max_keys: int) -> Listing:
        """
        Enumerate at most ``max_keys`` objects, in the store's key order.

        Pages are fetched until the cap is reached; the rest of the
        bucket is not enumerated and the listing is marked truncated.
        """
        from botocore.exceptions import BotoCoreError, ClientError

        listing = Listing(bucket_name=self.bucket)
        try:
            pages = self._s3_client.get_paginator("list_objects_v2").paginate(
                Bucket=self.bucket,
                PaginationConfig={
                    "MaxItems": max_keys,
                    "PageSize": min(LIST_PAGE_SIZE, max_keys),
                },
            )
            for page in pages:
                for item in page.get("Contents", []):
                    listing.objects.append(ListingItem(item["Key"], item["LastModified"]))
        except (ClientError, BotoCoreError) as e:
            logger.error(
                "Cannot list bucket",
                extra={"bucket": self.bucket, "error": str(e)},
            )
            raise TransportError(f"Cannot list bucket {self.bucket!r}: {e}") from e

        listing.truncated = bool(pages.resume_token)
        return listing


# ---------------------------------------------------------------------------
# Mock Storage for Local Development
# ---------------------------------------------------------------------------

class MockChunkBody(io.BytesIO):
    """In-memory body that tells its owner when it's closed."""

    def __init__(self, data: bytes, owner: "MockBucketClient") -> None:
        super().__init__(data)
        self._owner = owner
        owner.open_bodies += 1

    def close(self) -> None:
        if not self.closed:
            self._owner.open_bodies -= 1
        super().close()


class MockBucketClient:
    """
    In-memory bucket for local development and tests.

    Objects live in a dict. Every ranged fetch is recorded in
    ``range_requests`` and ``open_bodies`` counts bodies not yet closed,
    which makes chunk reuse and body release observable.
    """

    def __init__(self, bucket: str, objects: Optional[dict[str, bytes]] = None) -> None:
        self.bucket = bucket
        self._objects: dict[str, tuple[bytes, datetime]] = {}
        self.range_requests: list[tuple[str, int, int]] = []
        self.open_bodies = 0
        for key, data in (objects or {}).items():
            self.put_object(key, data)
        logger.info("Initialized mock bucket client (in-memory)", extra={"bucket": bucket})

    def put_object(
        self,
        key: str,
        data: bytes,
        last_modified: Optional[datetime] = None,
    ) -> None:
        self._objects[key] = (data, last_modified or datetime.now(timezone.utc))

    def head_object(self, key: str) -> ObjectInfo:
        if key not in self._objects:
            raise NotFoundError(f"No such object: {self.bucket}/{key}")
        data, last_modified = self._objects[key]
        return ObjectInfo(key=key, size=len(data), last_modified=last_modified)

    def get_range(self, key: str, start: int, end: int) -> ChunkBody:
        if key not in self._objects:
            raise TransportError(f"GET {self.bucket}/{key} failed: no such key")
        data, _ = self._objects[key]
        if start >= len(data):
            raise TransportError(f"GET {self.bucket}/{key}: range not satisfiable")
        self.range_requests.append((key, start, end))
        return MockChunkBody(data[start:end + 1], self)

    def list_objects(self, max_keys: int) -> Listing:
        listing = Listing(bucket_name=self.bucket)
        for key in sorted(self._objects)[:max_keys]:
            listing.objects.append(ListingItem(key, self._objects[key][1]))
        listing.truncated = len(self._objects) > max_keys
        return listing


# ---------------------------------------------------------------------------
# Factory Function
# ---------------------------------------------------------------------------

def create_bucket_client(
    config: MountConfig,
    mock_mode: bool = False,
) -> BucketClient:
    """
    Create the bucket client for one mount.

    Args:
        config: Resolved mount configuration
        mock_mode: If True, return an empty in-memory bucket

    Returns:
        BucketClient implementation (S3 or Mock)
    """
    if mock_mode:
        return MockBucketClient(config.bucket)

    return S3BucketClient(config)
