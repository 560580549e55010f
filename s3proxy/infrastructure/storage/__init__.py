"""
Object storage access for mounted buckets.

Supports AWS S3 and S3-compatible stores via boto3.
Includes mock mode for local development without credentials.
"""

from .client import (
    MockBucketClient,
    S3BucketClient,
    create_bucket_client,
)

__all__ = [
    "MockBucketClient",
    "S3BucketClient",
    "create_bucket_client",
]
