"""
Domain models for the bucket filesystem.

These are plain values describing what a mount points at and what the
remote store reports about its objects. Nothing here knows about boto3
or HTTP, so the reader and listing logic can be tested against any
bucket client.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

DEFAULT_REGION = "us-west-1"


@dataclass(frozen=True)
class MountConfig:
    """
    A logical mount name bound to one bucket and its credentials.

    Bucket and region are already resolved here: an unset bucket means
    the mount name itself, an unset region means DEFAULT_REGION.
    """
    name: str
    bucket: str
    region: str = DEFAULT_REGION
    access_key: str = ""
    secret_key: str = field(default="", repr=False)
    endpoint_url: Optional[str] = None

    @classmethod
    def resolve(
        cls,
        name: str,
        bucket: Optional[str] = None,
        region: Optional[str] = None,
        access_key: str = "",
        secret_key: str = "",
        endpoint_url: Optional[str] = None,
    ) -> "MountConfig":
        return cls(
            name=name,
            bucket=bucket or name,
            region=region or DEFAULT_REGION,
            access_key=access_key,
            secret_key=secret_key,
            endpoint_url=endpoint_url or None,
        )


@dataclass(frozen=True)
class ObjectInfo:
    """Metadata returned by a HEAD probe."""
    key: str
    size: int
    last_modified: datetime

    def __post_init__(self) -> None:
        if self.size < 0:
            raise ValueError("Object size cannot be negative")


@dataclass(frozen=True)
class ListingItem:
    """One row of a bucket listing."""
    key: str
    last_modified: datetime


@dataclass
class Listing:
    """
    Point-in-time snapshot of a bucket's contents.

    Rendered once and thrown away; never cached between requests.
    """
    bucket_name: str
    mount_name: str = ""
    objects: list[ListingItem] = field(default_factory=list)
    truncated: bool = False
