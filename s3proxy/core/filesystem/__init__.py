"""
Buckets as read-only, seekable file trees.

- reader: ObjectReader, a lazily fetched seekable stream over one object
- listing: bucket listings rendered to HTML
- vfs: mount resolution from request paths to open files
"""

from .errors import (
    FilesystemError,
    InvalidArgumentError,
    NotFoundError,
    RenderError,
    TransportError,
)
from .listing import DEFAULT_MAX_KEYS, LISTING_TEMPLATE, VirtualFile, open_listing, render_listing
from .models import DEFAULT_REGION, Listing, ListingItem, MountConfig, ObjectInfo
from .reader import DEFAULT_CHUNK_SIZE, BucketClient, ChunkBody, ObjectReader
from .vfs import File, VirtualFilesystem, split_path

__all__ = [
    "BucketClient",
    "ChunkBody",
    "DEFAULT_CHUNK_SIZE",
    "DEFAULT_MAX_KEYS",
    "DEFAULT_REGION",
    "File",
    "FilesystemError",
    "InvalidArgumentError",
    "LISTING_TEMPLATE",
    "Listing",
    "ListingItem",
    "MountConfig",
    "NotFoundError",
    "ObjectInfo",
    "ObjectReader",
    "RenderError",
    "TransportError",
    "VirtualFile",
    "VirtualFilesystem",
    "open_listing",
    "render_listing",
    "split_path",
]
