"""
Mount resolution: from a request path to an open file.

The VirtualFilesystem owns one bucket client per distinct bucket and
the table mapping mount names to buckets. Both are built once at
startup and never change afterwards, so concurrent requests read them
without locks.

A path ``/<mount>/<key>`` opens an ObjectReader for ``key``; a path
with no key opens the bucket listing.

Clients are built per bucket rather than per request because:
- Creating a boto3 client loads service models and credentials, which
  takes far longer than serving a small object.
- boto3 clients are thread-safe, so one client can serve every request
  for its bucket at once.

A mount whose client fails to build is kept and answers "not found".
A bad bucket entry then only affects its own mount, and the rest of
the configuration still comes up.
"""

import logging
import posixpath
from typing import Callable, Iterable, Optional, Union

from .errors import NotFoundError
from .listing import DEFAULT_MAX_KEYS, VirtualFile, open_listing
from .models import MountConfig
from .reader import DEFAULT_CHUNK_SIZE, BucketClient, ObjectReader

logger = logging.getLogger(__name__)

File = Union[ObjectReader, VirtualFile]
ClientFactory = Callable[[MountConfig], BucketClient]


def split_path(path: str) -> tuple[str, str]:
    """
    Split a request path into ``(mount, key)``.

    The path is normalised first, so ``..`` can't climb above the root
    and repeated slashes collapse. The key is empty for the bucket root.
    """
    # normpath keeps a leading "//", so strip before normalising
    cleaned = posixpath.normpath("/" + path.lstrip("/")).lstrip("/")
    if not cleaned:
        return "", ""
    mount, _, key = cleaned.partition("/")
    return mount, key


class VirtualFilesystem:
    """
    Read-only filesystem view over a set of mounted buckets.

    Clients are keyed by bucket name, not mount name, so several mounts
    aliasing one bucket share a single client. A mount whose client
    couldn't be created stays in the table but resolves to NotFoundError:
    a misconfigured bucket looks missing to clients instead of leaking
    the configuration failure.
    """

    def __init__(
        self,
        mounts: Iterable[MountConfig],
        client_factory: ClientFactory,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        max_keys: int = DEFAULT_MAX_KEYS,
    ) -> None:
        self._chunk_size = chunk_size
        self._max_keys = max_keys
        self._mounts: dict[str, MountConfig] = {}
        self._clients: dict[str, BucketClient] = {}

        for mount in mounts:
            self._mounts[mount.name] = mount
            if mount.bucket in self._clients:
                logger.debug(
                    "Reusing bucket client",
                    extra={"mount": mount.name, "bucket": mount.bucket},
                )
                continue
            try:
                self._clients[mount.bucket] = client_factory(mount)
            except Exception as e:
                logger.error(
                    "Unable to initialize client",
                    extra={"mount": mount.name, "bucket": mount.bucket, "error": str(e)},
                )
                continue

            logger.info(
                "Mounted bucket",
                extra={
                    "mount": mount.name,
                    "bucket": mount.bucket,
                    "region": mount.region,
                },
            )

    @property
    def mounts(self) -> dict[str, MountConfig]:
        return dict(self._mounts)

    def get_client(self, mount_name: str) -> Optional[BucketClient]:
        mount = self._mounts.get(mount_name)
        if mount is None:
            return None
        return self._clients.get(mount.bucket)

    def open(self, path: str) -> File:
        """
        Open whatever ``path`` addresses.

        Raises:
            NotFoundError: unknown mount, mount without a client, or
                missing object.
            InvalidArgumentError: the object's metadata can't be read.
            TransportError: the bucket listing failed.
            RenderError: the listing page couldn't be rendered.
        """
        mount_name, key = split_path(path)

        if mount_name not in self._mounts:
            raise NotFoundError(f"No such mount: {mount_name!r}")

        client = self.get_client(mount_name)
        if client is None:
            raise NotFoundError(f"Mount {mount_name!r} has no usable bucket client")

        if not key:
            return open_listing(client, mount_name, max_keys=self._max_keys)

        return ObjectReader.open(client, key, chunk_size=self._chunk_size)
