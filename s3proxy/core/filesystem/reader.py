"""
Seekable reader over a single remote object.

An ObjectReader makes a range-addressable object look like a local,
read-only, random-access file. Bytes are fetched lazily in large
chunks: one ranged GET covers up to ``chunk_size`` bytes and its body is
drained incrementally as the caller reads, so nothing beyond the
caller's own buffer is held in memory.

The handle belongs to a single request. Reads and seeks must come from
one caller at a time; the HTTP layer drives it from one generator.

Why chunks rather than one GET per read or one GET per object:
- A request per read() would pay S3 latency for every 64 KiB block the
  HTTP layer streams.
- A single unranged GET can only be read forward, so every backward
  seek would mean reopening it.
- A ranged GET that is only drained as far as the caller reads costs
  one round-trip for a whole chunk, and keeps memory bounded by the
  caller's buffer instead of the chunk size.

Seeks only move the offset. The next read decides whether the live
body still lines up with it, so a seek followed by a seek back costs
nothing.
"""

import io
import logging
import mimetypes
import posixpath
from dataclasses import dataclass
from datetime import datetime
from io import SEEK_CUR, SEEK_END, SEEK_SET
from typing import Optional, Protocol

from .errors import InvalidArgumentError, NotFoundError, TransportError
from .models import Listing, ObjectInfo

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 1024 * 1024 * 1024  # 1 GiB


# ---------------------------------------------------------------------------
# Protocols (interfaces)
# ---------------------------------------------------------------------------

class ChunkBody(Protocol):
    """A live, partially consumed response body for one byte range."""

    def read(self, size: int) -> bytes:
        """Return up to ``size`` bytes; empty bytes once exhausted."""
        ...

    def close(self) -> None:
        ...


class BucketClient(Protocol):
    """
    What the filesystem needs from a bucket.

    Implementations raise NotFoundError from head_object when the object
    doesn't exist and TransportError for every other remote failure.
    """

    bucket: str

    def head_object(self, key: str) -> ObjectInfo:
        ...

    def get_range(self, key: str, start: int, end: int) -> ChunkBody:
        """Open a body for the inclusive byte range ``[start, end]``."""
        ...

    def list_objects(self, max_keys: int) -> Listing:
        ...


# ---------------------------------------------------------------------------
# Object handle
# ---------------------------------------------------------------------------

@dataclass
class Chunk:
    """
    The byte range ``[offset, end)`` currently backed by a live body.

    ``offset`` advances as the body is drained, so it always equals the
    object offset of the next byte the body will return.
    """
    offset: int = 0
    end: int = 0
    body: Optional[ChunkBody] = None

    def covers(self, start: int, length: int) -> bool:
        return self.body is not None and start == self.offset and start + length <= self.end

    def release(self) -> None:
        if self.body is not None:
            body, self.body = self.body, None
            body.close()


class ObjectReader(io.RawIOBase):
    """
    Read-only, seekable file object for one key in one bucket.

    Use ObjectReader.open() rather than the constructor: it performs the
    metadata probe and refuses to build a handle for an object that
    can't be described.
    """

    def __init__(
        self,
        client: BucketClient,
        info: ObjectInfo,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> None:
        super().__init__()
        if chunk_size < 1:
            raise ValueError("chunk_size must be positive")
        self._client = client
        self._info = info
        self._chunk_size = chunk_size
        self._offset = 0
        self._chunk = Chunk()
        self.fetch_count = 0

    @classmethod
    def open(
        cls,
        client: BucketClient,
        key: str,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> "ObjectReader":
        try:
            info = client.head_object(key)
        except NotFoundError:
            raise
        except TransportError as e:
            logger.error(
                "Cannot head object",
                extra={"bucket": client.bucket, "key": key, "error": str(e)},
            )
            raise InvalidArgumentError(f"Cannot read metadata of {key!r}: {e}") from e

        return cls(client, info, chunk_size=chunk_size)

    # -- metadata ----------------------------------------------------------

    @property
    def bucket(self) -> str:
        return self._client.bucket

    @property
    def key(self) -> str:
        return self._info.key

    @property
    def name(self) -> str:
        return posixpath.basename(self._info.key)

    @property
    def size(self) -> int:
        return self._info.size

    @property
    def last_modified(self) -> datetime:
        return self._info.last_modified

    @property
    def media_type(self) -> str:
        guessed, _ = mimetypes.guess_type(self.name)
        return guessed or "application/octet-stream"

    def stat(self) -> ObjectInfo:
        return self._info

    # -- io.RawIOBase ------------------------------------------------------

    def readable(self) -> bool:
        return True

    def seekable(self) -> bool:
        return True

    def tell(self) -> int:
        return self._offset

    def readinto(self, buffer) -> int:
        """
        Fill ``buffer`` from the current offset and return the byte count.

        Returns 0 only at end of object. Fetches a new chunk when the
        requested range isn't entirely inside the live one.
        """
        if self.closed:
            raise ValueError("I/O operation on closed file.")
        if self._offset >= self._info.size:
            return 0

        view = memoryview(buffer).cast("B")
        to_read = min(len(view), self._info.size - self._offset)
        if to_read == 0:
            return 0

        if not self._chunk.covers(self._offset, to_read):
            self._fetch_chunk(self._offset)

        filled = 0
        while filled < to_read:
            try:
                data = self._chunk.body.read(to_read - filled)
            except TransportError:
                logger.error(
                    "Read error",
                    extra={"bucket": self.bucket, "key": self.key, "offset": self._offset},
                )
                raise
            if not data:
                break
            n = len(data)
            view[filled:filled + n] = data
            filled += n
            self._offset += n
            self._chunk.offset += n

        if filled == 0:
            raise TransportError(
                f"Body for {self.key!r} ended at offset {self._offset} "
                f"of {self._info.size}"
            )
        return filled

    def seek(self, offset: int, whence: int = SEEK_SET) -> int:
        """
        Move the logical offset without touching the network.

        The target must land in ``[0, size]``; seeking exactly to size
        is allowed and leaves the reader at end of stream.
        """
        if self.closed:
            raise ValueError("I/O operation on closed file.")
        if whence == SEEK_SET:
            target = offset
        elif whence == SEEK_CUR:
            target = self._offset + offset
        elif whence == SEEK_END:
            target = self._info.size + offset
        else:
            raise InvalidArgumentError(f"Invalid whence ({whence})")

        if target < 0 or target > self._info.size:
            raise InvalidArgumentError(
                f"Seek to {target} outside object of size {self._info.size}"
            )
        self._offset = target
        return self._offset

    def close(self) -> None:
        if not self.closed:
            self._chunk.release()
        super().close()

    # -- internals ---------------------------------------------------------

    def _fetch_chunk(self, start: int) -> None:
        self._chunk.release()

        end = start + self._chunk_size
        body = self._client.get_range(self._info.key, start, end - 1)
        self._chunk = Chunk(offset=start, end=end, body=body)
        self.fetch_count += 1

        logger.debug(
            "Fetched chunk",
            extra={
                "bucket": self.bucket,
                "key": self.key,
                "start": start,
                "end": end,
                "fetches": self.fetch_count,
            },
        )
