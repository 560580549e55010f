"""
File serving over HTTP.

Every GET or HEAD request path is handed to the VirtualFilesystem. The
returned file (an object reader or a rendered listing) is streamed back
with the usual static-file semantics:

- Content-Length, Content-Type, Accept-Ranges and Last-Modified headers
- a single ``Range: bytes=`` spec answers 206 Partial Content
- an unsatisfiable range answers 416
- If-Modified-Since answers 304 when the object hasn't changed

Multi-range requests are answered with the whole file, which RFC 9110
allows.
"""

import logging
from datetime import datetime, timezone
from email.utils import format_datetime, parsedate_to_datetime
from typing import Iterator, Optional

from fastapi import APIRouter, Header, Request, Response, status
from fastapi.responses import StreamingResponse
from starlette.background import BackgroundTask

from ...core.filesystem.errors import FilesystemError
from ...core.filesystem.vfs import File
from ..dependencies import AuthenticatedUser, FilesystemDep, SettingsDep

logger = logging.getLogger(__name__)

router = APIRouter()


class RangeNotSatisfiable(Exception):
    """The Range header can't be served for a file of this size."""
    pass


# ---------------------------------------------------------------------------
# Helper Functions
# ---------------------------------------------------------------------------

def parse_range(header: Optional[str], size: int) -> Optional[tuple[int, int]]:
    """
    Parse a Range header into an inclusive ``(start, end)`` pair.

    Returns None when the whole file should be served: no header, a
    unit other than bytes, a malformed spec or several ranges.
    Raises RangeNotSatisfiable when the single range lies outside the
    file.
    """
    if not header:
        return None
    unit, _, spec = header.strip().partition("=")
    if unit.strip().lower() != "bytes" or not spec or "," in spec:
        return None

    first, sep, last = spec.strip().partition("-")
    if not sep:
        return None
    first, last = first.strip(), last.strip()

    try:
        if not first:
            # suffix range: the last N bytes
            suffix = int(last)
            if suffix < 0:
                return None
            if suffix == 0 or size == 0:
                raise RangeNotSatisfiable(header)
            return max(0, size - suffix), size - 1

        start = int(first)
        end = int(last) if last else size - 1
    except ValueError:
        return None

    if start < 0 or end < start:
        return None
    if start >= size:
        raise RangeNotSatisfiable(header)
    return start, min(end, size - 1)


def http_date(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return format_datetime(value.astimezone(timezone.utc), usegmt=True)


def not_modified_since(last_modified: Optional[datetime], header: Optional[str]) -> bool:
    """True if the client's copy from ``header`` is still current."""
    if last_modified is None or not header:
        return False
    try:
        since = parsedate_to_datetime(header)
    except (TypeError, ValueError):
        return False
    if since is None:
        return False
    if since.tzinfo is None:
        since = since.replace(tzinfo=timezone.utc)
    if last_modified.tzinfo is None:
        last_modified = last_modified.replace(tzinfo=timezone.utc)
    # HTTP dates have one-second resolution
    return last_modified.replace(microsecond=0) <= since


def iter_file(file: File, length: int, block_size: int) -> Iterator[bytes]:
    """
    Yield ``length`` bytes from the file's current offset.

    The file is closed when iteration ends, fails, or is abandoned
    because the client went away.
    """
    remaining = length
    try:
        while remaining > 0:
            data = file.read(min(block_size, remaining))
            if not data:
                break
            remaining -= len(data)
            yield data
    except FilesystemError as e:
        logger.error(
            "Streaming failed",
            extra={"file": file.name, "remaining": remaining, "error": str(e)},
        )
        raise
    finally:
        file.close()


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.api_route(
    "/{file_path:path}",
    methods=["GET", "HEAD"],
    summary="Read an object or list a bucket",
    description="`/<mount>` lists the bucket, `/<mount>/<key>` streams the object",
)
def serve_file(
    file_path: str,
    request: Request,
    filesystem: FilesystemDep,
    settings: SettingsDep,
    user: AuthenticatedUser,
    range_header: Optional[str] = Header(default=None, alias="Range"),
    if_modified_since: Optional[str] = Header(default=None, alias="If-Modified-Since"),
) -> Response:
    """
    Serve whatever the path resolves to.

    Errors raised by the filesystem (not found, invalid, transport,
    render) are turned into HTTP responses by the handlers registered
    in main.create_app.
    """
    file = filesystem.open(file_path)

    try:
        size = file.size
        headers = {
            "Accept-Ranges": "bytes",
            "Content-Type": file.media_type,
        }
        if file.last_modified is not None:
            headers["Last-Modified"] = http_date(file.last_modified)

        if not_modified_since(file.last_modified, if_modified_since):
            file.close()
            headers.pop("Content-Type")
            return Response(status_code=status.HTTP_304_NOT_MODIFIED, headers=headers)

        try:
            byte_range = parse_range(range_header, size)
        except RangeNotSatisfiable:
            file.close()
            headers["Content-Range"] = f"bytes */{size}"
            return Response(
                status_code=status.HTTP_416_REQUESTED_RANGE_NOT_SATISFIABLE,
                headers=headers,
            )

        status_code = status.HTTP_200_OK
        start, length = 0, size
        if byte_range is not None:
            start, end = byte_range
            length = end - start + 1
            status_code = status.HTTP_206_PARTIAL_CONTENT
            headers["Content-Range"] = f"bytes {start}-{end}/{size}"
            file.seek(start)

        headers["Content-Length"] = str(length)

        logger.debug(
            "Serving file",
            extra={
                "path": file_path,
                "user": user,
                "status": status_code,
                "start": start,
                "length": length,
            },
        )

        if request.method == "HEAD" or length == 0:
            file.close()
            return Response(status_code=status_code, headers=headers)
    except BaseException:
        file.close()
        raise

    return StreamingResponse(
        iter_file(file, length, settings.stream_block_size),
        status_code=status_code,
        headers=headers,
        background=BackgroundTask(file.close),
    )
