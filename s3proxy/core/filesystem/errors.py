"""
Errors raised by the bucket filesystem.

The API layer maps each of these onto an HTTP status, so the names
follow what the client should see rather than what went wrong inside
boto3.
"""


class FilesystemError(Exception):
    """Base class for filesystem errors."""
    pass


class NotFoundError(FilesystemError):
    """Unknown mount, mount without a client, or missing object."""
    pass


class InvalidArgumentError(FilesystemError, ValueError):
    """Seek outside the object, or an object whose metadata can't be read."""
    pass


class TransportError(FilesystemError):
    """A range fetch, body read or listing call failed mid-operation."""
    pass


class RenderError(FilesystemError):
    """The listing template failed to render."""
    pass
