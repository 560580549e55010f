"""
Bucket listings rendered as static HTML pages.

The template is compiled once when the module is imported and is only
ever read afterwards, so every request shares it without locking.
A rendered page is wrapped in a VirtualFile so the HTTP layer can serve
it exactly like an object.
"""

import io
import logging
from urllib.parse import quote

from jinja2 import Environment, TemplateError, select_autoescape

from .errors import RenderError
from .models import Listing
from .reader import BucketClient

logger = logging.getLogger(__name__)

DEFAULT_MAX_KEYS = 100_000

LISTING_TEMPLATE_TEXT = """<!DOCTYPE html>
<html>
<head>
<title>{{ listing.bucket_name }}</title>
<style>
table {
  font-family: arial, sans-serif;
  border-collapse: collapse;
  width: 100%;
  padding: 0;
  margin: 0;
  border: 1px solid #ddd;
}

td {
  padding-top: 0.1em;
  padding-bottom: 0.1em;
  padding-left: 0.5em;
  padding-right: 0.5em;
}

tr:nth-child(even) {
  background-color: #dddddd;
}

td.name {
  text-align: left;
}

td.md {
  text-align: right;
}
</style>
</head>
<body>

<h2>{{ listing.bucket_name }}</h2>
{% if listing.truncated %}
<p class="truncated">Showing the first {{ listing.objects | length }} objects only.</p>
{% endif %}

<table>
{% for item in listing.objects %}
  <tr>
    <td class="name"><a href="/{{ listing.mount_name | urlpath }}/{{ item.key | urlpath }}">{{ item.key }}</a></td>
    <td class="md">{{ item.last_modified | timestamp }}</td>
  </tr>
{% endfor %}
</table>
</body>
</html>
"""


def _urlpath(value: str) -> str:
    return quote(value, safe="/")


def _timestamp(value) -> str:
    return value.strftime("%Y-%m-%d %H:%M:%S %Z").strip()


def _build_template():
    env = Environment(autoescape=select_autoescape(default=True, default_for_string=True))
    env.filters["urlpath"] = _urlpath
    env.filters["timestamp"] = _timestamp
    return env.from_string(LISTING_TEMPLATE_TEXT)


LISTING_TEMPLATE = _build_template()


class VirtualFile(io.BytesIO):
    """
    A rendered document served as if it were a file.

    It has a size but no meaningful modification time.
    """

    def __init__(
        self,
        name: str,
        content: bytes,
        media_type: str = "text/html; charset=utf-8",
    ) -> None:
        super().__init__(content)
        self.name = name
        self.size = len(content)
        self.media_type = media_type
        self.last_modified = None


def render_listing(listing: Listing, template=None) -> bytes:
    """Render a listing snapshot to HTML bytes."""
    template = template or LISTING_TEMPLATE
    try:
        return template.render(listing=listing).encode("utf-8")
    except (TemplateError, AttributeError, TypeError, ValueError) as e:
        logger.error(
            "Cannot render listing template",
            extra={"bucket": listing.bucket_name, "error": str(e)},
        )
        raise RenderError(f"Cannot render listing for {listing.bucket_name!r}: {e}") from e


def open_listing(
    client: BucketClient,
    mount_name: str,
    max_keys: int = DEFAULT_MAX_KEYS,
    template=None,
) -> VirtualFile:
    """
    Enumerate a bucket and return the rendered page as a VirtualFile.

    Listing failures surface as TransportError from the client. The
    enumeration stops at ``max_keys``; anything beyond it is left out.
    """
    listing = client.list_objects(max_keys)
    listing.mount_name = mount_name

    if listing.truncated:
        # TODO: decide whether listings should page past max_keys.
        logger.warning(
            "Listing truncated",
            extra={
                "bucket": listing.bucket_name,
                "mount": mount_name,
                "max_keys": max_keys,
            },
        )

    content = render_listing(listing, template=template)
    logger.debug(
        "Rendered listing",
        extra={
            "bucket": listing.bucket_name,
            "objects": len(listing.objects),
            "size_bytes": len(content),
        },
    )
    return VirtualFile(listing.bucket_name, content)
