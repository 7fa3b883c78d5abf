"""Kroki URL construction.

Kroki renders diagrams from a GET URL of the form
``{server}/{diagram_type}/{output_format}/{payload}`` where *payload* is
the source compressed with DEFLATE and base64url-encoded.  Nothing is
fetched here; the URL goes straight into an ``<img src>``.

Reference: https://kroki.io/
"""

from __future__ import annotations

import base64
import zlib

from ..core.models import DEFAULT_KROKI_SERVER, BlockInfo

DEFAULT_OUTPUT_FORMAT = "svg"

# Fence languages that Kroki knows under another name
_KROKI_ALIASES = {
    "puml": "plantuml",
}


def encode_source(source: str) -> str:
    """Compress *source* (zlib, level 9) and base64url-encode it."""
    compressed = zlib.compress(source.encode("utf-8"), level=9)
    return base64.urlsafe_b64encode(compressed).decode("ascii")


def decode_source(encoded: str) -> str:
    """Inverse of :func:`encode_source`."""
    return zlib.decompress(base64.urlsafe_b64decode(encoded)).decode("utf-8")


def diagram_type(info: BlockInfo) -> str:
    """The ``kroki`` attribute when it names a type, else the language."""
    value = info.attributes.get("kroki")
    kind = value if isinstance(value, str) and value else info.language
    return _KROKI_ALIASES.get(kind, kind)


def diagram_url(
    source: str,
    kind: str,
    output_format: str | None = None,
    server: str | None = None,
) -> str:
    """Build the Kroki GET URL for *source*."""
    base = (server or DEFAULT_KROKI_SERVER).rstrip("/")
    kind = _KROKI_ALIASES.get(kind, kind)
    fmt = output_format or DEFAULT_OUTPUT_FORMAT
    return f"{base}/{kind}/{fmt}/{encode_source(source)}"
