"""
=============================================================================
HEADER COMPOSER
=============================================================================

Builds the response headers for a served file in three layers:

    ┌─────────────────────────────────────────────────────────────────────┐
    │ 1. DEFAULTS (only when the file's stats are known)                  │
    │      Content-Type         MIME of the file, else of the request path│
    │      Last-Modified        HTTP-date of mtime                        │
    │      Content-Length       size                                      │
    │      Content-Disposition  inline; filename="report.pdf"             │
    │      Accept-Ranges        bytes                                     │
    ├─────────────────────────────────────────────────────────────────────┤
    │ 2. CUSTOM RULES (config.headers, in order)                          │
    │      every rule whose glob matches the file's path relative to the  │
    │      root applies its patches; a None value deletes the header      │
    ├─────────────────────────────────────────────────────────────────────┤
    │ 3. ETAG (when enabled)                                              │
    │      ETag: "<sha1 of the content>"                                  │
    └─────────────────────────────────────────────────────────────────────┘

Header names are compared case-insensitively: a rule setting
"content-type" replaces the default "Content-Type".

=============================================================================
"""

from typing import Any, Dict, Optional, Sequence
from urllib.parse import quote
import hashlib
import logging
import posixpath

from ..config import HeaderRule
from ..http.mime_types import get_content_type
from ..http.response import close_stream, format_http_date, iter_chunks
from ..routing.matcher import matches
from .filesystem import call


logger = logging.getLogger(__name__)

# RFC 5987 attr-char, minus the alphanumerics quote() always keeps
_ATTR_CHARS = "!#$&+.^_`|~-"


def _find_key(headers: Dict[str, str], name: str) -> Optional[str]:
    lowered = name.lower()
    for key in headers:
        if key.lower() == lowered:
            return key
    return None


def set_header(headers: Dict[str, str], name: str, value: Any) -> None:
    """Set, replace (any case) or, with a None value, delete a header."""
    existing = _find_key(headers, name)
    if existing is not None:
        del headers[existing]
    if value is not None:
        headers[name] = str(value)


def content_disposition(filename: str) -> str:
    """
    Content-Disposition value that displays the file inline.

    Examples:
        >>> content_disposition("docs.md")
        'inline; filename="docs.md"'

    Non-ASCII names get an ASCII fallback plus an RFC 5987 filename*
    parameter carrying the UTF-8 name.
    """
    fallback = filename.encode("ascii", "replace").decode("ascii")
    fallback = fallback.replace("\\", "\\\\").replace('"', '\\"')
    value = f'inline; filename="{fallback}"'
    if fallback != filename:
        value += f"; filename*=UTF-8''{quote(filename, safe=_ATTR_CHARS)}"
    return value


def apply_rules(headers: Dict[str, str], rules: Sequence, relative_path: str) -> None:
    """Apply every matching header rule's patches, in order."""
    slashed = "/" + relative_path.lstrip("/")
    for rule in rules or []:
        rule = HeaderRule.coerce(rule)
        if matches(rule.source, slashed):
            for patch in rule.headers:
                set_header(headers, patch.key, patch.value)


def compose_headers(
    rules: Sequence,
    relative_path: str,
    stats: Any = None,
    fallback_path: Optional[str] = None,
    etag: Optional[str] = None,
) -> Dict[str, str]:
    """
    Headers for a file response.

    Args:
        rules: Ordered HeaderRule objects or their mappings.
        relative_path: Served file's path relative to the public root.
        stats: The file's stats; None skips the default headers.
        fallback_path: Path used for the Content-Type when the served file
                       has no known extension (usually the request path).
        etag: Precomputed ETag value, set last.

    Returns:
        Header name → value, in insertion order.
    """
    headers: Dict[str, str] = {}

    if stats is not None:
        headers["Content-Type"] = get_content_type(relative_path, fallback_path)
        headers["Last-Modified"] = format_http_date(stats.mtime)
        if stats.size is not None:
            headers["Content-Length"] = str(stats.size)
        headers["Content-Disposition"] = content_disposition(posixpath.basename(relative_path))
        headers["Accept-Ranges"] = "bytes"

    apply_rules(headers, rules, relative_path)

    if etag is not None:
        set_header(headers, "ETag", etag)

    return headers


async def calculate_etag(handlers, path: str) -> str:
    """
    Strong ETag for a file: its SHA-1 in double quotes.

    The content is read through the create_read_stream capability, so
    overridden filesystems hash what they would serve.
    """
    digest = hashlib.sha1()
    stream = await call(handlers.create_read_stream, path)
    try:
        async for chunk in iter_chunks(stream):
            digest.update(chunk.encode("utf-8") if isinstance(chunk, str) else chunk)
    finally:
        await close_stream(stream)
    return f'"{digest.hexdigest()}"'
