"""
=============================================================================
HTTP REQUEST
=============================================================================

The request value object handed to the handler by the host server, plus
the helpers that turn a request target into a filesystem-safe path.

=============================================================================
REQUEST TARGET → DECODED PATH
=============================================================================

    GET //evil.com/%2e%2e/a%20b.txt?download=1#top HTTP/1.1
        ──────────────────┬──────── ─────┬──────────
                          │              │
                        Path        Query/fragment (dropped)
                          │
                          ▼
            percent-decode (strict)
                          │
                          ▼
              //evil.com/../a b.txt

    The leading "//" is NOT treated as "scheme-relative authority" the
    way urlsplit() would treat it: a request target in origin-form is
    always a path. Only absolute-form targets ("http://host/path", sent
    to proxies) have their authority removed.

    Decoding is strict, unlike urllib.parse.unquote():

        "%"       → BadRequest   (truncated escape)
        "%zz"     → BadRequest   (not hex)
        "%c3%28"  → BadRequest   (not UTF-8)
        "%00"     → BadRequest   (NUL never reaches the filesystem)

=============================================================================
"""

from dataclasses import dataclass, field
from typing import Dict, Optional
from urllib.parse import unquote_to_bytes, urlsplit
import re

from ..errors import BadRequest


# A "%" not followed by two hex digits
_BAD_ESCAPE = re.compile(r"%(?![0-9A-Fa-f]{2})")

# Absolute-form request target: scheme "://" authority
_ABSOLUTE_FORM = re.compile(r"^[A-Za-z][A-Za-z0-9+.\-]*://")


@dataclass
class HTTPRequest:
    """
    A request as seen by the handler.

    Attributes:
        method: HTTP method. The handler serves every method the same way;
                restricting methods is the host's job.
        url: Raw request target, e.g. "/docs/a%20b.txt?x=1".
        headers: Header name → value. Names are stored lowercase so lookups
                 are case-insensitive (RFC 7230).
        version: HTTP version from the request line.
        client_address: (ip, port) of the peer, used for access logging.
    """

    method: str = "GET"
    url: str = "/"
    headers: Dict[str, str] = field(default_factory=dict)
    version: str = "HTTP/1.1"
    client_address: tuple[str, int] = ("", 0)

    def __post_init__(self):
        self.headers = {str(k).lower(): str(v) for k, v in self.headers.items()}

    def get_header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """Case-insensitive header lookup."""
        return self.headers.get(name.lower(), default)

    @property
    def accepts_json(self) -> bool:
        """True when the Accept header mentions application/json."""
        return "application/json" in self.headers.get("accept", "")

    @property
    def range(self) -> Optional[str]:
        return self.headers.get("range")

    @property
    def if_none_match(self) -> Optional[str]:
        return self.headers.get("if-none-match")

    @property
    def path(self) -> str:
        """Undecoded path of the request target."""
        return extract_path(self.url)


def extract_path(url: str) -> str:
    """
    Path component of a request target, query and fragment removed.

    Examples:
        >>> extract_path("/docs?x=1#top")
        '/docs'
        >>> extract_path("//evil.com/x")
        '//evil.com/x'
        >>> extract_path("http://example.com/a/b")
        '/a/b'
    """
    if _ABSOLUTE_FORM.match(url):
        return urlsplit(url).path or "/"

    for separator in ("?", "#"):
        index = url.find(separator)
        if index != -1:
            url = url[:index]
    return url or "/"


def decode_path(path: str) -> str:
    """
    Percent-decode a path, rejecting anything a browser would not send.

    Raises:
        BadRequest: Truncated or non-hex escape, invalid UTF-8, or NUL.
    """
    if _BAD_ESCAPE.search(path):
        raise BadRequest(f"Malformed percent-encoding in {path!r}")

    try:
        decoded = unquote_to_bytes(path).decode("utf-8")
    except UnicodeDecodeError as e:
        raise BadRequest(f"Path is not valid UTF-8: {e}")

    if "\x00" in decoded:
        raise BadRequest("Path contains a NUL byte")

    return decoded
