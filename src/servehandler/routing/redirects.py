"""
=============================================================================
REDIRECT RESOLVER
=============================================================================

Decides whether a request should be answered with a redirect, and where to.
At most one redirect is produced per request, chosen in this order:

    ┌───┬────────────────────────────┬──────────────────────────────────────────┐
    │ # │ Step                       │ Example                                  │
    ├───┼────────────────────────────┼──────────────────────────────────────────┤
    │ 1 │ Clean URL suffix strip     │ /about.html      → /about      (pending) │
    │   │                            │ /docs/index.html → /docs/index (pending) │
    │   │                            │ /docs/index      → /docs       (pending) │
    │ 2 │ Trailing slash policy      │ /a//b/           → /a/b/ (collapse only) │
    │   │   trailing_slash=True      │ /docs            → /docs/                │
    │   │   trailing_slash=False     │ /docs/           → /docs                 │
    │ 3 │ Pending clean URL strip    │ /about.html      → /about                │
    │ 4 │ Configured redirect rules  │ /old/:id         → /new/:id              │
    └───┴────────────────────────────┴──────────────────────────────────────────┘

Steps 1-3 always answer 301. One suffix is stripped per request, so
"/docs/index.html" reaches "/docs" in two hops. Collapsing a slash run
redirects on its own; the trailing slash is settled on the next request.
Step 2 runs on the path step 1 produced, so "/about.html" with
trailing_slash=True goes straight to "/about/" in one hop instead of two.

The Location header is percent-encoded the way a browser encodes a URI:
reserved characters stay, spaces and non-ASCII become escapes. Rules with
raw=True skip the encoding.

A request for "//evil.example/page.html" never yields the protocol-relative
Location "//evil.example/page" from steps 1-3: slash runs are collapsed first.

=============================================================================
"""

from dataclasses import dataclass
from typing import Optional
from urllib.parse import quote
import logging
import posixpath
import re

from ..config import RedirectRule
from .matcher import to_target


logger = logging.getLogger(__name__)

DEFAULT_REDIRECT_STATUS = 301

# ".html", ".htm" or "/index" at the end, one of them per request
_CLEAN_SUFFIX = re.compile(r"\.html?$|/index$")

_SLASH_RUN = re.compile(r"/{2,}")

# encodeURI() leaves these alone
_URI_SAFE = ";,/?:@&=+$-_.!~*'()#"


@dataclass
class Redirect:
    """A redirect decision: where to send the client and with which status."""

    target: str
    status_code: int = DEFAULT_REDIRECT_STATUS
    raw: bool = False

    @property
    def location(self) -> str:
        """Value for the Location header."""
        return self.target if self.raw else encode_location(self.target)


def encode_location(target: str) -> str:
    """
    Percent-encode a redirect target like encodeURI().

    Examples:
        >>> encode_location("/a b/ü?x=1#top")
        '/a%20b/%C3%BC?x=1#top'
    """
    return quote(target, safe=_URI_SAFE)


def _ensure_slash_start(path: str) -> str:
    return path if path.startswith("/") else "/" + path


def _slash_target(path: str, trailing_slash: bool) -> Optional[str]:
    """Canonical form of `path` under the trailing slash policy, or None."""
    collapsed = _SLASH_RUN.sub("/", path)
    if collapsed != path:
        return collapsed

    name = posixpath.basename(path.rstrip("/"))
    extension = posixpath.splitext(name)[1]
    trailed = path.endswith("/")

    if not trailing_slash and trailed and path != "/":
        return path[:-1]
    if trailing_slash and not trailed and not extension and not name.startswith("."):
        return path + "/"
    return None


def resolve_redirect(decoded_path: str, config, clean_url: bool) -> Optional[Redirect]:
    """
    Find the redirect for a decoded request path, if any.

    Args:
        decoded_path: Percent-decoded request path.
        config: ServeConfig (redirects and trailing_slash are read).
        clean_url: Whether clean URLs apply to this path.

    Returns:
        Redirect, or None when the request should be served.
    """
    redirects = config.redirects or []
    slashing = isinstance(config.trailing_slash, bool)

    if not redirects and not slashing and not clean_url:
        return None

    path = decoded_path
    cleaned = False
    if clean_url and _CLEAN_SUFFIX.search(path):
        path = _CLEAN_SUFFIX.sub("", path, count=1)
        cleaned = True

    if slashing:
        target = _slash_target(path, config.trailing_slash)
        if target is not None:
            logger.debug(f"Trailing slash redirect: {decoded_path} → {target}")
            return Redirect(_ensure_slash_start(target))

    if cleaned:
        target = _ensure_slash_start(_SLASH_RUN.sub("/", path))
        logger.debug(f"Clean URL redirect: {decoded_path} → {target}")
        return Redirect(target)

    for rule in redirects:
        rule = RedirectRule.coerce(rule)
        target = to_target(rule.source, rule.destination, decoded_path)
        if target is not None:
            status = rule.status_code or DEFAULT_REDIRECT_STATUS
            logger.debug(f"Redirect {rule.source!r}: {decoded_path} → {target} ({status})")
            return Redirect(target, status, raw=rule.raw)

    return None
