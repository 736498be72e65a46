"""
Clean URL resolution: serving "/about" from "about.html" or "about/index.html".

For a request path the candidates are probed in this order, first hit wins:

    /about   → /about/index.html, /about.html, /about/index.htm, /about.htm
    /about/  → /about/index.html, /about.html, /about/index.htm, /about.htm

A candidate whose file name would be nothing but the suffix ("/.html" for
the root) is skipped.
"""

from typing import Any, Callable, Optional, Tuple, Union
import logging
import os
import posixpath

from ..errors import is_not_found
from ..routing.matcher import setting_applies
from .filesystem import as_stats, call


logger = logging.getLogger(__name__)

CLEAN_URL_EXTENSIONS = (".html", ".htm")


def clean_url_applies(decoded_path: str, clean_urls: Union[bool, list, None]) -> bool:
    """Whether clean URLs are enabled for a path."""
    return setting_applies(clean_urls, decoded_path)


def candidate_paths(relative_path: str, extension: str) -> list:
    """
    Paths that could serve `relative_path` with the given suffix.

    Examples:
        >>> candidate_paths("/docs", ".html")
        ['/docs/index.html', '/docs.html']
        >>> candidate_paths("/", ".html")
        ['/index.html']
    """
    if relative_path.endswith("/"):
        sibling = relative_path[:-1] + extension
    else:
        sibling = relative_path + extension

    candidates = [posixpath.join(relative_path, "index" + extension), sibling]
    return [c for c in candidates if posixpath.basename(c) != extension]


async def find_related(
    root: str,
    relative_path: str,
    lstat: Callable,
) -> Optional[Tuple[Any, str]]:
    """
    Probe the clean URL candidates for a path.

    Args:
        root: Absolute public root.
        relative_path: Request path relative to the root.
        lstat: The lstat capability.

    Returns:
        (stats, absolute path) of the first existing candidate, or None.

    Raises:
        Whatever lstat raises, other than not-found errors.
    """
    for extension in CLEAN_URL_EXTENSIONS:
        for candidate in candidate_paths(relative_path, extension):
            absolute = os.path.join(root, candidate.lstrip("/"))
            try:
                stats = as_stats(await call(lstat, absolute))
            except Exception as e:
                if not is_not_found(e):
                    raise
                continue

            if stats:
                logger.debug(f"Clean URL {relative_path} resolved to {candidate}")
                return stats, absolute

    return None
