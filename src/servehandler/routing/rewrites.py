"""
=============================================================================
REWRITE ENGINE
=============================================================================

Maps a request path onto a different path on disk without telling the
client (unlike a redirect).

    rules = [
        {"source": "/blog/:slug", "destination": "/posts/:slug.html"},
        {"source": "/posts/**",   "destination": "/index.html"},
    ]

    "/blog/hello"
        │  rule 1: slug=hello
        ▼
    "/posts/hello.html"          ← the list is applied again from the top
        │  rule 2
        ▼
    "/index.html"
        │  no rule matches
        ▼
    fixed point → "/index.html"

=============================================================================
TERMINATION
=============================================================================

Re-applying the list lets rules chain, but a rule set can also cycle:

    "/a" → "/b", "/b" → "/a"

The loop stops at the first of:

    - no rule matches (fixed point)
    - a rule maps the path onto itself
    - MAX_REWRITE_PASSES rewrites have been applied (logged as a warning)

=============================================================================
"""

from typing import Optional, Sequence
import logging

from ..config import RewriteRule
from .matcher import to_target


logger = logging.getLogger(__name__)

MAX_REWRITE_PASSES = 32


def _rewrite_once(request_path: str, rules: Sequence) -> Optional[str]:
    """Destination of the first matching rule, or None."""
    for rule in rules:
        rule = RewriteRule.coerce(rule)
        target = to_target(rule.source, rule.destination, request_path)
        if target is not None:
            logger.debug(f"Rewrite {rule.source!r}: {request_path} → {target}")
            return target
    return None


def apply_rewrites(request_path: str, rules: Optional[Sequence] = None) -> str:
    """
    Rewrite a decoded request path until no rule changes it.

    Args:
        request_path: Decoded request path.
        rules: Ordered RewriteRule objects or mappings. None or empty
               leaves the path unchanged.

    Returns:
        The final path.
    """
    if not rules:
        return request_path

    current = request_path
    for _ in range(MAX_REWRITE_PASSES):
        target = _rewrite_once(current, rules)
        if target is None or target == current:
            return current
        current = target

    logger.warning(
        f"Rewrites for {request_path!r} did not settle after "
        f"{MAX_REWRITE_PASSES} passes; using {current!r}"
    )
    return current
