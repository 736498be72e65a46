"""
Request path routing: pattern matching, rewrites and redirects.
"""

from .matcher import PatternMatch, matches, normalize, slash_glob, to_target
from .rewrites import MAX_REWRITE_PASSES, apply_rewrites
from .redirects import Redirect, encode_location, resolve_redirect

__all__ = [
    "PatternMatch",
    "matches",
    "normalize",
    "slash_glob",
    "to_target",
    "MAX_REWRITE_PASSES",
    "apply_rewrites",
    "Redirect",
    "encode_location",
    "resolve_redirect",
]
