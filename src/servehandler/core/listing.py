"""
=============================================================================
DIRECTORY LISTER
=============================================================================

Turns a directory into a listing document, rendered as HTML or JSON:

    {
        "files": [
            {"base": "..", "relative": "/", "title": "/", "type": "directory"},
            {"base": "assets/", "relative": "/docs/assets/",
             "title": "assets/", "type": "directory"},
            {"base": "intro.md", "relative": "/docs/intro.md",
             "title": "intro.md", "type": "file", "ext": "md",
             "size": "27 B"}
        ],
        "directory": "public/docs/",
        "paths": [
            {"name": "public/", "url": "/"},
            {"name": "docs/", "url": "/docs/"}
        ]
    }

=============================================================================
STEPS
=============================================================================

    readdir ──► drop .DS_Store, .git and unlisted globs
            ──► lstat each entry, one at a time (stat through links when
                symlinks are enabled)
            ──► one file left and render_single? → serve that file instead
            ──► directories first, then by name (case-sensitive)
            ──► ".." on top unless this is the root
            ──► breadcrumbs

Directories get the slash suffix ("/", or "" when trailing_slash is False)
on their name and link.

=============================================================================
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple
import json
import logging
import math
import os
import posixpath

from ..errors import is_not_found
from ..routing.matcher import matches, setting_applies
from ..views.templates import directory_template
from .filesystem import as_stats, call


logger = logging.getLogger(__name__)

# Always hidden from listings
EXCLUDED_NAMES = (".DS_Store", ".git")

_UNITS = ["B", "KB", "MB", "GB", "TB", "PB"]


@dataclass
class DirectoryResult:
    """
    Outcome of rendering a directory.

    Exactly one of `output` (rendered listing) and `single_file`
    ((stats, absolute path) of the lone file) is set.
    """

    output: Optional[str] = None
    single_file: Optional[Tuple[Any, str]] = None
    listing: Optional[Dict[str, Any]] = None


def format_bytes(size: int) -> str:
    """
    Human-readable size with 1024-based units and no decimals.

    Examples:
        >>> format_bytes(27)
        '27 B'
        >>> format_bytes(2048)
        '2 KB'
    """
    magnitude = abs(size)
    index = 0
    while index < len(_UNITS) - 1 and magnitude >= 1024 ** (index + 1):
        index += 1
    value = math.floor(size / 1024 ** index + 0.5)
    return f"{value} {_UNITS[index]}"


def slash_suffix(trailing_slash: Optional[bool]) -> str:
    return "" if trailing_slash is False else "/"


def is_listable(name: str, unlisted: List[str]) -> bool:
    if name in EXCLUDED_NAMES:
        return False
    slashed = "/" + name
    return not any(matches(source, slashed) for source in unlisted)


def breadcrumbs(directory: str, suffix: str) -> List[Dict[str, str]]:
    """
    Navigation links for each level of `directory`.

    The first part is the root's own name and links to "/".
    """
    parts = [part for part in directory.split("/") if part]
    crumbs = []
    for index, part in enumerate(parts):
        is_last = index == len(parts) - 1
        if index == 0:
            url = "/"
        else:
            url = "/" + "/".join(parts[1:index + 1]) + suffix
        crumbs.append({"name": part + (suffix if is_last else "/"), "url": url})
    return crumbs


async def _entry_stats(ctx, path: str) -> Any:
    """Stats for a listing entry, or None when it vanished or dangles."""
    try:
        stats = as_stats(await call(ctx.handlers.lstat, path, True))
        if ctx.config.symlinks and stats.is_symlink():
            stats = as_stats(await call(ctx.handlers.stat, path))
    except Exception as e:
        if not is_not_found(e):
            raise
        logger.debug(f"Skipping unreadable listing entry {path}: {e}")
        return None
    return stats


async def render_directory(ctx) -> Optional[DirectoryResult]:
    """
    List the directory at ctx.absolute_path.

    Returns:
        DirectoryResult, or None when listings are disabled for this path
        and render_single is off (or does not apply).
    """
    config = ctx.config
    listing_enabled = setting_applies(config.directory_listing, ctx.relative_path)
    if not listing_enabled and not config.render_single:
        return None

    suffix = slash_suffix(config.trailing_slash)
    names = await call(ctx.handlers.readdir, ctx.absolute_path)

    entries = []
    single = None
    for name in names:
        if not is_listable(name, config.unlisted):
            continue

        path = os.path.join(ctx.absolute_path, name)
        stats = await _entry_stats(ctx, path)
        if stats is None:
            continue

        relative = posixpath.join(ctx.relative_path or "/", name)
        if stats.is_directory():
            entry = {
                "base": name + suffix,
                "relative": relative + suffix,
                "title": name + suffix,
                "type": "directory",
            }
        else:
            single = (stats, path)
            entry = {
                "base": name,
                "relative": relative,
                "title": name,
                "type": "file",
                "ext": posixpath.splitext(name)[1][1:] or "txt",
            }
            if stats.size is not None:
                entry["size"] = format_bytes(stats.size)
        entries.append(entry)

    if config.render_single and len(entries) == 1 and entries[0]["type"] == "file":
        return DirectoryResult(single_file=single)

    if not listing_enabled:
        return None

    entries.sort(key=lambda entry: (0 if entry["type"] == "directory" else 1, entry["base"]))

    to_root = os.path.relpath(ctx.absolute_path, ctx.root).replace(os.sep, "/")
    if to_root == ".":
        to_root = ""

    if to_root:
        parent = posixpath.normpath(posixpath.join("/", to_root, ".."))
        relative = parent if parent == "/" else parent + suffix
        entries.insert(0, {"base": "..", "relative": relative, "title": relative, "type": "directory"})

    root_name = os.path.basename(ctx.root)
    directory = (posixpath.join(root_name, to_root) if to_root else root_name) + suffix
    listing = {
        "files": entries,
        "directory": directory,
        "paths": breadcrumbs(directory, suffix),
    }

    output = json.dumps(listing) if ctx.accepts_json else directory_template(listing)
    return DirectoryResult(output=output, listing=listing)
