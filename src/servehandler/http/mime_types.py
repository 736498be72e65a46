"""
=============================================================================
MIME TYPE DETECTION
=============================================================================

Maps file extensions to MIME types for the Content-Type header of served
files.

    style.css     → text/css; charset=utf-8
    object.json   → application/json; charset=utf-8
    photo.png     → image/png
    .dotfile      → (no extension) → caller decides the fallback

Lookup is by extension only; file content is never sniffed. Text types get
a charset parameter, binary types do not.

The handler asks for the served file's type first and, when the file has no
known extension, for the type of the path the client asked for (a rewrite
may map "/whatever" onto "clean-file.html", or the other way around).
Only when both are unknown does it fall back to application/octet-stream.

=============================================================================
"""

import posixpath
from typing import Optional


# =============================================================================
# MIME TYPE DATABASE
# =============================================================================
#
# Lowercase extension (with dot) → MIME type.
#
# =============================================================================

MIME_TYPES = {
    # Text
    ".html": "text/html",
    ".htm": "text/html",
    ".css": "text/css",
    ".js": "text/javascript",
    ".mjs": "text/javascript",
    ".json": "application/json",
    ".map": "application/json",
    ".webmanifest": "application/manifest+json",
    ".xml": "application/xml",
    ".txt": "text/plain",
    ".md": "text/markdown",
    ".markdown": "text/markdown",
    ".csv": "text/csv",
    ".yaml": "text/yaml",
    ".yml": "text/yaml",

    # Images
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".gif": "image/gif",
    ".svg": "image/svg+xml",
    ".ico": "image/x-icon",
    ".webp": "image/webp",
    ".avif": "image/avif",
    ".bmp": "image/bmp",

    # Fonts
    ".woff": "font/woff",
    ".woff2": "font/woff2",
    ".ttf": "font/ttf",
    ".otf": "font/otf",
    ".eot": "application/vnd.ms-fontobject",

    # Audio / video
    ".mp3": "audio/mpeg",
    ".wav": "audio/wav",
    ".ogg": "audio/ogg",
    ".m4a": "audio/mp4",
    ".flac": "audio/flac",
    ".mp4": "video/mp4",
    ".webm": "video/webm",
    ".mov": "video/quicktime",

    # Documents and archives
    ".pdf": "application/pdf",
    ".zip": "application/zip",
    ".tar": "application/x-tar",
    ".gz": "application/gzip",
    ".7z": "application/x-7z-compressed",

    # Other
    ".wasm": "application/wasm",
}

DEFAULT_MIME_TYPE = "application/octet-stream"

# application/* and image/* types that are still text
_TEXT_TYPES = {
    "application/json",
    "application/manifest+json",
    "application/xml",
    "image/svg+xml",
}


def lookup_mime_type(path: str) -> Optional[str]:
    """
    MIME type for a path's extension, or None when unknown.

    Examples:
        >>> lookup_mime_type("/docs/readme.md")
        'text/markdown'
        >>> lookup_mime_type("/.dotfile") is None
        True
    """
    _, extension = posixpath.splitext(path)
    return MIME_TYPES.get(extension.lower())


def is_text_type(mime_type: str) -> bool:
    """Text content is served with a charset parameter."""
    return mime_type.startswith("text/") or mime_type in _TEXT_TYPES


def get_content_type(*paths: Optional[str], charset: str = "utf-8") -> str:
    """
    Full Content-Type header value for the first path with a known type.

    Args:
        *paths: Candidate paths, most specific first. None entries are skipped.
        charset: Charset appended to text types.

    Returns:
        Content-Type value; application/octet-stream when nothing matched.

    Examples:
        >>> get_content_type("object.json")
        'application/json; charset=utf-8'
        >>> get_content_type("/whatever", "/clean-file.html")
        'text/html; charset=utf-8'
        >>> get_content_type(".dotfile")
        'application/octet-stream'
    """
    for path in paths:
        if not path:
            continue
        mime_type = lookup_mime_type(path)
        if mime_type:
            if is_text_type(mime_type):
                return f"{mime_type}; charset={charset}"
            return mime_type

    return DEFAULT_MIME_TYPE
