"""
Filesystem-facing components: capabilities, clean URLs, headers, listings.
"""

from .filesystem import FileStats, FileStream, FileSystemHandlers
from .clean_urls import clean_url_applies, find_related
from .headers import calculate_etag, compose_headers
from .listing import DirectoryResult, format_bytes, render_directory

__all__ = [
    "FileStats",
    "FileStream",
    "FileSystemHandlers",
    "clean_url_applies",
    "find_related",
    "calculate_etag",
    "compose_headers",
    "DirectoryResult",
    "format_bytes",
    "render_directory",
]
