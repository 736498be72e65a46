"""
=============================================================================
SERVEHANDLER - Static File Request Handler
=============================================================================

Resolves HTTP request paths to files and directories under a public root
and writes the response: rewrites, redirects, clean URLs, directory
listings, custom headers, ETags, byte ranges and symlink policy.

It is a handler, not a server. The host owns the socket, parses the
request and hands over a request object and a response sink:

    ┌──────────────┐   HTTPRequest    ┌─────────────────┐   stat / read   ┌──────┐
    │  host server │ ───────────────► │  servehandler   │ ──────────────► │ disk │
    │              │ ◄─────────────── │     serve()     │                 └──────┘
    └──────────────┘  ResponseSink    └─────────────────┘

=============================================================================
PACKAGE STRUCTURE
=============================================================================

    servehandler/
    ├── __init__.py          # This file - package exports
    ├── config.py            # ServeConfig and rule dataclasses
    ├── errors.py            # Exceptions carrying HTTP status codes
    ├── log.py               # Logging setup and access records
    ├── http/                # HTTP value objects
    │   ├── request.py       # HTTPRequest, path decoding
    │   ├── response.py      # ResponseSink protocol, buffering HTTPResponse
    │   ├── ranges.py        # Range header parsing
    │   ├── status_codes.py  # HTTP status enum
    │   └── mime_types.py    # MIME type detection
    ├── routing/             # Path matching
    │   ├── matcher.py       # Globs and path templates
    │   ├── rewrites.py      # Rewrite engine
    │   └── redirects.py     # Redirect resolver
    ├── core/                # Filesystem-facing components
    │   ├── filesystem.py    # Injectable stat/readdir/stream capabilities
    │   ├── clean_urls.py    # "/about" → about.html
    │   ├── headers.py       # Default, custom and ETag headers
    │   └── listing.py       # Directory listings
    ├── views/
    │   └── templates.py     # Listing and error page HTML
    └── handlers/
        └── static.py        # serve() and StaticFileHandler

=============================================================================
QUICK START
=============================================================================

    import asyncio
    from servehandler import HTTPRequest, HTTPResponse, ServeConfig, serve

    config = ServeConfig(public="dist", clean_urls=True, etag=True)

    async def main():
        response = HTTPResponse()
        await serve(HTTPRequest("GET", "/about"), response, config)
        print(response.status_code, response.headers)

    asyncio.run(main())

=============================================================================
"""

from .config import HeaderPatch, HeaderRule, RedirectRule, RewriteRule, ServeConfig
from .core.filesystem import FileStats, FileStream, FileSystemHandlers
from .errors import BadRequest, NotFound, RangeNotSatisfiable, ServeError, UpstreamError
from .handlers.static import StaticFileHandler, serve
from .http.request import HTTPRequest
from .http.response import HTTPResponse, ResponseSink
from .log import configure_logging

__version__ = "0.1.0"

__all__ = [
    "ServeConfig",
    "RewriteRule",
    "RedirectRule",
    "HeaderRule",
    "HeaderPatch",
    "FileStats",
    "FileStream",
    "FileSystemHandlers",
    "ServeError",
    "BadRequest",
    "NotFound",
    "RangeNotSatisfiable",
    "UpstreamError",
    "StaticFileHandler",
    "serve",
    "HTTPRequest",
    "HTTPResponse",
    "ResponseSink",
    "configure_logging",
]
