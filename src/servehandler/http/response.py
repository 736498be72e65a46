"""
=============================================================================
HTTP RESPONSE SINK
=============================================================================

The handler never talks to a socket. It writes into a response sink
supplied by the host, through a small Node-style interface:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                      RESPONSE SINK LIFECYCLE                        │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   set_header() / remove_header()      ← optional, before the head   │
    │            │                                                         │
    │            ▼                                                         │
    │   write_head(status, headers)         ← head is now "sent"          │
    │            │                                                         │
    │            ▼                                                         │
    │   write(chunk) ... write(chunk)       ← or: await pipe(stream)      │
    │            │                                                         │
    │            ▼                                                         │
    │   end(body=None)                      ← response finished           │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Header names are case-insensitive: set_header("content-type", ...) replaces
an earlier "Content-Type".

`HTTPResponse` is the buffering implementation. It keeps the whole body in
memory and serializes with to_bytes(), which is what the tests and simple
hosts use:

    HTTP/1.1 200 OK\\r\\n                 ← Status line
    Content-Type: text/plain\\r\\n
    Content-Length: 5\\r\\n               ← Auto-added when missing
    Date: Wed, 01 Jan 2026 ...\\r\\n      ← Auto-added
    Server: servehandler/0.1\\r\\n        ← Auto-added
    \\r\\n
    hello

Streaming hosts implement the same protocol and forward each write()
straight to their transport.

=============================================================================
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Dict, Optional, Protocol, Union, runtime_checkable
import inspect
import json

from .status_codes import HTTPStatus, reason_phrase


SERVER_NAME = "servehandler/0.1"

# Chunk size used when draining file-like objects in pipe()
PIPE_CHUNK_SIZE = 64 * 1024


@runtime_checkable
class ResponseSink(Protocol):
    """The interface the handler writes responses through."""

    status_code: int

    @property
    def headers_sent(self) -> bool: ...

    def set_header(self, name: str, value: str) -> None: ...

    def get_header(self, name: str) -> Optional[str]: ...

    def remove_header(self, name: str) -> None: ...

    def write_head(self, status: int, headers: Optional[Dict[str, str]] = None) -> None: ...

    def write(self, chunk: Union[bytes, str]) -> None: ...

    def end(self, body: Union[bytes, str, None] = None) -> None: ...

    async def pipe(self, stream: Any) -> None: ...


@dataclass
class HTTPResponse:
    """
    Buffering response sink.

    Attributes:
        status_code: Status sent with the head (200 until write_head()).
        headers: Response headers in the case they were first set.
        body: Everything written so far.
        version: HTTP version for the status line.
        finished: True once end() has been called.
    """

    status_code: int = HTTPStatus.OK
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytearray = field(default_factory=bytearray)
    version: str = "HTTP/1.1"
    finished: bool = False
    _headers_sent: bool = field(default=False, repr=False)

    def __post_init__(self):
        if isinstance(self.body, str):
            self.body = self.body.encode("utf-8")
        self.body = bytearray(self.body)

    # =========================================================================
    # HEADERS
    # =========================================================================

    @property
    def headers_sent(self) -> bool:
        return self._headers_sent

    def _find_key(self, name: str) -> Optional[str]:
        lowered = name.lower()
        for key in self.headers:
            if key.lower() == lowered:
                return key
        return None

    def set_header(self, name: str, value: str) -> None:
        """Set a header, replacing any existing one regardless of case."""
        if self._headers_sent:
            raise RuntimeError("Cannot set headers after they are sent")
        existing = self._find_key(name)
        if existing is not None:
            del self.headers[existing]
        self.headers[name] = str(value)

    def get_header(self, name: str) -> Optional[str]:
        key = self._find_key(name)
        return self.headers[key] if key is not None else None

    def remove_header(self, name: str) -> None:
        key = self._find_key(name)
        if key is not None:
            del self.headers[key]

    @property
    def status_line(self) -> str:
        """e.g. "HTTP/1.1 404 Not Found"."""
        return f"{self.version} {int(self.status_code)} {reason_phrase(self.status_code)}"

    # =========================================================================
    # BODY
    # =========================================================================

    def write_head(self, status: int, headers: Optional[Dict[str, str]] = None) -> None:
        """
        Commit the status and headers.

        Headers passed here are merged over those set earlier with
        set_header().
        """
        if self._headers_sent:
            raise RuntimeError("Response head already sent")
        self.status_code = status
        for name, value in (headers or {}).items():
            self.set_header(name, value)
        self._headers_sent = True

    def write(self, chunk: Union[bytes, str]) -> None:
        """Append to the body, sending an implicit head first if needed."""
        if self.finished:
            raise RuntimeError("Write after end")
        if not self._headers_sent:
            self.write_head(self.status_code)
        if isinstance(chunk, str):
            chunk = chunk.encode("utf-8")
        self.body.extend(chunk)

    def end(self, body: Union[bytes, str, None] = None) -> None:
        if self.finished:
            return
        if body:
            self.write(body)
        elif not self._headers_sent:
            self.write_head(self.status_code)
        self.finished = True

    async def pipe(self, stream: Any) -> None:
        """
        Drain a stream into the body, then end the response.

        Accepts an async iterator of chunks, an object with a read()
        method (sync or async), or a plain iterable of chunks. The stream
        is closed afterwards whether or not draining succeeded.
        """
        try:
            async for chunk in iter_chunks(stream):
                self.write(chunk)
        finally:
            await close_stream(stream)
        self.end()

    # =========================================================================
    # INSPECTION / SERIALIZATION
    # =========================================================================

    @property
    def text(self) -> str:
        return bytes(self.body).decode("utf-8")

    def json(self) -> Any:
        return json.loads(self.text)

    def to_bytes(self, server_name: str = SERVER_NAME) -> bytes:
        """Serialize status line, headers and buffered body."""
        response_headers = dict(self.headers)
        lowered = {name.lower() for name in response_headers}

        if "content-length" not in lowered and self.status_code != HTTPStatus.NOT_MODIFIED:
            response_headers["Content-Length"] = str(len(self.body))
        if "date" not in lowered:
            response_headers["Date"] = format_http_date(datetime.now(timezone.utc))
        if "server" not in lowered:
            response_headers["Server"] = server_name

        lines = [self.status_line]
        for name, value in response_headers.items():
            lines.append(f"{name}: {value}")
        lines.append("")

        header_bytes = "\r\n".join(lines).encode("utf-8") + b"\r\n"
        return header_bytes + bytes(self.body)


async def iter_chunks(stream: Any) -> AsyncIterator[bytes]:
    """
    Yield the chunks of any supported stream shape.

    Async iterators are consumed directly; objects with read() are drained
    PIPE_CHUNK_SIZE bytes at a time; bytes and str are one chunk; other
    iterables are consumed synchronously.
    """
    if hasattr(stream, "__aiter__"):
        async for chunk in stream:
            yield chunk
    elif hasattr(stream, "read"):
        while True:
            chunk = stream.read(PIPE_CHUNK_SIZE)
            if inspect.isawaitable(chunk):
                chunk = await chunk
            if not chunk:
                break
            yield chunk
    elif isinstance(stream, (bytes, str)):
        yield stream
    else:
        for chunk in stream:
            yield chunk


async def close_stream(stream: Any) -> None:
    """Close a stream through aclose() or close(), whichever it has."""
    closer = getattr(stream, "aclose", None) or getattr(stream, "close", None)
    if closer is None:
        return
    result = closer()
    if inspect.isawaitable(result):
        await result


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================

_DAYS = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
_MONTHS = ["Jan", "Feb", "Mar", "Apr", "May", "Jun",
           "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]


def format_http_date(value: Union[datetime, float]) -> str:
    """
    Format a datetime or POSIX timestamp as an HTTP-date (RFC 7231).

    Format: Day, DD Mon YYYY HH:MM:SS GMT

    Examples:
        >>> format_http_date(0)
        'Thu, 01 Jan 1970 00:00:00 GMT'
    """
    if isinstance(value, datetime):
        dt = value.astimezone(timezone.utc) if value.tzinfo else value
    else:
        dt = datetime.fromtimestamp(value, tz=timezone.utc)

    return (
        f"{_DAYS[dt.weekday()]}, "
        f"{dt.day:02d} {_MONTHS[dt.month - 1]} {dt.year} "
        f"{dt.hour:02d}:{dt.minute:02d}:{dt.second:02d} GMT"
    )
