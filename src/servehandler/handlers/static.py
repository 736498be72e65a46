"""
=============================================================================
STATIC FILE HANDLER
=============================================================================

Resolves one request to a file or directory under the public root and
writes the response.

=============================================================================
REQUEST PIPELINE
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │  1. Decode the path             "%zz", bad UTF-8, NUL  → 400        │
    │  2. Containment check           "/../../etc/passwd"    → 400        │
    │  3. Clean URLs apply?                                               │
    │  4. Redirects                   Location + 3xx, done                │
    │  5. Rewrites, containment again                        → 400        │
    │  6. lstat                       absent → no stats                   │
    │  7. Clean URL candidates        "/about" → about.html               │
    │  8. Symlink policy              off → 404, on → realpath + stat     │
    │  9. Directory                   listing → 200                       │
    │                                 single file → 8, then 11            │
    │                                 listing disabled → 404              │
    │ 10. Nothing found                                      → 404        │
    │ 11. File                        Range → 206 / 416                   │
    │                                 If-None-Match == ETag → 304         │
    │                                 else → 200, body streamed           │
    └─────────────────────────────────────────────────────────────────────┘

    Any other failure of a filesystem handler → 500.

=============================================================================
SECURITY: PATH TRAVERSAL
=============================================================================

    GET /../../etc/passwd HTTP/1.1

    root      = /srv/public
    joined    = normpath(/srv/public/../../etc/passwd) = /etc/passwd
    commonpath(root, joined) = /  ≠  root                → 400 Bad Request

The check runs before any filesystem call, on both the decoded path and
the rewritten path. A rejected request never touches the disk, not even to
look for a custom 400.html.

Symbolic links are the exception: with `symlinks` enabled a link may
point anywhere, which is what enabling it means.

=============================================================================
ERROR RESPONSES
=============================================================================

    Accept: application/json  →  {"error": {"code": "not_found",
                                            "message": "..."}}
    otherwise                 →  <root>/404.html if it exists,
                                 else the built-in error page

The 500 body never contains exception details; those go to the log. When
building the error response fails as well, the built-in 500 page is sent
without consulting header rules or filesystem handlers.

=============================================================================
"""

from dataclasses import dataclass
from typing import Any, Mapping, Optional
import json
import logging
import os
import time

from ..config import ServeConfig
from ..core.clean_urls import clean_url_applies, find_related
from ..core.filesystem import FileSystemHandlers, as_stats, call
from ..core.headers import apply_rules, calculate_etag, compose_headers, set_header
from ..core.listing import render_directory
from ..errors import BadRequest, NotFound, RangeNotSatisfiable, ServeError, is_not_found
from ..http.ranges import parse_range, unsatisfied_content_range
from ..http.request import HTTPRequest, decode_path, extract_path
from ..http.response import ResponseSink, close_stream
from ..http.status_codes import HTTPStatus
from ..log import RequestLog
from ..routing.redirects import resolve_redirect
from ..routing.rewrites import apply_rewrites
from ..views.templates import error_template


logger = logging.getLogger(__name__)

JSON_CONTENT_TYPE = "application/json; charset=utf-8"
HTML_CONTENT_TYPE = "text/html; charset=utf-8"


@dataclass
class RequestContext:
    """
    Everything known about the request being resolved.

    Attributes:
        request: The incoming request.
        response: Sink the response is written to.
        config: Mutable configuration for this request.
        handlers: Filesystem capabilities for this request.
        root: Absolute public root.
        accepts_json: Client asked for JSON (listings and errors).
        decoded_path: Percent-decoded request path.
        relative_path: Path after rewrites, relative to the root.
        absolute_path: Filesystem path currently being considered.
        stats: Stats of absolute_path, once known.
    """

    request: HTTPRequest
    response: ResponseSink
    config: ServeConfig
    handlers: FileSystemHandlers
    root: str
    accepts_json: bool = False
    decoded_path: Optional[str] = None
    relative_path: Optional[str] = None
    absolute_path: Optional[str] = None
    stats: Any = None

    @property
    def served_path(self) -> str:
        """absolute_path relative to the root, with forward slashes."""
        if self.absolute_path is None:
            return self.relative_path or "/"
        return os.path.relpath(self.absolute_path, self.root).replace(os.sep, "/")


# =============================================================================
# PATH HELPERS
# =============================================================================

def contain(root: str, path: str) -> str:
    """
    Join a request path onto the root, refusing to leave it.

    Raises:
        BadRequest: The normalized result lies outside the root.
    """
    absolute = os.path.normpath(os.path.join(root, path.lstrip("/")))
    try:
        inside = os.path.commonpath([root, absolute]) == root
    except ValueError:
        inside = False
    if not inside:
        logger.warning(f"Path traversal attempt: {path!r}")
        raise BadRequest()
    return absolute


async def _stat_or_none(function, path: str) -> Any:
    try:
        return as_stats(await call(function, path))
    except Exception as e:
        if is_not_found(e):
            return None
        raise


# =============================================================================
# ORCHESTRATION
# =============================================================================

async def serve(
    request: HTTPRequest,
    response: ResponseSink,
    config: Optional[ServeConfig] = None,
    handlers: Any = None,
) -> None:
    """
    Serve one request from the public root.

    Args:
        request: The incoming request.
        response: Sink to write the response to.
        config: ServeConfig, a mapping accepted by ServeConfig.from_dict(),
                or None for defaults.
        handlers: Filesystem capability overrides (see FileSystemHandlers).
    """
    if config is None:
        config = ServeConfig()
    elif isinstance(config, Mapping):
        config = ServeConfig.from_dict(config)

    ctx = RequestContext(
        request=request,
        response=response,
        config=config,
        handlers=FileSystemHandlers.from_overrides(handlers),
        root=config.public_root,
        accepts_json=request.accepts_json,
    )

    try:
        await _resolve(ctx)
    except Exception as e:
        try:
            await _fail(ctx, e)
        except Exception:
            logger.exception(f"Could not send error response for {request.url}")
            _last_resort(response)


def _last_resort(response: ResponseSink) -> None:
    """Bare 500 page, written without consulting config or handlers."""
    if response.headers_sent:
        response.end()
        return
    response.write_head(HTTPStatus.INTERNAL_SERVER_ERROR, {"Content-Type": HTML_CONTENT_TYPE})
    response.end(error_template(HTTPStatus.INTERNAL_SERVER_ERROR, ServeError.default_message))


async def _fail(ctx: RequestContext, error: Exception) -> None:
    """Translate an exception into an error response."""
    response = ctx.response

    if response.headers_sent:
        # Too late for an error page; cut the body short
        logger.error(f"Error after response head was sent for {ctx.request.url}: {error}")
        response.end()
        return

    if isinstance(error, ServeError) and error.status_code != HTTPStatus.INTERNAL_SERVER_ERROR:
        await send_error(
            ctx,
            error.status_code,
            error.code,
            error.message,
            lookup_page=error.status_code != HTTPStatus.BAD_REQUEST,
        )
        return

    logger.exception(f"Error serving {ctx.request.url}", exc_info=error)
    await send_error(
        ctx,
        HTTPStatus.INTERNAL_SERVER_ERROR,
        ServeError.code,
        ServeError.default_message,
    )


async def _resolve(ctx: RequestContext) -> None:
    config = ctx.config
    handlers = ctx.handlers
    response = ctx.response

    # ─────────────────────────────────────────────────────────────────
    # DECODE AND CONTAIN
    # ─────────────────────────────────────────────────────────────────
    try:
        ctx.decoded_path = decode_path(extract_path(ctx.request.url))
    except BadRequest as e:
        logger.warning(f"Rejected request target {ctx.request.url!r}: {e.message}")
        raise BadRequest() from e

    ctx.absolute_path = contain(ctx.root, ctx.decoded_path)

    # ─────────────────────────────────────────────────────────────────
    # REDIRECTS
    # ─────────────────────────────────────────────────────────────────
    clean_url = clean_url_applies(ctx.decoded_path, config.clean_urls)

    redirect = resolve_redirect(ctx.decoded_path, config, clean_url)
    if redirect is not None:
        response.write_head(redirect.status_code, {"Location": redirect.location})
        response.end()
        return

    # ─────────────────────────────────────────────────────────────────
    # REWRITES
    # ─────────────────────────────────────────────────────────────────
    ctx.relative_path = apply_rewrites(ctx.decoded_path, config.rewrites)
    ctx.absolute_path = contain(ctx.root, ctx.relative_path)

    # ─────────────────────────────────────────────────────────────────
    # LOOKUP
    # ─────────────────────────────────────────────────────────────────
    stats = await _stat_or_none(handlers.lstat, ctx.absolute_path)

    if clean_url and (stats is None or stats.is_directory()):
        related = await find_related(ctx.root, ctx.relative_path, handlers.lstat)
        if related is not None:
            stats, ctx.absolute_path = related

    stats = await _follow_symlink(ctx, stats)

    if stats is not None and stats.is_directory():
        result = await render_directory(ctx)
        if result is None:
            raise NotFound()
        if result.single_file is None:
            content_type = JSON_CONTENT_TYPE if ctx.accepts_json else HTML_CONTENT_TYPE
            response.write_head(HTTPStatus.OK, {"Content-Type": content_type})
            response.end(result.output)
            return
        stats, ctx.absolute_path = result.single_file
        stats = await _follow_symlink(ctx, stats)

    if stats is None:
        raise NotFound()

    ctx.stats = stats
    await send_file(ctx)


async def _follow_symlink(ctx: RequestContext, stats: Any) -> Any:
    """
    Apply the symlink policy to stats of ctx.absolute_path.

    A link answers 404 unless `symlinks` is on, in which case
    ctx.absolute_path moves to the link target and its stats are returned.
    """
    if stats is None or not stats.is_symlink():
        return stats
    if not ctx.config.symlinks:
        raise NotFound()
    ctx.absolute_path = await call(ctx.handlers.realpath, ctx.absolute_path)
    stats = await _stat_or_none(ctx.handlers.stat, ctx.absolute_path)
    if stats is None:
        raise NotFound()
    return stats


async def send_file(ctx: RequestContext) -> None:
    """Stream ctx.absolute_path, honouring Range and If-None-Match."""
    request = ctx.request
    response = ctx.response
    stats = ctx.stats

    status = HTTPStatus.OK
    byte_range = None
    if request.range is not None and stats.size:
        try:
            byte_range = parse_range(request.range, stats.size)
            status = HTTPStatus.PARTIAL_CONTENT
        except RangeNotSatisfiable as e:
            logger.debug(f"{e.message}; sending the full body with 416")
            status = HTTPStatus.RANGE_NOT_SATISFIABLE

    options = {}
    if byte_range is not None:
        options = {"start": byte_range.start, "end": byte_range.end}

    # Opened before the headers are composed: a handler may change the
    # config, and the headers must reflect that
    stream = await call(ctx.handlers.create_read_stream, ctx.absolute_path, **options)

    try:
        config = ctx.config
        etag = await calculate_etag(ctx.handlers, ctx.absolute_path) if config.etag else None
        headers = compose_headers(
            config.headers,
            ctx.served_path,
            stats,
            fallback_path=ctx.relative_path,
            etag=etag,
        )

        if byte_range is not None:
            set_header(headers, "Content-Range", byte_range.content_range(stats.size))
            set_header(headers, "Content-Length", byte_range.length)
        elif status == HTTPStatus.RANGE_NOT_SATISFIABLE:
            set_header(headers, "Content-Range", unsatisfied_content_range(stats.size))

        current_etag = next((v for k, v in headers.items() if k.lower() == "etag"), None)
        if (
            request.range is None
            and current_etag is not None
            and current_etag == request.if_none_match
        ):
            await close_stream(stream)
            response.write_head(HTTPStatus.NOT_MODIFIED, {"ETag": current_etag})
            response.end()
            return

        response.write_head(status, headers)
    except BaseException:
        await close_stream(stream)
        raise

    await response.pipe(stream)


# =============================================================================
# ERRORS
# =============================================================================

async def send_error(
    ctx: RequestContext,
    status: int,
    code: str,
    message: str,
    lookup_page: bool = True,
) -> None:
    """
    Write an error response.

    JSON clients get {"error": {"code", "message"}}. Others get
    <root>/<status>.html when it exists, else the built-in page.

    Args:
        ctx: Request context.
        status: HTTP status to send.
        code: Machine-readable error code.
        message: Human-readable message.
        lookup_page: Look for a custom <status>.html on disk.
    """
    response = ctx.response

    if ctx.accepts_json:
        body = json.dumps({"error": {"code": code, "message": message}})
        response.write_head(status, {"Content-Type": JSON_CONTENT_TYPE})
        response.end(body)
        return

    if lookup_page:
        page = os.path.join(ctx.root, f"{int(status)}.html")
        try:
            stats = await _stat_or_none(ctx.handlers.lstat, page)
        except Exception as e:
            if status == HTTPStatus.INTERNAL_SERVER_ERROR:
                logger.error(f"Could not check for custom error page {page}: {e}")
                stats = None
            else:
                logger.exception(f"Could not check for custom error page {page}", exc_info=e)
                await send_error(
                    ctx,
                    HTTPStatus.INTERNAL_SERVER_ERROR,
                    ServeError.code,
                    ServeError.default_message,
                )
                return

        if stats is not None and await _send_error_page(ctx, status, page, stats):
            return

    headers = {}
    apply_rules(headers, ctx.config.headers, ctx.relative_path or ctx.decoded_path or "/")
    set_header(headers, "Content-Type", HTML_CONTENT_TYPE)
    response.write_head(status, headers)
    response.end(error_template(status, message))


async def _send_error_page(ctx: RequestContext, status: int, page: str, stats: Any) -> bool:
    """Stream a custom error page; False when it could not be opened."""
    try:
        stream = await call(ctx.handlers.create_read_stream, page)
    except Exception as e:
        logger.error(f"Could not open custom error page {page}: {e}")
        return False

    try:
        etag = await calculate_etag(ctx.handlers, page) if ctx.config.etag else None
        headers = compose_headers(ctx.config.headers, f"{int(status)}.html", stats, etag=etag)
    except Exception as e:
        await close_stream(stream)
        logger.error(f"Could not prepare custom error page {page}: {e}")
        return False

    ctx.response.write_head(status, headers)
    await ctx.response.pipe(stream)
    return True


# =============================================================================
# HANDLER WITH ACCESS LOGGING
# =============================================================================

class StaticFileHandler:
    """
    serve() bound to a configuration, with one access log record per request.

    Usage:
        handler = StaticFileHandler(ServeConfig(public="dist", etag=True))
        response = HTTPResponse()
        await handler.handle(request, response)
        writer.write(response.to_bytes())
    """

    def __init__(
        self,
        config: Optional[ServeConfig] = None,
        handlers: Any = None,
        log_format: str = "text",
        log_level: int = logging.INFO,
    ):
        """
        Args:
            config: Configuration used for every request; defaults to
                    ServeConfig().
            handlers: Filesystem capability overrides.
            log_format: "text" (Apache style) or "json".
            log_level: Level for access records.
        """
        if isinstance(config, Mapping):
            config = ServeConfig.from_dict(config)
        self.config = config or ServeConfig()
        self.handlers = handlers
        self.log_format = log_format
        self.log_level = log_level

    async def handle(self, request: HTTPRequest, response: ResponseSink) -> None:
        start_time = time.time()
        try:
            await serve(request, response, self.config, self.handlers)
        finally:
            duration_ms = (time.time() - start_time) * 1000
            self._log(request, response, duration_ms)

    def _log(self, request: HTTPRequest, response: ResponseSink, duration_ms: float) -> None:
        length = response.get_header("Content-Length")
        if length is None:
            length = len(getattr(response, "body", b""))

        RequestLog(
            method=request.method,
            path=request.path,
            client_ip=request.client_address[0],
            user_agent=request.get_header("user-agent") or "-",
            status_code=int(response.status_code),
            content_length=int(length),
            duration_ms=duration_ms,
            timestamp=time.strftime("%d/%b/%Y:%H:%M:%S %z"),
        ).emit(self.log_format, self.log_level)
