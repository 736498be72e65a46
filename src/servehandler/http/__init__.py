"""
HTTP value objects and helpers: request, response sink, status codes,
MIME types and byte ranges.
"""

from .request import HTTPRequest, decode_path, extract_path
from .response import HTTPResponse, ResponseSink, format_http_date
from .status_codes import HTTPStatus, reason_phrase
from .mime_types import get_content_type, lookup_mime_type
from .ranges import ByteRange, parse_range

__all__ = [
    "HTTPRequest",
    "decode_path",
    "extract_path",
    "HTTPResponse",
    "ResponseSink",
    "format_http_date",
    "HTTPStatus",
    "reason_phrase",
    "get_content_type",
    "lookup_mime_type",
    "ByteRange",
    "parse_range",
]
