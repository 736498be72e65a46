"""
=============================================================================
ERRORS
=============================================================================

Exceptions raised while resolving a request.

Every exception carries the HTTP status code and the machine-readable error
code that the orchestrator sends back, so translating a failure into a
response never needs a lookup table:

    ┌──────────────────────┬────────┬──────────────────────────────────────┐
    │ Exception            │ Status │ Meaning                              │
    ├──────────────────────┼────────┼──────────────────────────────────────┤
    │ BadRequest           │  400   │ Malformed URI or path traversal      │
    │ NotFound             │  404   │ Nothing on disk for this path        │
    │ RangeNotSatisfiable  │  416   │ Range outside the content bounds     │
    │ UpstreamError        │  500   │ Any other filesystem failure         │
    └──────────────────────┴────────┴──────────────────────────────────────┘

NotFound is recovered locally (it falls through to the next resolution
step). Everything else ends the request immediately. Nothing is retried.

=============================================================================
"""

from typing import Optional


class ServeError(Exception):
    """
    Base class for errors that map directly onto an HTTP error response.

    Attributes:
        status_code: HTTP status to send.
        code: Stable error code used in JSON error bodies.
    """

    status_code = 500
    code = "internal_server_error"
    default_message = "A server error has occurred"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message


class BadRequest(ServeError):
    """Invalid percent-encoding or an attempt to leave the public root."""

    status_code = 400
    code = "bad_request"
    default_message = "Bad Request"


class NotFound(ServeError):
    """
    The filesystem entry does not exist.

    Custom filesystem handlers may raise this instead of FileNotFoundError.
    """

    status_code = 404
    code = "not_found"
    default_message = "The requested path could not be found"


class RangeNotSatisfiable(ServeError):
    """The requested byte range lies outside the content."""

    status_code = 416
    code = "range_not_satisfiable"
    default_message = "Range Not Satisfiable"


class UpstreamError(ServeError):
    """
    A filesystem handler failed for a reason other than absence.

    Custom handlers can raise this for backend failures; like any other
    unexpected exception it is logged and answered with a generic 500.
    """


def is_not_found(error: BaseException) -> bool:
    """
    Check whether a handler failure means "this path does not exist".

    ENOTDIR counts as absence too: stat("file.txt/child") fails with it.
    """
    return isinstance(error, (FileNotFoundError, NotADirectoryError, NotFound))
