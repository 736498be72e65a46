"""
Request handlers.
"""

from .static import RequestContext, StaticFileHandler, send_error, serve

__all__ = ["RequestContext", "StaticFileHandler", "send_error", "serve"]
