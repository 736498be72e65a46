"""
=============================================================================
LOGGING
=============================================================================

Every module logs through `logging.getLogger(__name__)`, so the whole
package sits under the "servehandler" logger:

    servehandler                      ← configure_logging() sets this level
    ├── servehandler.handlers.static  ← rejected paths, upstream failures
    ├── servehandler.routing.*        ← rewrite / redirect decisions (DEBUG)
    ├── servehandler.core.*           ← listing and clean URL details (DEBUG)
    └── servehandler.access           ← one record per request

Access records come in two renderings:

    text:  127.0.0.1 - - [19/Oct/2026:10:00:00 +0000] "GET /docs" 200 27 1.52ms
    json:  {"method": "GET", "path": "/docs", "status_code": 200, ...}

The library itself never calls configure_logging(); hosts that have no
logging setup of their own can.

=============================================================================
"""

from dataclasses import dataclass
import json
import logging


access_logger = logging.getLogger("servehandler.access")

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def configure_logging(level: str = "INFO", log_format: str = LOG_FORMAT) -> None:
    """
    Configure root logging and the package logger level.

    Args:
        level: Level name (DEBUG, INFO, WARNING, ...). Unknown names fall
               back to INFO.
        log_format: logging format string.
    """
    numeric = getattr(logging, level.upper(), logging.INFO)

    logging.basicConfig(level=numeric, format=log_format, datefmt=DATE_FORMAT)
    logging.getLogger("servehandler").setLevel(numeric)


@dataclass
class RequestLog:
    """One access log record."""

    method: str
    path: str
    client_ip: str
    user_agent: str
    status_code: int
    content_length: int
    duration_ms: float
    timestamp: str

    def to_dict(self) -> dict:
        return {
            "method": self.method,
            "path": self.path,
            "client_ip": self.client_ip,
            "user_agent": self.user_agent,
            "status_code": self.status_code,
            "content_length": self.content_length,
            "duration_ms": round(self.duration_ms, 2),
            "timestamp": self.timestamp,
        }

    def to_text(self) -> str:
        """Apache-style access line."""
        return (
            f'{self.client_ip or "-"} - - [{self.timestamp}] '
            f'"{self.method} {self.path}" {self.status_code} '
            f'{self.content_length} {self.duration_ms:.2f}ms'
        )

    def emit(self, log_format: str = "text", level: int = logging.INFO) -> None:
        message = json.dumps(self.to_dict()) if log_format == "json" else self.to_text()
        access_logger.log(level, message)
