"""
=============================================================================
BYTE RANGES (RFC 7233)
=============================================================================

Parses the Range request header against the size of the file being served.

    ┌─────────────────────┬──────────────┬──────────────────────────────┐
    │ Header (size=100)   │ Result       │ Meaning                      │
    ├─────────────────────┼──────────────┼──────────────────────────────┤
    │ bytes=0-9           │ 0..9         │ First ten bytes              │
    │ bytes=90-           │ 90..99       │ From 90 to the end           │
    │ bytes=-10           │ 90..99       │ Last ten bytes               │
    │ bytes=50-500        │ 50..99       │ End clamped to size - 1      │
    │ bytes=0-1,5-9       │ 0..1         │ Only the first range is used │
    │ bytes=200-300       │ 416          │ Starts past the end          │
    │ items=0-9           │ 416          │ Unknown unit                 │
    │ garbage             │ 416          │ Malformed                    │
    └─────────────────────┴──────────────┴──────────────────────────────┘

Bounds are inclusive on both ends, matching both the Content-Range header
("bytes 0-9/100") and the start/end options of create_read_stream().

Multipart (multiple-range) responses are not produced.

=============================================================================
"""

from dataclasses import dataclass
import re

from ..errors import RangeNotSatisfiable


_RANGE_SPEC = re.compile(r"^\s*(\d*)\s*-\s*(\d*)\s*$")


@dataclass(frozen=True)
class ByteRange:
    """Inclusive byte range within a file of known size."""

    start: int
    end: int

    @property
    def length(self) -> int:
        return self.end - self.start + 1

    def content_range(self, size: int) -> str:
        """Content-Range header value, e.g. "bytes 0-9/100"."""
        return f"bytes {self.start}-{self.end}/{size}"


def unsatisfied_content_range(size: int) -> str:
    """Content-Range value sent with a 416 response."""
    return f"bytes */{size}"


def parse_range(header: str, size: int) -> ByteRange:
    """
    Resolve a Range header to the first satisfiable byte range.

    Args:
        header: Raw Range header value.
        size: Size of the representation in bytes.

    Returns:
        The first satisfiable range, end clamped to size - 1.

    Raises:
        RangeNotSatisfiable: Header is malformed, uses a unit other than
                             bytes, or contains no satisfiable range.
    """
    unit, separator, specs = header.partition("=")
    if not separator:
        raise RangeNotSatisfiable(f"Malformed Range header: {header!r}")
    if unit.strip().lower() != "bytes":
        raise RangeNotSatisfiable(f"Unsupported range unit: {unit!r}")

    for spec in specs.split(","):
        match = _RANGE_SPEC.match(spec)
        if not match:
            continue

        first, last = match.groups()
        if not first and not last:
            continue

        if not first:
            # Suffix range: the last N bytes
            start = size - int(last)
            end = size - 1
        else:
            start = int(first)
            end = int(last) if last else size - 1

        end = min(end, size - 1)

        if start < 0 or start > end:
            continue

        return ByteRange(start, end)

    raise RangeNotSatisfiable(f"No satisfiable range in {header!r} for size {size}")
