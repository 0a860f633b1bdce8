"""
=============================================================================
BYTE RANGE PARSING (RFC 7233)
=============================================================================

Turns a Range header plus a file size into the byte window to stream.

=============================================================================
WHY PLAYERS SEND RANGES
=============================================================================

A video player never downloads a movie front to back. It jumps around:

    ┌──────────────────────────────────────────────────────────────────────┐
    │   movie.mp4 (70 MB)                                                  │
    │                                                                      │
    │   [moov]·····································[mdat ........]       │
    │   ▲                                   ▲                              │
    │   │ bytes=0-                          │ bytes=41943040-              │
    │   │ start playback                    │ user drags the seek bar      │
    │                                                                      │
    │   bytes=-65536    read the last 64 KiB (moov atom at the end)        │
    └──────────────────────────────────────────────────────────────────────┘

=============================================================================
THE THREE FORMS
=============================================================================

    ┌───────────────────┬──────────────────────────┬──────────────────────┐
    │ Header            │ Window (file size N)     │ Example, N = 1000    │
    ├───────────────────┼──────────────────────────┼──────────────────────┤
    │ (absent)          │ [0, N-1]        200      │ [0, 999]             │
    │ bytes=a-b         │ [a, min(b, N-1)] 206     │ 100-199 → [100, 199] │
    │ bytes=a-          │ [a, N-1]        206      │ 900-    → [900, 999] │
    │ bytes=-n          │ [max(0, N-n), N-1] 206   │ -50     → [950, 999] │
    └───────────────────┴──────────────────────────┴──────────────────────┘

    Unsatisfiable (→ 416):  a > b,  a ≥ N,  any range on an empty file,
                            bytes=-0

    Malformed (→ ignored, whole file with 200):
                            "items=0-1", "bytes=abc-", "bytes=-",
                            "bytes=0-1,5-9" (multi-range), "bytes=+1-2"

Ignoring a malformed header is what RFC 7233 §3.1 allows, and it means a
confused client still gets something playable instead of an error.

=============================================================================
"""

from dataclasses import dataclass
from typing import Optional
import re

from ..errors import UnsatisfiableRange


# Only ASCII digits; \d would also accept other Unicode digits.
# 19 digits covers any 64-bit offset; longer bounds are malformed.
_RANGE_PATTERN = re.compile(
    r"^\s*bytes\s*=\s*([0-9]{0,19})\s*-\s*([0-9]{0,19})\s*$",
    re.IGNORECASE,
)


@dataclass(frozen=True)
class ByteRange:
    """
    An inclusive byte window into a file of ``size`` bytes.

    Invariant: ``0 <= start <= end < size``, except for an empty file,
    which gets the empty window ``start=0, end=-1`` (length 0).
    """

    start: int
    end: int
    is_partial: bool
    size: int

    @classmethod
    def full(cls, size: int) -> "ByteRange":
        """The whole file, served with 200."""
        return cls(start=0, end=size - 1, is_partial=False, size=size)

    @property
    def length(self) -> int:
        """Content-Length of the response body."""
        return self.end - self.start + 1

    @property
    def content_range(self) -> str:
        """Content-Range header value, e.g. "bytes 100-199/1000"."""
        return f"bytes {self.start}-{self.end}/{self.size}"


def parse_range(header: Optional[str], size: int) -> ByteRange:
    """
    Resolve a Range header against a file size.

    Args:
        header: Raw Range header value, or None when the request had none.
        size: File size in bytes.

    Returns:
        The window to stream.

    Raises:
        UnsatisfiableRange: The header is well formed but asks for bytes
            the file doesn't have. Nothing else is ever raised: malformed
            headers fall back to the full file.

    Examples:
        >>> parse_range("bytes=100-199", 1000).content_range
        'bytes 100-199/1000'

        >>> parse_range("bytes=-50", 1000).start
        950

        >>> parse_range("bytes=oops", 1000).is_partial
        False
    """
    if header is None or not header.strip():
        return ByteRange.full(size)

    match = _RANGE_PATTERN.match(header)
    if not match:
        return ByteRange.full(size)

    first, last = match.groups()

    if not first and not last:
        # "bytes=-"
        return ByteRange.full(size)

    if not first:
        # Suffix form: the last n bytes
        suffix = int(last)
        start = max(0, size - suffix)
        end = size - 1
    else:
        start = int(first)
        end = int(last) if last else size - 1

    if start > end or start >= size:
        raise UnsatisfiableRange(
            f"Range {header.strip()!r} not satisfiable for {size} bytes",
            size=size,
        )

    return ByteRange(start=start, end=min(end, size - 1), is_partial=True, size=size)
