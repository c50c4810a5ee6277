"""Typed views of the WebDAV request headers BucketDAV understands."""

import email.utils
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum

from starlette.datastructures import Headers


class Depth(Enum):
    """Values of the ``Depth`` request header."""

    ZERO = "0"
    ONE = "1"
    INFINITY = "infinity"

    @classmethod
    def parse(cls, value: str | None, default: "Depth | None" = None) -> "Depth | None":
        """Parse a Depth header value.

        Args:
            value: The raw header value, or None when the header is absent.
            default: Returned when the header is absent. Defaults to INFINITY.

        Returns:
            The matching Depth, or None if the value is not a depth token.
        """
        if value is None:
            return default if default is not None else cls.INFINITY
        token = value.strip().lower()
        for depth in cls:
            if depth.value == token:
                return depth
        return None


def parse_overwrite(value: str | None) -> bool | None:
    """Parse the ``Overwrite`` header.

    Absent means ``T``. Returns None for anything other than ``T``/``F``.
    """
    if value is None:
        return True
    token = value.strip().upper()
    if token == "T":
        return True
    if token == "F":
        return False
    return None


# ---------------------------------------------------------------------------
# Byte ranges
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class OffsetRange:
    """``bytes=offset-end`` (length set) or ``bytes=offset-`` (to the end)."""

    offset: int
    length: int | None = None


@dataclass(frozen=True)
class SuffixRange:
    """``bytes=-N``: the last N bytes."""

    suffix: int


ByteRange = OffsetRange | SuffixRange

_RANGE_RE = re.compile(r"^bytes=(\d*)-(\d*)$")


def parse_range_header(header: str | None) -> ByteRange | None:
    """Parse an HTTP Range header into one of the three range forms.

    The size of the resource is not known yet at this point; the store
    applies the range and :func:`resolve_span` computes the actual bytes.

    Multiple ranges, other units and syntactically invalid values return None,
    which means the header is ignored.

    Args:
        header: The Range header value, e.g. "bytes=0-4".

    Returns:
        An OffsetRange or SuffixRange, or None.
    """
    if not header:
        return None

    m = _RANGE_RE.match(header.strip().replace(" ", ""))
    if not m:
        return None

    start_str, end_str = m.group(1), m.group(2)
    if not start_str and not end_str:
        return None

    if not start_str:
        return SuffixRange(int(end_str))

    start = int(start_str)
    if not end_str:
        return OffsetRange(start)

    end = int(end_str)
    if end < start:
        return None
    return OffsetRange(start, end - start + 1)


def resolve_span(byte_range: ByteRange, size: int) -> tuple[int, int] | None:
    """Compute the inclusive ``(start, end)`` span a range selects.

    Args:
        byte_range: The requested range.
        size: Total size of the resource in bytes.

    Returns:
        The inclusive span, or None if the range is not satisfiable.
    """
    if isinstance(byte_range, SuffixRange):
        if byte_range.suffix == 0 or size == 0:
            return None
        return (max(size - byte_range.suffix, 0), size - 1)

    if byte_range.offset >= size:
        return None
    if byte_range.length is None:
        return (byte_range.offset, size - 1)
    end = min(byte_range.offset + byte_range.length, size) - 1
    return (byte_range.offset, end)


def format_range_header(byte_range: ByteRange) -> str:
    """Render a range back into ``Range`` header syntax for upstream stores."""
    if isinstance(byte_range, SuffixRange):
        return f"bytes=-{byte_range.suffix}"
    if byte_range.length is None:
        return f"bytes={byte_range.offset}-"
    return f"bytes={byte_range.offset}-{byte_range.offset + byte_range.length - 1}"


# ---------------------------------------------------------------------------
# Dates
# ---------------------------------------------------------------------------


def http_date(dt: datetime) -> str:
    """Format a datetime as an RFC 7231 HTTP date (always GMT)."""
    return email.utils.formatdate(dt.timestamp(), usegmt=True)


def iso8601(dt: datetime) -> str:
    """Format a datetime as an ISO 8601 UTC timestamp with a ``Z`` suffix."""
    return dt.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def parse_http_date(date_str: str | None) -> datetime | None:
    """Parse an HTTP date string into a timezone-aware datetime."""
    if not date_str:
        return None
    try:
        dt = email.utils.parsedate_to_datetime(date_str)
    except (ValueError, TypeError):
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


# ---------------------------------------------------------------------------
# Conditional headers
# ---------------------------------------------------------------------------


def _split_etags(value: str | None) -> list[str] | None:
    if value is None:
        return None
    return [strip_etag_quotes(t) for t in value.split(",") if t.strip()]


def strip_etag_quotes(etag: str) -> str:
    """Strip surrounding double quotes and an optional W/ prefix from an ETag."""
    etag = etag.strip()
    if etag.startswith("W/"):
        etag = etag[2:]
    if etag.startswith('"') and etag.endswith('"') and len(etag) >= 2:
        etag = etag[1:-1]
    return etag


@dataclass(frozen=True)
class Conditions:
    """Conditional request headers, forwarded opaquely to the object store.

    ETag lists are stored unquoted; ``["*"]`` means any entity.
    """

    if_match: list[str] | None = None
    if_none_match: list[str] | None = None
    if_modified_since: datetime | None = None
    if_unmodified_since: datetime | None = None

    @classmethod
    def from_headers(cls, headers: Headers) -> "Conditions | None":
        """Collect If-* headers from a request; None when none are present."""
        conditions = cls(
            if_match=_split_etags(headers.get("if-match")),
            if_none_match=_split_etags(headers.get("if-none-match")),
            if_modified_since=parse_http_date(headers.get("if-modified-since")),
            if_unmodified_since=parse_http_date(headers.get("if-unmodified-since")),
        )
        if conditions.is_empty():
            return None
        return conditions

    def is_empty(self) -> bool:
        return (
            self.if_match is None
            and self.if_none_match is None
            and self.if_modified_since is None
            and self.if_unmodified_since is None
        )
