"""Object store protocol and data types for BucketDAV.

The store is a flat key -> blob namespace with per-object metadata and
prefix listing. It knows nothing about collections beyond carrying the
``is_collection`` flag as opaque metadata.
"""

from dataclasses import dataclass, field, fields, replace
from datetime import datetime
from typing import Protocol

from bucketdav.values import ByteRange, Conditions, resolve_span


@dataclass
class Metadata:
    """The writable metadata carried with an object."""

    content_type: str | None = None
    content_disposition: str | None = None
    content_language: str | None = None
    content_encoding: str | None = None
    cache_control: str | None = None
    cache_expiry: datetime | None = None
    is_collection: bool = False
    custom_metadata: dict[str, str] = field(default_factory=dict)


@dataclass
class Entry:
    """The store's view of one key."""

    key: str
    size: int
    etag: str
    uploaded_at: datetime
    content_type: str | None = None
    content_disposition: str | None = None
    content_language: str | None = None
    content_encoding: str | None = None
    cache_control: str | None = None
    cache_expiry: datetime | None = None
    is_collection: bool = False
    custom_metadata: dict[str, str] = field(default_factory=dict)

    @property
    def http_etag(self) -> str:
        """The ETag in quoted header form."""
        return f'"{self.etag}"'

    def metadata(self) -> Metadata:
        """Return a copy of this entry's writable metadata."""
        return Metadata(
            content_type=self.content_type,
            content_disposition=self.content_disposition,
            content_language=self.content_language,
            content_encoding=self.content_encoding,
            cache_control=self.cache_control,
            cache_expiry=self.cache_expiry,
            is_collection=self.is_collection,
            custom_metadata=dict(self.custom_metadata),
        )

    @classmethod
    def from_metadata(
        cls,
        key: str,
        size: int,
        etag: str,
        uploaded_at: datetime,
        metadata: Metadata,
    ) -> "Entry":
        return cls(
            key=key,
            size=size,
            etag=etag,
            uploaded_at=uploaded_at,
            content_type=metadata.content_type,
            content_disposition=metadata.content_disposition,
            content_language=metadata.content_language,
            content_encoding=metadata.content_encoding,
            cache_control=metadata.cache_control,
            cache_expiry=metadata.cache_expiry,
            is_collection=metadata.is_collection,
            custom_metadata=dict(metadata.custom_metadata),
        )


@dataclass
class ObjectBody(Entry):
    """An entry together with its (possibly range-sliced) body."""

    body: bytes = b""
    range: ByteRange | None = None


@dataclass
class ListingPage:
    """One page of a prefix listing."""

    entries: list[Entry]
    truncated: bool = False
    cursor: str | None = None


class ObjectStore(Protocol):
    """Protocol every object store backend implements.

    Conditional ``get`` returns the bare :class:`Entry` (no body) when the
    conditions fail; conditional ``put`` returns None in that case.
    """

    async def init(self) -> None:
        """Open connections, create tables, etc."""
        ...

    async def close(self) -> None:
        """Release resources held by the store."""
        ...

    async def head(self, key: str) -> Entry | None:
        """Return the entry at ``key`` without its body, or None."""
        ...

    async def get(
        self,
        key: str,
        conditions: Conditions | None = None,
        byte_range: ByteRange | None = None,
    ) -> ObjectBody | Entry | None:
        """Fetch an entry and its body.

        Args:
            key: The object key.
            conditions: Conditional headers to evaluate against the entry.
            byte_range: Optional range; the body is sliced accordingly.

        Returns:
            ObjectBody on success, the bare Entry if the conditions failed,
            or None if the key does not exist.
        """
        ...

    async def put(
        self,
        key: str,
        body: bytes,
        metadata: Metadata,
        conditions: Conditions | None = None,
    ) -> Entry | None:
        """Store ``body`` at ``key``, replacing any previous object.

        Returns:
            The new entry, or None if the conditions failed.
        """
        ...

    async def delete(self, keys: str | list[str]) -> None:
        """Delete one or many keys. Missing keys are ignored."""
        ...

    async def list(
        self,
        prefix: str,
        delimiter: str | None = None,
        cursor: str | None = None,
        limit: int | None = None,
    ) -> ListingPage:
        """List entries whose key starts with ``prefix``.

        With a delimiter, keys that contain the delimiter after the prefix
        are left out, so only direct children are returned.
        """
        ...


# ---------------------------------------------------------------------------
# Shared helpers for stores that evaluate conditions themselves
# ---------------------------------------------------------------------------


def check_conditions(entry: Entry | None, conditions: Conditions | None) -> bool:
    """Evaluate conditional headers against the current entry.

    Evaluation order follows HTTP/1.1: If-Match, If-Unmodified-Since,
    If-None-Match, If-Modified-Since. Any failing condition makes the whole
    request fail; there is no 304 distinction at this layer.

    Args:
        entry: The current entry, or None if the key does not exist.
        conditions: The request conditions, or None.

    Returns:
        True if all conditions hold.
    """
    if conditions is None:
        return True

    if conditions.if_match is not None:
        if entry is None:
            return False
        if "*" not in conditions.if_match and entry.etag not in conditions.if_match:
            return False

    if conditions.if_unmodified_since is not None and conditions.if_match is None:
        if entry is not None and _truncate(entry.uploaded_at) > conditions.if_unmodified_since:
            return False

    if conditions.if_none_match is not None:
        if entry is not None:
            if "*" in conditions.if_none_match or entry.etag in conditions.if_none_match:
                return False

    if conditions.if_modified_since is not None and conditions.if_none_match is None:
        if entry is not None and _truncate(entry.uploaded_at) <= conditions.if_modified_since:
            return False

    return True


def _truncate(dt: datetime) -> datetime:
    # HTTP dates have one-second resolution
    return dt.replace(microsecond=0)


def slice_body(entry: Entry, data: bytes, byte_range: ByteRange | None) -> ObjectBody:
    """Build an ObjectBody, applying ``byte_range`` to ``data``.

    An unsatisfiable range yields an empty body; the handler reports it.
    """
    if byte_range is not None:
        span = resolve_span(byte_range, len(data))
        data = data[span[0] : span[1] + 1] if span is not None else b""
    values = {f.name: getattr(entry, f.name) for f in fields(Entry)}
    values["custom_metadata"] = dict(entry.custom_metadata)
    return ObjectBody(**values, body=data, range=byte_range)


def copy_entry(entry: Entry) -> Entry:
    """Return a detached copy of an entry (custom metadata included)."""
    return replace(entry, custom_metadata=dict(entry.custom_metadata))
