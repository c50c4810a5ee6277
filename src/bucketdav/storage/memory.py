"""In-memory object store for BucketDAV.

Holds every object in a dictionary keyed by object key. Listing sorts the
keys and pages through them with the last returned key as the cursor
(start-after semantics), so pagination is stable for a given snapshot and
tolerates keys being deleted between pages.

Nothing survives a restart; use the SQLite or S3 backend for durable data.
"""

import hashlib
import logging
from datetime import datetime, timezone

from bucketdav.storage.backend import (
    Entry,
    ListingPage,
    Metadata,
    ObjectBody,
    check_conditions,
    copy_entry,
    slice_body,
)
from bucketdav.values import ByteRange, Conditions

logger = logging.getLogger(__name__)

_DEFAULT_PAGE_SIZE = 1000


class MemoryObjectStore:
    """Object store that keeps entries and bodies in memory.

    Attributes:
        page_size: Maximum number of entries returned per listing page.
    """

    def __init__(self, page_size: int = _DEFAULT_PAGE_SIZE) -> None:
        """Initialize the memory store.

        Args:
            page_size: Entries per listing page. Small values are useful in
                tests to exercise cursor-following.
        """
        self.page_size = page_size
        # key -> (entry, body)
        self._objects: dict[str, tuple[Entry, bytes]] = {}

    async def init(self) -> None:
        logger.info("Memory object store initialized (page_size=%d)", self.page_size)

    async def close(self) -> None:
        pass

    def __len__(self) -> int:
        return len(self._objects)

    def keys(self) -> list[str]:
        """Return all stored keys in sorted order."""
        return sorted(self._objects)

    async def head(self, key: str) -> Entry | None:
        stored = self._objects.get(key)
        if stored is None:
            return None
        return copy_entry(stored[0])

    async def get(
        self,
        key: str,
        conditions: Conditions | None = None,
        byte_range: ByteRange | None = None,
    ) -> ObjectBody | Entry | None:
        stored = self._objects.get(key)
        if stored is None:
            return None
        entry, data = stored
        if not check_conditions(entry, conditions):
            return copy_entry(entry)
        return slice_body(entry, data, byte_range)

    async def put(
        self,
        key: str,
        body: bytes,
        metadata: Metadata,
        conditions: Conditions | None = None,
    ) -> Entry | None:
        current = self._objects.get(key)
        if not check_conditions(current[0] if current else None, conditions):
            return None

        entry = Entry.from_metadata(
            key=key,
            size=len(body),
            etag=hashlib.md5(body).hexdigest(),
            uploaded_at=datetime.now(timezone.utc),
            metadata=metadata,
        )
        self._objects[key] = (entry, bytes(body))
        return copy_entry(entry)

    async def delete(self, keys: str | list[str]) -> None:
        if isinstance(keys, str):
            keys = [keys]
        for key in keys:
            self._objects.pop(key, None)

    async def list(
        self,
        prefix: str,
        delimiter: str | None = None,
        cursor: str | None = None,
        limit: int | None = None,
    ) -> ListingPage:
        max_keys = limit or self.page_size

        candidates = sorted(k for k in self._objects if k.startswith(prefix))
        if cursor:
            candidates = [k for k in candidates if k > cursor]
        if delimiter:
            candidates = [k for k in candidates if delimiter not in k[len(prefix) :]]

        selected = candidates[:max_keys]
        truncated = len(candidates) > max_keys
        return ListingPage(
            entries=[copy_entry(self._objects[k][0]) for k in selected],
            truncated=truncated,
            cursor=selected[-1] if truncated else None,
        )
