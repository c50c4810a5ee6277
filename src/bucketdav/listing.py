"""Paginated prefix listing over an object store.

A :class:`ListingIterator` walks every page of a prefix listing by following
the store's cursor. Pages are fetched strictly one after another; callers
that fan out work per page finish a page before asking for the next one.
"""

from collections.abc import AsyncIterator
from enum import Enum

from bucketdav.storage.backend import Entry, ObjectStore

DELIMITER = "/"


class ListingMode(Enum):
    """Whether a listing stops at direct children or covers the subtree."""

    SHALLOW = "shallow"
    RECURSIVE = "recursive"


class ListingIterator:
    """Cursor-following iterator over one prefix listing.

    One instance belongs to one consumer; create a fresh iterator to rescan
    from the start.

    Attributes:
        prefix: Key prefix being listed.
        mode: SHALLOW lists direct children only, RECURSIVE everything.
        cursor: Cursor for the next page, or None before the first page.
        exhausted: True once the last page has been returned.
    """

    def __init__(
        self,
        store: ObjectStore,
        prefix: str,
        mode: ListingMode = ListingMode.RECURSIVE,
        limit: int | None = None,
    ) -> None:
        self.store = store
        self.prefix = prefix
        self.mode = mode
        self.limit = limit
        self.cursor: str | None = None
        self.exhausted = False

    async def advance(self) -> list[Entry] | None:
        """Fetch the next page.

        Returns:
            The entries of the next page (possibly empty), or None once the
            listing is exhausted.
        """
        if self.exhausted:
            return None

        delimiter = DELIMITER if self.mode is ListingMode.SHALLOW else None
        page = await self.store.list(
            self.prefix,
            delimiter=delimiter,
            cursor=self.cursor,
            limit=self.limit,
        )
        if page.truncated and page.cursor:
            self.cursor = page.cursor
        else:
            self.exhausted = True
        return page.entries

    async def pages(self) -> AsyncIterator[list[Entry]]:
        """Yield each page's entries until the listing is exhausted."""
        while True:
            entries = await self.advance()
            if entries is None:
                return
            yield entries

    async def __aiter__(self) -> AsyncIterator[Entry]:
        async for entries in self.pages():
            for entry in entries:
                yield entry
