"""Tests for the cursor-following listing iterator."""

from bucketdav.listing import ListingIterator, ListingMode
from bucketdav.storage.backend import Metadata
from bucketdav.storage.memory import MemoryObjectStore


async def _seeded(*keys: str, page_size: int = 2) -> MemoryObjectStore:
    store = MemoryObjectStore(page_size=page_size)
    for key in keys:
        await store.put(key, b"", Metadata())
    return store


class TestListingIterator:
    async def test_recursive_walks_every_page(self):
        store = await _seeded("d/1", "d/2", "d/3", "d/s/4", "d/s/5", "e")
        keys = [e.key async for e in ListingIterator(store, "d/")]
        assert keys == ["d/1", "d/2", "d/3", "d/s/4", "d/s/5"]

    async def test_shallow_lists_direct_children(self):
        store = await _seeded("d/1", "d/2", "d/3", "d/s", "d/s/4", "d/s/5")
        keys = [e.key async for e in ListingIterator(store, "d/", ListingMode.SHALLOW)]
        assert keys == ["d/1", "d/2", "d/3", "d/s"]

    async def test_pages_respect_page_size(self):
        store = await _seeded("d/1", "d/2", "d/3")
        pages = [
            [e.key for e in entries] async for entries in ListingIterator(store, "d/").pages()
        ]
        assert pages == [["d/1", "d/2"], ["d/3"]]

    async def test_limit_overrides_store_page_size(self):
        store = await _seeded("d/1", "d/2", "d/3", page_size=1000)
        pages = [
            len(entries) async for entries in ListingIterator(store, "d/", limit=1).pages()
        ]
        assert pages == [1, 1, 1]

    async def test_advance_returns_none_once_exhausted(self):
        store = await _seeded("d/1")
        listing = ListingIterator(store, "d/")
        assert [e.key for e in await listing.advance()] == ["d/1"]
        assert listing.exhausted
        assert await listing.advance() is None

    async def test_empty_prefix_yields_one_empty_page(self):
        store = await _seeded("a")
        listing = ListingIterator(store, "zzz/")
        assert await listing.advance() == []
        assert await listing.advance() is None

    async def test_cursor_tracks_last_page(self):
        store = await _seeded("d/1", "d/2", "d/3")
        listing = ListingIterator(store, "d/")
        assert listing.cursor is None
        await listing.advance()
        assert listing.cursor == "d/2"
        assert not listing.exhausted

    async def test_deleting_between_pages_skips_nothing_remaining(self):
        store = await _seeded("d/1", "d/2", "d/3", "d/4")
        listing = ListingIterator(store, "d/")
        seen = []
        async for entries in listing.pages():
            seen.extend(e.key for e in entries)
            await store.delete([e.key for e in entries])
        assert seen == ["d/1", "d/2", "d/3", "d/4"]
        assert len(store) == 0
