"""Tests for the in-memory object store and the shared condition checks."""

import hashlib
from datetime import datetime, timedelta, timezone

from bucketdav.storage.backend import (
    Entry,
    Metadata,
    ObjectBody,
    check_conditions,
)
from bucketdav.storage.memory import MemoryObjectStore
from bucketdav.values import Conditions, OffsetRange, SuffixRange


async def _store(page_size: int = 1000) -> MemoryObjectStore:
    store = MemoryObjectStore(page_size=page_size)
    await store.init()
    return store


class TestPutGet:
    async def test_put_returns_entry_with_md5_etag(self):
        store = await _store()
        entry = await store.put("a.txt", b"hello", Metadata(content_type="text/plain"))
        assert entry.key == "a.txt"
        assert entry.size == 5
        assert entry.etag == hashlib.md5(b"hello").hexdigest()
        assert entry.content_type == "text/plain"
        assert entry.uploaded_at.tzinfo is not None

    async def test_get_returns_body_and_metadata(self):
        store = await _store()
        await store.put("a.txt", b"hello", Metadata(content_language="en"))
        obj = await store.get("a.txt")
        assert isinstance(obj, ObjectBody)
        assert obj.body == b"hello"
        assert obj.content_language == "en"
        assert obj.range is None

    async def test_get_missing(self):
        store = await _store()
        assert await store.get("missing") is None
        assert await store.head("missing") is None

    async def test_head_has_no_body(self):
        store = await _store()
        await store.put("a.txt", b"hello", Metadata())
        entry = await store.head("a.txt")
        assert type(entry) is Entry
        assert entry.size == 5

    async def test_returned_entries_are_detached(self):
        store = await _store()
        await store.put("a.txt", b"x", Metadata(custom_metadata={"k": "v"}))
        entry = await store.head("a.txt")
        entry.custom_metadata["k"] = "changed"
        assert (await store.head("a.txt")).custom_metadata == {"k": "v"}

    async def test_overwrite_replaces(self):
        store = await _store()
        await store.put("a.txt", b"one", Metadata())
        await store.put("a.txt", b"two", Metadata())
        assert (await store.get("a.txt")).body == b"two"
        assert len(store) == 1

    async def test_collection_flag_round_trips(self):
        store = await _store()
        await store.put("docs", b"", Metadata(is_collection=True))
        assert (await store.head("docs")).is_collection


class TestRanges:
    async def test_offset_range(self):
        store = await _store()
        await store.put("a", b"hello world", Metadata())
        obj = await store.get("a", byte_range=OffsetRange(0, 5))
        assert obj.body == b"hello"
        assert obj.size == 11
        assert obj.range == OffsetRange(0, 5)

    async def test_suffix_range(self):
        store = await _store()
        await store.put("a", b"hello world", Metadata())
        obj = await store.get("a", byte_range=SuffixRange(5))
        assert obj.body == b"world"

    async def test_unsatisfiable_range_gives_empty_body(self):
        store = await _store()
        await store.put("a", b"hello", Metadata())
        obj = await store.get("a", byte_range=OffsetRange(10))
        assert isinstance(obj, ObjectBody)
        assert obj.body == b""


class TestConditionalStoreCalls:
    async def test_get_with_failing_condition_returns_bare_entry(self):
        store = await _store()
        await store.put("a", b"hello", Metadata())
        result = await store.get("a", Conditions(if_match=["nope"]))
        assert type(result) is Entry

    async def test_get_with_matching_etag(self):
        store = await _store()
        entry = await store.put("a", b"hello", Metadata())
        result = await store.get("a", Conditions(if_match=[entry.etag]))
        assert isinstance(result, ObjectBody)

    async def test_put_if_none_match_star_refuses_overwrite(self):
        store = await _store()
        await store.put("a", b"one", Metadata())
        assert await store.put("a", b"two", Metadata(), Conditions(if_none_match=["*"])) is None
        assert (await store.get("a")).body == b"one"

    async def test_put_if_none_match_star_creates(self):
        store = await _store()
        entry = await store.put("a", b"one", Metadata(), Conditions(if_none_match=["*"]))
        assert entry is not None


class TestCheckConditions:
    def _entry(self, **kwargs) -> Entry:
        defaults = dict(
            key="a",
            size=1,
            etag="abc",
            uploaded_at=datetime(2024, 1, 2, 3, 4, 5, 500, tzinfo=timezone.utc),
        )
        defaults.update(kwargs)
        return Entry(**defaults)

    def test_no_conditions(self):
        assert check_conditions(None, None)
        assert check_conditions(self._entry(), None)

    def test_if_match(self):
        assert check_conditions(self._entry(), Conditions(if_match=["abc"]))
        assert check_conditions(self._entry(), Conditions(if_match=["*"]))
        assert not check_conditions(self._entry(), Conditions(if_match=["xyz"]))
        assert not check_conditions(None, Conditions(if_match=["*"]))

    def test_if_none_match(self):
        assert not check_conditions(self._entry(), Conditions(if_none_match=["abc"]))
        assert not check_conditions(self._entry(), Conditions(if_none_match=["*"]))
        assert check_conditions(self._entry(), Conditions(if_none_match=["xyz"]))
        assert check_conditions(None, Conditions(if_none_match=["*"]))

    def test_if_modified_since_uses_second_resolution(self):
        entry = self._entry()
        same_second = entry.uploaded_at.replace(microsecond=0)
        assert not check_conditions(entry, Conditions(if_modified_since=same_second))
        earlier = same_second - timedelta(seconds=1)
        assert check_conditions(entry, Conditions(if_modified_since=earlier))

    def test_if_unmodified_since(self):
        entry = self._entry()
        same_second = entry.uploaded_at.replace(microsecond=0)
        assert check_conditions(entry, Conditions(if_unmodified_since=same_second))
        earlier = same_second - timedelta(seconds=1)
        assert not check_conditions(entry, Conditions(if_unmodified_since=earlier))


class TestListing:
    async def _seeded(self, page_size: int = 1000) -> MemoryObjectStore:
        store = await _store(page_size)
        for key in ["a", "a/1", "a/2", "a/sub", "a/sub/x", "b", "ab"]:
            await store.put(key, b"", Metadata())
        return store

    async def test_recursive_prefix(self):
        store = await self._seeded()
        page = await store.list("a/")
        assert [e.key for e in page.entries] == ["a/1", "a/2", "a/sub", "a/sub/x"]
        assert not page.truncated
        assert page.cursor is None

    async def test_delimiter_keeps_direct_children(self):
        store = await self._seeded()
        page = await store.list("a/", delimiter="/")
        assert [e.key for e in page.entries] == ["a/1", "a/2", "a/sub"]

    async def test_root_with_delimiter(self):
        store = await self._seeded()
        page = await store.list("", delimiter="/")
        assert [e.key for e in page.entries] == ["a", "ab", "b"]

    async def test_pagination_with_cursor(self):
        store = await self._seeded(page_size=2)
        first = await store.list("a/")
        assert [e.key for e in first.entries] == ["a/1", "a/2"]
        assert first.truncated
        second = await store.list("a/", cursor=first.cursor)
        assert [e.key for e in second.entries] == ["a/sub", "a/sub/x"]
        assert not second.truncated

    async def test_limit_overrides_page_size(self):
        store = await self._seeded()
        page = await store.list("", limit=1)
        assert len(page.entries) == 1
        assert page.truncated

    async def test_delete_many_ignores_missing(self):
        store = await self._seeded()
        await store.delete(["a/1", "a/2", "nope"])
        await store.delete("b")
        assert store.keys() == ["a", "a/sub", "a/sub/x", "ab"]
