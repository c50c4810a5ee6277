"""Tests for the SQLite object store."""

from datetime import datetime, timezone

import pytest

from bucketdav.storage.backend import Entry, Metadata, ObjectBody
from bucketdav.storage.sqlite import SQLiteObjectStore
from bucketdav.values import Conditions, OffsetRange, SuffixRange


@pytest.fixture
async def store(tmp_path):
    s = SQLiteObjectStore(str(tmp_path / "objects.db"), page_size=2)
    await s.init()
    yield s
    await s.close()


class TestLifecycle:
    async def test_requires_init(self, tmp_path):
        s = SQLiteObjectStore(str(tmp_path / "x.db"))
        with pytest.raises(RuntimeError, match="not initialized"):
            await s.head("a")

    async def test_close_is_idempotent(self, tmp_path):
        s = SQLiteObjectStore(str(tmp_path / "x.db"))
        await s.init()
        await s.close()
        await s.close()

    async def test_data_survives_reopen(self, tmp_path):
        path = str(tmp_path / "x.db")
        s = SQLiteObjectStore(path)
        await s.init()
        await s.put("a.txt", b"hello", Metadata(content_type="text/plain"))
        await s.close()

        s = SQLiteObjectStore(path)
        await s.init()
        obj = await s.get("a.txt")
        await s.close()
        assert obj.body == b"hello"
        assert obj.content_type == "text/plain"


class TestObjects:
    async def test_put_get_round_trip_metadata(self, store):
        expiry = datetime(2030, 1, 1, tzinfo=timezone.utc)
        meta = Metadata(
            content_type="text/plain",
            content_disposition="notes.txt",
            content_language="en",
            content_encoding="gzip",
            cache_control="no-cache",
            cache_expiry=expiry,
            custom_metadata={"author": "ada"},
        )
        put = await store.put("a.txt", b"hello", meta)
        obj = await store.get("a.txt")
        assert isinstance(obj, ObjectBody)
        assert obj.body == b"hello"
        assert obj.etag == put.etag
        assert obj.content_disposition == "notes.txt"
        assert obj.cache_expiry == expiry
        assert obj.custom_metadata == {"author": "ada"}
        assert obj.uploaded_at == put.uploaded_at

    async def test_head_and_missing(self, store):
        await store.put("docs", b"", Metadata(is_collection=True))
        entry = await store.head("docs")
        assert type(entry) is Entry
        assert entry.is_collection
        assert await store.head("nope") is None
        assert await store.get("nope") is None

    async def test_range(self, store):
        await store.put("a", b"hello world", Metadata())
        assert (await store.get("a", byte_range=OffsetRange(6))).body == b"world"
        assert (await store.get("a", byte_range=SuffixRange(5))).body == b"world"

    async def test_failed_condition_returns_entry(self, store):
        await store.put("a", b"hello", Metadata())
        result = await store.get("a", Conditions(if_none_match=["*"]))
        assert type(result) is Entry

    async def test_conditional_put(self, store):
        first = await store.put("a", b"one", Metadata())
        assert await store.put("a", b"two", Metadata(), Conditions(if_match=["zzz"])) is None
        second = await store.put("a", b"two", Metadata(), Conditions(if_match=[first.etag]))
        assert second is not None
        assert (await store.get("a")).body == b"two"

    async def test_delete(self, store):
        await store.put("a", b"", Metadata())
        await store.put("b", b"", Metadata())
        await store.delete("a")
        await store.delete(["b", "missing"])
        await store.delete([])
        assert (await store.list("")).entries == []


class TestListing:
    @pytest.fixture
    async def seeded(self, store):
        for key in ["a", "a/1", "a/2", "a/sub", "a/sub/x", "a%b", "a_c"]:
            await store.put(key, b"", Metadata())
        return store

    async def _collect(self, store, prefix, delimiter=None):
        keys, cursor = [], None
        while True:
            page = await store.list(prefix, delimiter=delimiter, cursor=cursor)
            keys.extend(e.key for e in page.entries)
            if not page.truncated:
                return keys
            cursor = page.cursor

    async def test_first_page_is_truncated(self, seeded):
        page = await seeded.list("a/")
        assert [e.key for e in page.entries] == ["a/1", "a/2"]
        assert page.truncated
        assert page.cursor == "a/2"

    async def test_recursive(self, seeded):
        assert await self._collect(seeded, "a/") == ["a/1", "a/2", "a/sub", "a/sub/x"]

    async def test_delimiter(self, seeded):
        assert await self._collect(seeded, "a/", "/") == ["a/1", "a/2", "a/sub"]

    async def test_wildcard_characters_are_literal(self, seeded):
        assert await self._collect(seeded, "a%") == ["a%b"]
        assert await self._collect(seeded, "a_") == ["a_c"]

    async def test_root_with_delimiter(self, seeded):
        assert await self._collect(seeded, "", "/") == ["a", "a%b", "a_c"]
