"""SQLite object store for BucketDAV.

Keeps every object (body and metadata) in a single ``objects`` table, which
makes a single-node deployment one file to back up.

Prefix matching uses ``substr`` rather than ``LIKE`` so keys containing
``%`` or ``_`` need no escaping. Delimiter listing filters out keys that
contain the delimiter after the prefix directly in SQL.
"""

import hashlib
import json
import logging
from datetime import datetime, timezone

import aiosqlite

from bucketdav.storage.backend import (
    Entry,
    ListingPage,
    Metadata,
    ObjectBody,
    check_conditions,
    slice_body,
)
from bucketdav.values import ByteRange, Conditions

logger = logging.getLogger(__name__)

_DEFAULT_PAGE_SIZE = 1000

_CREATE_OBJECTS = """
CREATE TABLE IF NOT EXISTS objects (
    key TEXT PRIMARY KEY,
    body BLOB NOT NULL,
    size INTEGER NOT NULL,
    etag TEXT NOT NULL,
    uploaded_at TEXT NOT NULL,
    content_type TEXT,
    content_disposition TEXT,
    content_language TEXT,
    content_encoding TEXT,
    cache_control TEXT,
    cache_expiry TEXT,
    is_collection INTEGER NOT NULL DEFAULT 0,
    custom_metadata TEXT NOT NULL DEFAULT '{}'
)
"""

_ENTRY_COLUMNS = (
    "key, size, etag, uploaded_at, content_type, content_disposition, "
    "content_language, content_encoding, cache_control, cache_expiry, "
    "is_collection, custom_metadata"
)


def _to_iso(dt: datetime | None) -> str | None:
    return dt.isoformat() if dt is not None else None


def _from_iso(value: str | None) -> datetime | None:
    if not value:
        return None
    return datetime.fromisoformat(value)


def _row_to_entry(row: tuple) -> Entry:
    """Convert a row selected with ``_ENTRY_COLUMNS`` into an Entry."""
    return Entry(
        key=row[0],
        size=row[1],
        etag=row[2],
        uploaded_at=_from_iso(row[3]),
        content_type=row[4],
        content_disposition=row[5],
        content_language=row[6],
        content_encoding=row[7],
        cache_control=row[8],
        cache_expiry=_from_iso(row[9]),
        is_collection=bool(row[10]),
        custom_metadata=json.loads(row[11] or "{}"),
    )


class SQLiteObjectStore:
    """Object store that persists bodies and metadata in SQLite.

    Attributes:
        db_path: Path to the SQLite database file (``:memory:`` allowed).
        page_size: Maximum number of entries returned per listing page.
    """

    def __init__(self, db_path: str, page_size: int = _DEFAULT_PAGE_SIZE) -> None:
        self.db_path = db_path
        self.page_size = page_size
        self._db: aiosqlite.Connection | None = None

    async def init(self) -> None:
        """Open the connection and create the table if it does not exist.

        Configures WAL mode and a 5-second busy timeout.
        """
        db = await aiosqlite.connect(self.db_path)
        self._db = db
        await db.execute("PRAGMA journal_mode=WAL")
        await db.execute("PRAGMA busy_timeout=5000")
        await db.execute(_CREATE_OBJECTS)
        await db.commit()
        logger.info("SQLite object store initialized at %s", self.db_path)

    async def close(self) -> None:
        """Close the SQLite connection."""
        if self._db is not None:
            await self._db.close()
            self._db = None

    def _ensure_db(self) -> aiosqlite.Connection:
        """Return the active database connection or raise."""
        if self._db is None:
            raise RuntimeError("SQLiteObjectStore not initialized, call init() first")
        return self._db

    async def head(self, key: str) -> Entry | None:
        db = self._ensure_db()
        async with db.execute(
            f"SELECT {_ENTRY_COLUMNS} FROM objects WHERE key = ?",
            (key,),
        ) as cursor:
            row = await cursor.fetchone()
        if row is None:
            return None
        return _row_to_entry(row)

    async def get(
        self,
        key: str,
        conditions: Conditions | None = None,
        byte_range: ByteRange | None = None,
    ) -> ObjectBody | Entry | None:
        db = self._ensure_db()
        async with db.execute(
            f"SELECT {_ENTRY_COLUMNS}, body FROM objects WHERE key = ?",
            (key,),
        ) as cursor:
            row = await cursor.fetchone()
        if row is None:
            return None

        entry = _row_to_entry(row)
        if not check_conditions(entry, conditions):
            return entry
        return slice_body(entry, row[12], byte_range)

    async def put(
        self,
        key: str,
        body: bytes,
        metadata: Metadata,
        conditions: Conditions | None = None,
    ) -> Entry | None:
        db = self._ensure_db()
        if conditions is not None:
            current = await self.head(key)
            if not check_conditions(current, conditions):
                return None

        entry = Entry.from_metadata(
            key=key,
            size=len(body),
            etag=hashlib.md5(body).hexdigest(),
            uploaded_at=datetime.now(timezone.utc),
            metadata=metadata,
        )
        await db.execute(
            "INSERT OR REPLACE INTO objects (key, body, size, etag, uploaded_at, "
            "content_type, content_disposition, content_language, content_encoding, "
            "cache_control, cache_expiry, is_collection, custom_metadata) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (
                entry.key,
                bytes(body),
                entry.size,
                entry.etag,
                _to_iso(entry.uploaded_at),
                entry.content_type,
                entry.content_disposition,
                entry.content_language,
                entry.content_encoding,
                entry.cache_control,
                _to_iso(entry.cache_expiry),
                int(entry.is_collection),
                json.dumps(entry.custom_metadata),
            ),
        )
        await db.commit()
        return entry

    async def delete(self, keys: str | list[str]) -> None:
        db = self._ensure_db()
        if isinstance(keys, str):
            keys = [keys]
        if not keys:
            return
        await db.executemany("DELETE FROM objects WHERE key = ?", [(k,) for k in keys])
        await db.commit()

    async def list(
        self,
        prefix: str,
        delimiter: str | None = None,
        cursor: str | None = None,
        limit: int | None = None,
    ) -> ListingPage:
        db = self._ensure_db()
        max_keys = limit or self.page_size

        sql = f"SELECT {_ENTRY_COLUMNS} FROM objects WHERE substr(key, 1, ?) = ?"
        params: list = [len(prefix), prefix]
        if cursor:
            sql += " AND key > ?"
            params.append(cursor)
        if delimiter:
            sql += " AND instr(substr(key, ?), ?) = 0"
            params.extend([len(prefix) + 1, delimiter])
        sql += " ORDER BY key LIMIT ?"
        params.append(max_keys + 1)

        async with db.execute(sql, params) as cur:
            rows = await cur.fetchall()

        truncated = len(rows) > max_keys
        entries = [_row_to_entry(r) for r in rows[:max_keys]]
        return ListingPage(
            entries=entries,
            truncated=truncated,
            cursor=entries[-1].key if truncated else None,
        )
