"""SQLite-backed metadata catalog for DirStore.

Holds one row per bucket and one row per object. Object rows cascade with
their bucket. ACLs are stored as JSON text.
"""

import logging
from datetime import datetime, timezone
from typing import Any

import aiosqlite

logger = logging.getLogger(__name__)


def _now_iso() -> str:
    """Return the current UTC time as an ISO 8601 string."""
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.000Z")


class SQLiteMetadataStore:
    """Metadata catalog backed by a local SQLite database.

    Attributes:
        db_path: Path to the SQLite database file.
        _db: The aiosqlite connection, set after init_db().
    """

    def __init__(self, db_path: str) -> None:
        """Initialize the SQLite metadata store.

        Args:
            db_path: Filesystem path to the SQLite database file.
                     Use ':memory:' for an in-memory database (useful in tests).
        """
        self.db_path = db_path
        self._db: aiosqlite.Connection | None = None

    async def init_db(self) -> None:
        """Open the database and create tables if they do not exist.

        Idempotent, safe to call on every startup.
        """
        self._db = await aiosqlite.connect(self.db_path)
        self._db.row_factory = aiosqlite.Row

        await self._db.execute("PRAGMA journal_mode = WAL")
        await self._db.execute("PRAGMA synchronous = NORMAL")
        await self._db.execute("PRAGMA foreign_keys = ON")
        await self._db.execute("PRAGMA busy_timeout = 5000")

        await self._db.executescript("""
            CREATE TABLE IF NOT EXISTS buckets (
                name           TEXT PRIMARY KEY,
                acl            TEXT NOT NULL DEFAULT '{}',
                created_at     TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS objects (
                bucket         TEXT NOT NULL,
                key            TEXT NOT NULL,
                size           INTEGER NOT NULL,
                etag           TEXT NOT NULL,
                content_type   TEXT NOT NULL DEFAULT 'application/octet-stream',
                acl            TEXT NOT NULL DEFAULT '{}',
                last_modified  TEXT NOT NULL,

                PRIMARY KEY (bucket, key),
                FOREIGN KEY (bucket) REFERENCES buckets(name) ON DELETE CASCADE
            );

            CREATE INDEX IF NOT EXISTS idx_objects_bucket
                ON objects(bucket);
        """)
        await self._db.commit()

    async def close(self) -> None:
        """Close the database connection."""
        if self._db is not None:
            await self._db.close()
            self._db = None

    async def ping(self) -> None:
        """Run a trivial query; raises if the connection is unusable."""
        assert self._db is not None
        async with self._db.execute("SELECT 1") as cursor:
            await cursor.fetchone()

    # -- Bucket operations -----------------------------------------------------

    async def create_bucket(self, bucket: str, acl: str = "{}") -> bool:
        """Create a bucket record unless one already exists.

        Returns:
            True if a new row was inserted.
        """
        assert self._db is not None
        cursor = await self._db.execute(
            "INSERT OR IGNORE INTO buckets (name, acl, created_at) VALUES (?, ?, ?)",
            (bucket, acl, _now_iso()),
        )
        await self._db.commit()
        return cursor.rowcount > 0

    async def get_bucket(self, bucket: str) -> dict[str, Any] | None:
        """Retrieve a single bucket row, or None if not found."""
        assert self._db is not None
        async with self._db.execute(
            "SELECT name, acl, created_at FROM buckets WHERE name = ?",
            (bucket,),
        ) as cursor:
            row = await cursor.fetchone()
            if row is None:
                return None
            return dict(row)

    async def list_buckets(self) -> list[dict[str, Any]]:
        """List all buckets ordered by name."""
        assert self._db is not None
        async with self._db.execute(
            "SELECT name, acl, created_at FROM buckets ORDER BY name"
        ) as cursor:
            rows = await cursor.fetchall()
            return [dict(r) for r in rows]

    async def delete_bucket(self, bucket: str) -> None:
        """Delete a bucket row; its object rows go with it."""
        assert self._db is not None
        await self._db.execute("DELETE FROM buckets WHERE name = ?", (bucket,))
        await self._db.commit()

    # -- Object operations -----------------------------------------------------

    async def put_object(
        self,
        bucket: str,
        key: str,
        size: int,
        etag: str,
        content_type: str = "application/octet-stream",
        acl: str = "{}",
    ) -> None:
        """Create or replace an object metadata record.

        Args:
            bucket: The bucket name.
            key: The object key.
            size: Size in bytes.
            etag: The object ETag (quoted MD5 hex).
            content_type: MIME content type.
            acl: JSON-serialized ACL string.
        """
        assert self._db is not None
        try:
            await self._db.execute(
                """INSERT OR REPLACE INTO objects
                   (bucket, key, size, etag, content_type, acl, last_modified)
                   VALUES (?, ?, ?, ?, ?, ?, ?)""",
                (bucket, key, size, etag, content_type, acl, _now_iso()),
            )
            await self._db.commit()
        except aiosqlite.OperationalError:
            logger.exception("SQLite error in put_object %s/%s", bucket, key)
            raise

    async def get_object(self, bucket: str, key: str) -> dict[str, Any] | None:
        """Retrieve a single object row, or None if not found."""
        assert self._db is not None
        async with self._db.execute(
            """SELECT bucket, key, size, etag, content_type, acl, last_modified
               FROM objects
               WHERE bucket = ? AND key = ?""",
            (bucket, key),
        ) as cursor:
            row = await cursor.fetchone()
            if row is None:
                return None
            return dict(row)

    async def delete_object(self, bucket: str, key: str) -> None:
        """Delete an object metadata record."""
        assert self._db is not None
        await self._db.execute("DELETE FROM objects WHERE bucket = ? AND key = ?", (bucket, key))
        await self._db.commit()

    async def update_object_acl(self, bucket: str, key: str, acl: str) -> None:
        """Replace the JSON ACL on an object."""
        assert self._db is not None
        await self._db.execute(
            "UPDATE objects SET acl = ? WHERE bucket = ? AND key = ?",
            (acl, bucket, key),
        )
        await self._db.commit()

    async def list_objects(
        self,
        bucket: str,
        prefix: str = "",
        delimiter: str = "",
        max_keys: int = 1000,
        marker: str = "",
    ) -> dict[str, Any]:
        """List objects in a bucket with optional filtering and pagination.

        Uses application-level CommonPrefixes grouping when a delimiter is
        specified.

        Args:
            bucket: The bucket name.
            prefix: Key prefix filter.
            delimiter: Grouping delimiter.
            max_keys: Maximum number of keys plus prefixes to return.
            marker: Start listing after this key.

        Returns:
            A dict with 'contents', 'common_prefixes', 'is_truncated' and
            'next_marker'.
        """
        assert self._db is not None

        if max_keys <= 0:
            return {
                "contents": [],
                "common_prefixes": [],
                "is_truncated": False,
                "next_marker": None,
            }

        sql_parts = [
            "SELECT key, size, etag, content_type, last_modified FROM objects WHERE bucket = ?"
        ]
        params: list[Any] = [bucket]
        if prefix:
            sql_parts.append("AND substr(key, 1, ?) = ?")
            params.extend([len(prefix), prefix])
        if marker:
            sql_parts.append("AND key > ?")
            params.append(marker)
        sql_parts.append("ORDER BY key")

        async with self._db.execute(" ".join(sql_parts), tuple(params)) as cursor:
            rows = await cursor.fetchall()

        contents: list[dict[str, Any]] = []
        common_prefixes: list[str] = []
        seen_prefixes: set[str] = set()
        rows_consumed = 0

        for row in rows:
            row_key: str = row["key"]

            # A marker that is itself a common prefix skips everything under it
            if delimiter and marker.endswith(delimiter) and row_key.startswith(marker):
                rows_consumed += 1
                continue

            if delimiter:
                suffix = row_key[len(prefix) :]
                delim_pos = suffix.find(delimiter)
                if delim_pos >= 0:
                    cp = prefix + suffix[: delim_pos + len(delimiter)]
                    if cp in seen_prefixes:
                        rows_consumed += 1
                        continue
                    if len(contents) + len(common_prefixes) >= max_keys:
                        break
                    seen_prefixes.add(cp)
                    common_prefixes.append(cp)
                    rows_consumed += 1
                    continue

            if len(contents) + len(common_prefixes) >= max_keys:
                break
            contents.append(dict(row))
            rows_consumed += 1

        is_truncated = rows_consumed < len(rows)
        next_marker: str | None = None
        if is_truncated:
            last_keys = [c["key"] for c in contents[-1:]] + common_prefixes[-1:]
            next_marker = max(last_keys) if last_keys else None

        return {
            "contents": contents,
            "common_prefixes": common_prefixes,
            "is_truncated": is_truncated,
            "next_marker": next_marker,
        }
