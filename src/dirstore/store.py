"""Bucket and object records over the metadata catalog and file storage.

``ObjectStore`` is the one place that keeps SQLite rows and files in step.
Lookups return ``None`` for a missing target; records destroy themselves.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, BinaryIO

from dirstore.errors import NoSuchBucket, NoSuchKey
from dirstore.metadata.sqlite import SQLiteMetadataStore
from dirstore.routing.paths import bucket_of, key_of
from dirstore.storage.local import LocalStorageBackend

logger = logging.getLogger(__name__)


@dataclass
class Bucket:
    """A bucket record."""

    name: str
    created_at: str = ""
    acl: str = "{}"
    _store: "ObjectStore | None" = field(default=None, repr=False, compare=False)

    async def destroy(self) -> None:
        """Remove the bucket together with all of its objects."""
        assert self._store is not None
        await self._store.storage.delete_bucket(self.name)
        await self._store.metadata.delete_bucket(self.name)
        logger.info("Destroyed bucket %s", self.name)


@dataclass
class StoredObject:
    """An object record: identity plus the catalog attributes."""

    bucket: str
    key: str
    size: int = 0
    etag: str = ""
    content_type: str = "application/octet-stream"
    acl: str = "{}"
    last_modified: str = ""
    _store: "ObjectStore | None" = field(default=None, repr=False, compare=False)

    @property
    def uri(self) -> str:
        return f"{self.bucket}/{self.key}"

    async def destroy(self) -> None:
        """Remove the object's file and its catalog row.

        Emptied parent directories are left for the cleanup sweep.
        """
        assert self._store is not None
        await self._store.storage.delete(self.bucket, self.key)
        await self._store.metadata.delete_object(self.bucket, self.key)
        logger.info("Destroyed object %s", self.uri)


class ObjectStore:
    """Facade over ``SQLiteMetadataStore`` and ``LocalStorageBackend``.

    Attributes:
        metadata: The SQLite catalog of buckets and objects.
        storage: The file backend holding object bytes.
    """

    def __init__(self, metadata: SQLiteMetadataStore, storage: LocalStorageBackend) -> None:
        self.metadata = metadata
        self.storage = storage

    @property
    def root(self) -> Path:
        """Root of the bucket/key directory tree."""
        return self.storage.root

    async def init(self) -> None:
        await self.metadata.init_db()
        await self.storage.init()

    async def close(self) -> None:
        await self.storage.close()
        await self.metadata.close()

    def _bucket(self, row: dict[str, Any]) -> Bucket:
        return Bucket(name=row["name"], created_at=row["created_at"], acl=row["acl"], _store=self)

    def _object(self, row: dict[str, Any]) -> StoredObject:
        return StoredObject(
            bucket=row["bucket"],
            key=row["key"],
            size=row["size"],
            etag=row["etag"],
            content_type=row["content_type"],
            acl=row["acl"],
            last_modified=row["last_modified"],
            _store=self,
        )

    # -- Lookups ---------------------------------------------------------------

    async def find_bucket(self, name: str) -> Bucket | None:
        row = await self.metadata.get_bucket(name)
        return self._bucket(row) if row is not None else None

    async def find_object(self, uri: str) -> StoredObject | None:
        bucket, key = bucket_of(uri), key_of(uri)
        if not bucket or not key:
            return None
        row = await self.metadata.get_object(bucket, key)
        return self._object(row) if row is not None else None

    async def get_object(self, uri: str) -> StoredObject:
        """Like ``find_object`` but raises NoSuchKey for a missing object."""
        obj = await self.find_object(uri)
        if obj is None:
            raise NoSuchKey(key_of(uri))
        return obj

    async def require_bucket(self, name: str) -> Bucket:
        bucket = await self.find_bucket(name)
        if bucket is None:
            raise NoSuchBucket(name)
        return bucket

    async def list_buckets(self) -> list[Bucket]:
        return [self._bucket(row) for row in await self.metadata.list_buckets()]

    async def list_objects(self, bucket: str, **kwargs: Any) -> dict[str, Any]:
        await self.require_bucket(bucket)
        return await self.metadata.list_objects(bucket, **kwargs)

    # -- Writes ----------------------------------------------------------------

    async def create_bucket(self, name: str, acl: str = "{}") -> bool:
        """Create a bucket record. Returns False if it already existed."""
        created = await self.metadata.create_bucket(name, acl=acl)
        if created:
            logger.info("Created bucket %s", name)
        return created

    async def _record(
        self, bucket: str, key: str, etag: str, size: int, content_type: str, acl: str
    ) -> StoredObject:
        await self.metadata.put_object(
            bucket, key, size=size, etag=etag, content_type=content_type, acl=acl
        )
        row = await self.metadata.get_object(bucket, key)
        assert row is not None
        return self._object(row)

    async def put_object(
        self, uri: str, stream: BinaryIO, content_type: str, acl: str = "{}"
    ) -> StoredObject:
        """Store a stream's bytes at ``uri``.

        Raises:
            NoSuchBucket: If the uri's bucket does not exist.
        """
        bucket, key = bucket_of(uri), key_of(uri)
        await self.require_bucket(bucket)
        md5, size = await self.storage.put_stream(bucket, key, stream)
        return await self._record(bucket, key, f'"{md5}"', size, content_type, acl)

    async def assemble_object(
        self,
        uri: str,
        parts: list[Path],
        etag: str,
        content_type: str,
        acl: str = "{}",
    ) -> StoredObject:
        """Concatenate part files into the object at ``uri``."""
        bucket, key = bucket_of(uri), key_of(uri)
        await self.require_bucket(bucket)
        _md5, size = await self.storage.put_files(bucket, key, parts)
        return await self._record(bucket, key, etag, size, content_type, acl)

    async def copy_object(self, src_uri: str, dest_uri: str, acl: str = "{}") -> StoredObject:
        """Copy the object at ``src_uri`` to ``dest_uri``.

        Raises:
            NoSuchKey: If the source object does not exist.
            NoSuchBucket: If the destination bucket does not exist.
        """
        src = await self.get_object(src_uri)
        bucket, key = bucket_of(dest_uri), key_of(dest_uri)
        await self.require_bucket(bucket)
        md5, size = await self.storage.copy_object(src.bucket, src.key, bucket, key)
        return await self._record(bucket, key, f'"{md5}"', size, src.content_type, acl)

    async def set_object_acl(self, obj: StoredObject, acl: str) -> None:
        await self.metadata.update_object_acl(obj.bucket, obj.key, acl)

    def open_stream(self, obj: StoredObject):
        """Return an async iterator over the object's bytes."""
        return self.storage.get_stream(obj.bucket, obj.key)
