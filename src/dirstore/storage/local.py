"""Local filesystem storage backend for DirStore.

Objects are stored under ``{root}/{bucket}/{key}``, so the directory tree
mirrors bucket/key hierarchies. Deleting an object never prunes its parent
directories; the destroy pipeline's cleanup sweep does that for the whole
tree.

Crash-only design:
    - Atomic writes via temp-fsync-rename pattern.
    - Startup cleans orphan ``.tmp.`` files left by interrupted writes.
"""

import hashlib
import logging
import os
import shutil
import uuid
from collections.abc import AsyncIterator, Iterable
from pathlib import Path
from typing import BinaryIO

from dirstore.errors import InvalidArgument, KeyPathConflict

logger = logging.getLogger(__name__)

# Streaming chunk size: 64 KB
_CHUNK_SIZE = 64 * 1024


class LocalStorageBackend:
    """Stores object bytes as plain files below a root directory.

    Attributes:
        root: The root directory of the bucket/key tree.
    """

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)

    def object_path(self, bucket: str, key: str) -> Path:
        """Return the filesystem path for a stored object.

        Raises:
            InvalidArgument: If the bucket/key would escape the root.
        """
        if not bucket or not key:
            raise InvalidArgument(f"Invalid object path: {bucket}/{key}")
        path = self.root / bucket / key
        resolved_root = self.root.resolve()
        resolved = path.resolve()
        if resolved == resolved_root or resolved_root not in resolved.parents:
            raise InvalidArgument(f"Invalid object path: {bucket}/{key}")
        return path

    async def init(self) -> None:
        """Create the root directory and clean up orphan temp files."""
        self.root.mkdir(parents=True, exist_ok=True)
        self._clean_temp_files()
        logger.info("Local storage backend initialized at %s", self.root)

    def _clean_temp_files(self) -> None:
        """Remove orphan temp files left by interrupted atomic writes."""
        count = 0
        for dirpath, _dirnames, filenames in os.walk(self.root):
            for fname in filenames:
                if ".tmp." in fname:
                    try:
                        os.unlink(os.path.join(dirpath, fname))
                        count += 1
                    except OSError:
                        logger.warning("Could not remove orphan temp file %s", fname)
        if count > 0:
            logger.info("Cleaned %d orphan temp files on startup", count)

    async def close(self) -> None:
        """No-op for local filesystem backend."""
        pass

    def _write_atomic(self, bucket: str, key: str, chunks: Iterable[bytes]) -> tuple[str, int]:
        """Write chunks to the object's path via temp file, fsync and rename.

        Returns:
            The hex MD5 and the byte count of the written data.

        Raises:
            KeyPathConflict: If an existing key is a file where this key needs
                a directory, or a directory where this key needs a file.
        """
        path = self.object_path(bucket, key)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
        except (FileExistsError, NotADirectoryError) as exc:
            raise KeyPathConflict(bucket, key) from exc
        if path.is_dir():
            raise KeyPathConflict(bucket, key)
        md5 = hashlib.md5()
        size = 0

        tmp = path.with_name(f"{path.name}.tmp.{uuid.uuid4().hex[:8]}")
        try:
            fd = os.open(str(tmp), os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o644)
            try:
                for chunk in chunks:
                    os.write(fd, chunk)
                    md5.update(chunk)
                    size += len(chunk)
                os.fsync(fd)
            finally:
                os.close(fd)
            tmp.rename(path)
        except IsADirectoryError as exc:
            tmp.unlink(missing_ok=True)
            raise KeyPathConflict(bucket, key) from exc
        except Exception:
            tmp.unlink(missing_ok=True)
            raise

        return md5.hexdigest(), size

    async def put_stream(self, bucket: str, key: str, stream: BinaryIO) -> tuple[str, int]:
        """Store an object from a readable binary stream.

        Returns:
            The hex MD5 and size of the stored data.
        """
        chunks = iter(lambda: stream.read(_CHUNK_SIZE), b"")
        return self._write_atomic(bucket, key, chunks)

    async def put_files(self, bucket: str, key: str, sources: list[Path]) -> tuple[str, int]:
        """Concatenate several files into one stored object.

        Returns:
            The hex MD5 and size of the assembled object.
        """

        def _chunks():
            for src in sources:
                with open(src, "rb") as f:
                    while True:
                        chunk = f.read(_CHUNK_SIZE)
                        if not chunk:
                            break
                        yield chunk

        return self._write_atomic(bucket, key, _chunks())

    async def get_stream(self, bucket: str, key: str) -> AsyncIterator[bytes]:
        """Yield an object's bytes in 64 KB chunks."""
        path = self.object_path(bucket, key)
        with open(path, "rb") as f:
            while True:
                chunk = f.read(_CHUNK_SIZE)
                if not chunk:
                    break
                yield chunk

    async def delete(self, bucket: str, key: str) -> None:
        """Delete an object's file. Missing files are ignored."""
        try:
            self.object_path(bucket, key).unlink()
        except FileNotFoundError:
            return

    async def delete_bucket(self, bucket: str) -> None:
        """Remove a bucket directory and every file below it.

        Raises:
            InvalidArgument: If the name does not denote a direct child of root.
        """
        bucket_dir = self.root / bucket
        if not bucket or bucket_dir.resolve().parent != self.root.resolve():
            raise InvalidArgument(f"Invalid bucket path: {bucket}")
        if bucket_dir.is_dir():
            shutil.rmtree(bucket_dir)

    async def copy_object(
        self,
        src_bucket: str,
        src_key: str,
        dst_bucket: str,
        dst_key: str,
    ) -> tuple[str, int]:
        """Copy an object's file to another location.

        Returns:
            The hex MD5 and size of the copied object.
        """
        return await self.put_files(dst_bucket, dst_key, [self.object_path(src_bucket, src_key)])
