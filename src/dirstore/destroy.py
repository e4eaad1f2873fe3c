"""Execution of destroy-class actions and the storage tree cleanup sweep.

Every destroy handler is idempotent: a missing bucket, object or multipart
session counts as already deleted. After the handler runs, the whole storage
root is swept until it holds no empty directory.
"""

import logging
import os
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any

from dirstore import metrics
from dirstore.errors import UnrecognizedAction
from dirstore.multipart import MultipartSessionManager
from dirstore.routing.actions import (
    Action,
    ActionTag,
    MultipartAbortion,
    RmBucket,
    RmObject,
)
from dirstore.store import ObjectStore

logger = logging.getLogger(__name__)


def find_empty_directories(root: Path) -> list[Path]:
    """Return every directory strictly below ``root`` that has no entries.

    Symlinks are never reported. A directory that vanishes mid-scan is
    skipped.
    """
    empty: list[Path] = []
    for dirpath, dirnames, _filenames in os.walk(root):
        for name in dirnames:
            path = Path(dirpath) / name
            if path.is_symlink():
                continue
            try:
                if not any(path.iterdir()):
                    empty.append(path)
            except FileNotFoundError:
                continue
    return empty


def remove_empty_directories(root: Path, max_passes: int = 0) -> list[Path]:
    """Remove empty directories below ``root`` until none remain.

    Removing a directory can leave its parent empty, so the scan repeats
    until it comes back clean. The loop also stops when a pass removes
    nothing (every removal raced or failed) or after ``max_passes`` passes
    when that is non-zero. ``root`` itself is kept.

    Returns:
        The removed directories, in removal order.
    """
    removed: list[Path] = []
    passes = 0

    while True:
        if max_passes and passes >= max_passes:
            logger.warning("Cleanup of %s stopped after %d passes", root, passes)
            break

        empty = find_empty_directories(root)
        if not empty:
            break
        passes += 1

        removed_this_pass = 0
        for directory in empty:
            try:
                directory.rmdir()
            except FileNotFoundError:
                continue
            except OSError as exc:
                # Refilled by a concurrent write, or not removable
                logger.warning("Could not remove empty directory %s: %s", directory, exc)
                continue
            removed.append(directory)
            removed_this_pass += 1

        if removed_this_pass == 0:
            break

    if removed:
        logger.debug("Removed %d empty directories in %d passes", len(removed), passes)
        if metrics.empty_dirs_removed_total is not None:
            metrics.empty_dirs_removed_total.inc(len(removed))
    return removed


class DestroyExecutor:
    """Runs RmBucket, RmObject and MultipartAbortion actions.

    Attributes:
        store: Bucket/object records to destroy.
        sessions: Multipart session directories to tear down.
        max_cleanup_passes: Bound on cleanup sweep passes (0 = unbounded).
    """

    def __init__(
        self,
        store: ObjectStore,
        sessions: MultipartSessionManager,
        max_cleanup_passes: int = 0,
    ) -> None:
        self.store = store
        self.sessions = sessions
        self.max_cleanup_passes = max_cleanup_passes
        self._handlers: dict[ActionTag, Callable[[Any], Awaitable[None]]] = {
            ActionTag.RM_BUCKET: self._rm_bucket,
            ActionTag.RM_OBJECT: self._rm_object,
            ActionTag.MULTIPART_ABORTION: self._multipart_abortion,
        }

    @property
    def handled_tags(self) -> frozenset[ActionTag]:
        return frozenset(self._handlers)

    async def execute(self, action: Action) -> list[Path]:
        """Run a destroy action, then sweep empty directories.

        Returns:
            The directories removed by the sweep.

        Raises:
            UnrecognizedAction: If the action is not a destroy action.
        """
        tag = getattr(action, "tag", None)
        handler = self._handlers.get(tag) if isinstance(tag, ActionTag) else None
        if handler is None:
            raise UnrecognizedAction(tag)

        await handler(action)
        return remove_empty_directories(self.store.root, self.max_cleanup_passes)

    async def _rm_bucket(self, action: RmBucket) -> None:
        bucket = await self.store.find_bucket(action.bucket)
        if bucket is not None:
            await bucket.destroy()

    async def _rm_object(self, action: RmObject) -> None:
        obj = await self.store.find_object(action.uri)
        if obj is not None:
            await obj.destroy()

    # http://docs.aws.amazon.com/AmazonS3/latest/API/mpUploadAbort.html
    async def _multipart_abortion(self, action: MultipartAbortion) -> None:
        obj = await self.store.find_object(action.uri)
        if obj is not None:
            await obj.destroy()
        if self.sessions.teardown(action.upload_id) and metrics.multipart_aborts_total is not None:
            metrics.multipart_aborts_total.inc()
