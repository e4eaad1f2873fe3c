"""Byte storage for DirStore objects."""

from dirstore.storage.local import LocalStorageBackend

__all__ = ["LocalStorageBackend"]
