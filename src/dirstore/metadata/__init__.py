"""Metadata catalog for DirStore buckets and objects."""

from dirstore.metadata.sqlite import SQLiteMetadataStore

__all__ = ["SQLiteMetadataStore"]
