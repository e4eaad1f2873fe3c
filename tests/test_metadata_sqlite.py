"""Tests for the SQLite metadata catalog."""

import pytest

from dirstore.metadata.sqlite import SQLiteMetadataStore


@pytest.fixture
async def metadata():
    """Create an in-memory SQLite metadata store."""
    store = SQLiteMetadataStore(":memory:")
    await store.init_db()
    yield store
    await store.close()


async def _put(metadata, bucket, key, size=1):
    await metadata.put_object(
        bucket, key, size=size, etag='"e"', content_type="text/plain", acl="{}"
    )


class TestBuckets:
    async def test_create_and_get(self, metadata):
        assert await metadata.create_bucket("b1", acl='{"x": 1}') is True
        row = await metadata.get_bucket("b1")
        assert row["name"] == "b1"
        assert row["acl"] == '{"x": 1}'
        assert row["created_at"].endswith("Z")

    async def test_create_existing_keeps_first(self, metadata):
        await metadata.create_bucket("b1", acl="first")
        assert await metadata.create_bucket("b1", acl="second") is False
        assert (await metadata.get_bucket("b1"))["acl"] == "first"

    async def test_list_sorted(self, metadata):
        for name in ("zeta", "alpha", "mid"):
            await metadata.create_bucket(name)
        assert [b["name"] for b in await metadata.list_buckets()] == ["alpha", "mid", "zeta"]

    async def test_delete_cascades_objects(self, metadata):
        await metadata.create_bucket("b1")
        await _put(metadata, "b1", "k")
        await metadata.delete_bucket("b1")
        assert await metadata.get_bucket("b1") is None
        assert await metadata.get_object("b1", "k") is None

    async def test_ping(self, metadata):
        await metadata.ping()


class TestObjects:
    async def test_put_get(self, metadata):
        await metadata.create_bucket("b1")
        await _put(metadata, "b1", "dir/k", size=42)
        row = await metadata.get_object("b1", "dir/k")
        assert row["size"] == 42
        assert row["content_type"] == "text/plain"

    async def test_put_replaces(self, metadata):
        await metadata.create_bucket("b1")
        await _put(metadata, "b1", "k", size=1)
        await _put(metadata, "b1", "k", size=2)
        assert (await metadata.get_object("b1", "k"))["size"] == 2
        assert [c["key"] for c in (await metadata.list_objects("b1"))["contents"]] == ["k"]

    async def test_delete_missing(self, metadata):
        await metadata.delete_object("b1", "missing")

    async def test_update_acl(self, metadata):
        await metadata.create_bucket("b1")
        await _put(metadata, "b1", "k")
        await metadata.update_object_acl("b1", "k", "new")
        assert (await metadata.get_object("b1", "k"))["acl"] == "new"


class TestListObjects:
    @pytest.fixture
    async def populated(self, metadata):
        await metadata.create_bucket("b1")
        for key in ("a", "dir/x", "dir/y", "dir/sub/z", "e"):
            await _put(metadata, "b1", key)
        return metadata

    async def test_all(self, populated):
        result = await populated.list_objects("b1")
        assert [c["key"] for c in result["contents"]] == ["a", "dir/sub/z", "dir/x", "dir/y", "e"]
        assert result["is_truncated"] is False

    async def test_delimiter_groups(self, populated):
        result = await populated.list_objects("b1", delimiter="/")
        assert [c["key"] for c in result["contents"]] == ["a", "e"]
        assert result["common_prefixes"] == ["dir/"]

    async def test_prefix_and_delimiter(self, populated):
        result = await populated.list_objects("b1", prefix="dir/", delimiter="/")
        assert [c["key"] for c in result["contents"]] == ["dir/x", "dir/y"]
        assert result["common_prefixes"] == ["dir/sub/"]

    async def test_marker_on_common_prefix_skips_it(self, populated):
        result = await populated.list_objects("b1", delimiter="/", marker="dir/")
        assert [c["key"] for c in result["contents"]] == ["e"]
        assert result["common_prefixes"] == []

    async def test_truncation(self, populated):
        result = await populated.list_objects("b1", max_keys=2)
        assert result["is_truncated"] is True
        assert result["next_marker"] == "dir/sub/z"

    async def test_zero_max_keys(self, populated):
        result = await populated.list_objects("b1", max_keys=0)
        assert result["contents"] == []
        assert result["is_truncated"] is False
