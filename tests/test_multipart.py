"""Tests for multipart upload sessions.

Covers the on-disk session manager and the full HTTP lifecycle:
    - Initialization (POST ?uploads)
    - Part upload (PUT ?partNumber&uploadId)
    - Completion (POST ?uploadId)
    - Abortion (DELETE ?uploadId)

Initialization and completion are only recognized when the path has a
bucket plus at least two key segments.
"""

import binascii
import hashlib
import xml.etree.ElementTree as ET
from io import BytesIO

from httpx import AsyncClient

from dirstore.handlers.multipart import composite_etag
from dirstore.multipart import MultipartSessionManager

NS = "{http://s3.amazonaws.com/doc/2006-03-01/}"
KEY_PATH = "/mp-bucket/dir/big.bin"


class TestSessionManager:
    def test_session_dir_layout(self, tmp_path):
        sessions = MultipartSessionManager(tmp_path)
        assert sessions.session_dir("abc") == tmp_path / "multiparts" / "s3o_abc"

    def test_create_and_read(self, sessions):
        upload_id = sessions.create("b/k", "text/plain")
        assert sessions.exists(upload_id)
        assert sessions.read_session(upload_id) == {"uri": "b/k", "content_type": "text/plain"}

    def test_read_unknown_session(self, sessions):
        assert sessions.read_session("missing") is None

    def test_write_part_returns_md5(self, sessions):
        upload_id = sessions.create("b/k", "text/plain")
        md5 = sessions.write_part(upload_id, 1, BytesIO(b"hello"))
        assert md5 == hashlib.md5(b"hello").hexdigest()
        assert sessions.part_md5(sessions.parts(upload_id)[1]) == md5

    def test_rewrite_part_replaces(self, sessions):
        upload_id = sessions.create("b/k", "text/plain")
        sessions.write_part(upload_id, 2, BytesIO(b"first"))
        sessions.write_part(upload_id, 2, BytesIO(b"second"))
        parts = sessions.parts(upload_id)
        assert list(parts) == [2]
        assert parts[2].read_bytes() == b"second"

    def test_teardown_removes_everything(self, sessions):
        upload_id = sessions.create("b/k", "text/plain")
        sessions.write_part(upload_id, 1, BytesIO(b"x"))
        assert sessions.teardown(upload_id) is True
        assert not sessions.session_dir(upload_id).exists()

    def test_teardown_missing_is_not_an_error(self, sessions):
        assert sessions.teardown("never-existed") is False

    def test_teardown_twice(self, sessions):
        upload_id = sessions.create("b/k", "text/plain")
        assert sessions.teardown(upload_id) is True
        assert sessions.teardown(upload_id) is False

    def test_traversal_ids_are_rejected(self, sessions, tmp_path):
        victim = tmp_path / "tmp" / "victim"
        victim.mkdir(parents=True)
        assert sessions.teardown("../../victim") is False
        assert sessions.read_session("../victim") is None
        assert victim.is_dir()


def test_composite_etag():
    md5s = [hashlib.md5(b"a").hexdigest(), hashlib.md5(b"b").hexdigest()]
    expected = hashlib.md5(b"".join(binascii.unhexlify(m) for m in md5s)).hexdigest()
    assert composite_etag(md5s) == f'"{expected}-2"'


async def _initiate(client: AsyncClient, path: str = KEY_PATH) -> str:
    resp = await client.post(f"{path}?uploads", headers={"Content-Type": "application/x-test"})
    assert resp.status_code == 200
    root = ET.fromstring(resp.text)
    return root.find(f"{NS}UploadId").text


async def _upload_part(client: AsyncClient, upload_id: str, number: int, data: bytes) -> str:
    resp = await client.put(f"{KEY_PATH}?partNumber={number}&uploadId={upload_id}", content=data)
    assert resp.status_code == 200
    return resp.headers["etag"]


def _complete_body(numbers: list[int]) -> str:
    parts = "".join(f"<Part><PartNumber>{n}</PartNumber></Part>" for n in numbers)
    return f"<CompleteMultipartUpload>{parts}</CompleteMultipartUpload>"


class TestMultipartHTTP:
    async def test_initiate_requires_bucket(self, client):
        resp = await client.post(f"{KEY_PATH}?uploads")
        assert resp.status_code == 404
        assert "<Code>NoSuchBucket</Code>" in resp.text

    async def test_initiate_creates_session(self, client, sessions):
        await client.put("/mp-bucket")
        upload_id = await _initiate(client)
        assert sessions.read_session(upload_id) == {
            "uri": "mp-bucket/dir/big.bin",
            "content_type": "application/x-test",
        }

    async def test_full_lifecycle(self, client, sessions):
        await client.put("/mp-bucket")
        upload_id = await _initiate(client)
        part1 = b"a" * 1024
        part2 = b"b" * 10
        etag1 = await _upload_part(client, upload_id, 1, part1)
        etag2 = await _upload_part(client, upload_id, 2, part2)
        assert etag1 == f'"{hashlib.md5(part1).hexdigest()}"'

        resp = await client.post(f"{KEY_PATH}?uploadId={upload_id}", content=_complete_body([1, 2]))
        assert resp.status_code == 200
        root = ET.fromstring(resp.text)
        assert root.find(f"{NS}Key").text == "dir/big.bin"
        assert root.find(f"{NS}Location").text == "/mp-bucket/dir/big.bin"
        assert root.find(f"{NS}ETag").text == composite_etag([etag1.strip('"'), etag2.strip('"')])
        assert not sessions.session_dir(upload_id).exists()

        get = await client.get(KEY_PATH)
        assert get.status_code == 200
        assert get.content == part1 + part2
        assert get.headers["content-type"].startswith("application/x-test")

    async def test_complete_with_empty_body_uses_all_parts(self, client):
        await client.put("/mp-bucket")
        upload_id = await _initiate(client)
        await _upload_part(client, upload_id, 2, b"second")
        await _upload_part(client, upload_id, 1, b"first-")

        resp = await client.post(f"{KEY_PATH}?uploadId={upload_id}")
        assert resp.status_code == 200

        get = await client.get(KEY_PATH)
        assert get.content == b"first-second"

    async def test_complete_subset_of_parts(self, client):
        await client.put("/mp-bucket")
        upload_id = await _initiate(client)
        await _upload_part(client, upload_id, 1, b"one")
        await _upload_part(client, upload_id, 2, b"two")
        await _upload_part(client, upload_id, 3, b"three")

        resp = await client.post(f"{KEY_PATH}?uploadId={upload_id}", content=_complete_body([1, 3]))
        assert resp.status_code == 200
        assert (await client.get(KEY_PATH)).content == b"onethree"

    async def test_complete_missing_part(self, client):
        await client.put("/mp-bucket")
        upload_id = await _initiate(client)
        await _upload_part(client, upload_id, 1, b"one")

        resp = await client.post(f"{KEY_PATH}?uploadId={upload_id}", content=_complete_body([1, 2]))
        assert resp.status_code == 400
        assert "<Code>InvalidPart</Code>" in resp.text

    async def test_complete_out_of_order(self, client):
        await client.put("/mp-bucket")
        upload_id = await _initiate(client)
        await _upload_part(client, upload_id, 1, b"one")
        await _upload_part(client, upload_id, 2, b"two")

        resp = await client.post(f"{KEY_PATH}?uploadId={upload_id}", content=_complete_body([2, 1]))
        assert resp.status_code == 400
        assert "<Code>InvalidPartOrder</Code>" in resp.text

    async def test_complete_without_parts(self, client):
        await client.put("/mp-bucket")
        upload_id = await _initiate(client)
        resp = await client.post(f"{KEY_PATH}?uploadId={upload_id}")
        assert resp.status_code == 400
        assert "<Code>MalformedXML</Code>" in resp.text

    async def test_complete_unknown_upload(self, client):
        await client.put("/mp-bucket")
        resp = await client.post(f"{KEY_PATH}?uploadId=deadbeef", content=_complete_body([1]))
        assert resp.status_code == 404
        assert "<Code>NoSuchUpload</Code>" in resp.text

    async def test_part_for_other_key_rejected(self, client):
        await client.put("/mp-bucket")
        upload_id = await _initiate(client)
        resp = await client.put(f"/mp-bucket/other?partNumber=1&uploadId={upload_id}", content=b"x")
        assert resp.status_code == 404

    async def test_part_number_out_of_range(self, client):
        await client.put("/mp-bucket")
        upload_id = await _initiate(client)
        for number in ("0", "10001", "abc"):
            resp = await client.put(
                f"{KEY_PATH}?partNumber={number}&uploadId={upload_id}", content=b"x"
            )
            assert resp.status_code == 400
            assert "<Code>InvalidArgument</Code>" in resp.text

    async def test_abort(self, client, sessions):
        await client.put("/mp-bucket")
        upload_id = await _initiate(client)
        await _upload_part(client, upload_id, 1, b"one")

        resp = await client.delete(f"{KEY_PATH}?uploadId={upload_id}")
        assert resp.status_code == 204
        assert not sessions.session_dir(upload_id).exists()

        again = await client.delete(f"{KEY_PATH}?uploadId={upload_id}")
        assert again.status_code == 204

        part = await client.put(f"{KEY_PATH}?partNumber=2&uploadId={upload_id}", content=b"x")
        assert part.status_code == 404

    async def test_three_segment_post_is_plain_upload(self, client):
        await client.put("/mp-bucket")
        resp = await client.post("/mp-bucket/flat?uploads", content=b"body")
        assert resp.status_code == 200
        assert (await client.get("/mp-bucket/flat")).content == b"body"
