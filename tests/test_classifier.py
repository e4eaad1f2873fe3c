"""Tests for the request classifier.

Each verb class is a total function over paths and query keys; only
root-level PUT and DELETE are rejected.
"""

from io import BytesIO

import pytest

from dirstore.errors import UnsupportedOperation
from dirstore.routing import RequestDescriptor, UploadedFile, Verb, classify
from dirstore.routing.actions import (
    ActionTag,
    CopyObject,
    CreateBucket,
    GetAcl,
    GetObject,
    ListBucketObjects,
    ListBuckets,
    MultipartAbortion,
    MultipartCompletion,
    MultipartInitialization,
    MultipartUpload,
    RmBucket,
    RmObject,
    SetAcl,
    SinglepartUpload,
    Upload,
)


def _req(verb: Verb, path: str, query=None, headers=None, body=b"", **kwargs) -> RequestDescriptor:
    return RequestDescriptor(
        verb=verb,
        path=path,
        query=query or {},
        headers=headers or {},
        body=BytesIO(body),
        **kwargs,
    )


class TestIndex:
    @pytest.mark.parametrize("query", [{}, {"acl": ""}, {"prefix": "a", "uploads": ""}])
    def test_root_lists_buckets(self, query):
        assert classify(_req(Verb.INDEX, "/", query)) == ListBuckets()

    def test_bucket_lists_objects(self):
        action = classify(_req(Verb.INDEX, "/bucket"))
        assert action == ListBucketObjects(bucket="bucket", list_query={})

    def test_list_query_passed_through(self):
        query = {"prefix": "photos/", "max-keys": "5", "acl": ""}
        action = classify(_req(Verb.INDEX, "/bucket", query))
        assert action == ListBucketObjects(bucket="bucket", list_query=query)

    def test_trailing_slash_still_bucket(self):
        assert classify(_req(Verb.INDEX, "/bucket/")).tag == ActionTag.LIST_BUCKET_OBJECTS

    def test_acl(self):
        assert classify(_req(Verb.INDEX, "/b/k", {"acl": ""})) == GetAcl(uri="b/k")

    def test_get_object_keeps_method(self):
        action = classify(_req(Verb.INDEX, "/b/k1/k2", method="HEAD"))
        assert action == GetObject(uri="b/k1/k2", method="HEAD")

    def test_get_object_defaults_to_get(self):
        assert classify(_req(Verb.INDEX, "/b/k")).method == "GET"

    def test_explicit_format(self):
        action = classify(_req(Verb.INDEX, "/b/k", format="json"))
        assert action.uri == "b/k.json"

    def test_explicit_key(self):
        action = classify(_req(Verb.INDEX, "/b/k", key="extra"))
        assert action.uri == "b/k/extra"


class TestCreate:
    def test_multipart_initialization(self):
        action = classify(
            _req(Verb.CREATE, "/b/dir/k", {"uploads": ""}, {"Content-Type": "text/plain"})
        )
        assert action == MultipartInitialization(uri="b/dir/k", content_type="text/plain")

    def test_multipart_initialization_default_content_type(self):
        action = classify(_req(Verb.CREATE, "/b/dir/k", {"uploads": ""}))
        assert action.content_type == "application/octet-stream"

    def test_multipart_completion(self):
        request = _req(Verb.CREATE, "/b/dir/k", {"uploadId": "U"}, body=b"<xml/>")
        action = classify(request)
        assert isinstance(action, MultipartCompletion)
        assert action.uri == "b/dir/k"
        assert action.body is request.body

    def test_multipart_guards_need_more_than_three_segments(self):
        action = classify(_req(Verb.CREATE, "/b/k", {"uploads": ""}, body=b"x"))
        assert isinstance(action, Upload)
        action.file.file.close()

    def test_upload_buffers_body(self):
        action = classify(
            _req(Verb.CREATE, "/b/dir/name.txt", headers={"content-type": "text/plain"}, body=b"hi")
        )
        assert isinstance(action, Upload)
        assert action.uri == "b/dir/name.txt"
        assert action.file.filename == "name.txt"
        assert action.file.content_type == "text/plain"
        assert action.file.file.read() == b"hi"
        action.file.file.close()

    def test_upload_default_content_type(self):
        action = classify(_req(Verb.CREATE, "/b/k", body=b"x"))
        assert action.file.content_type == "application/octet-stream"
        action.file.file.close()

    def test_form_file_takes_key_name(self):
        form = UploadedFile(filename="field-name", content_type="image/png", file=BytesIO(b"png"))
        action = classify(_req(Verb.CREATE, "/b/img/cat.png", file=form))
        assert action.file.filename == "cat.png"
        assert action.file.content_type == "image/png"
        assert action.file.file is form.file

    def test_root_falls_through_to_upload(self):
        action = classify(_req(Verb.CREATE, "/", body=b""))
        assert isinstance(action, Upload)
        assert action.uri == ""
        action.file.file.close()


class TestUpdate:
    def test_root_is_unsupported(self):
        with pytest.raises(UnsupportedOperation):
            classify(_req(Verb.UPDATE, "/"))

    def test_create_bucket(self):
        assert classify(_req(Verb.UPDATE, "/bucket")) == CreateBucket(bucket="bucket")

    def test_set_acl(self):
        assert classify(_req(Verb.UPDATE, "/b/k", {"acl": ""})) == SetAcl(uri="b/k")

    def test_acl_wins_over_part_upload(self):
        action = classify(_req(Verb.UPDATE, "/b/k", {"acl": "", "uploadId": "U", "partNumber": "1"}))
        assert action.tag == ActionTag.SET_ACL

    def test_multipart_upload(self):
        request = _req(Verb.UPDATE, "/bucket/key", {"uploadId": "U", "partNumber": "3"})
        action = classify(request)
        assert isinstance(action, MultipartUpload)
        assert (action.uri, action.upload_id, action.part_number) == ("bucket/key", "U", "3")
        assert action.body is request.body

    def test_upload_id_alone_is_singlepart(self):
        action = classify(_req(Verb.UPDATE, "/b/k", {"uploadId": "U"}, body=b"x"))
        assert isinstance(action, SinglepartUpload)
        action.file.file.close()

    def test_singlepart_upload(self):
        action = classify(_req(Verb.UPDATE, "/b/a/b.bin", body=b"data"))
        assert isinstance(action, SinglepartUpload)
        assert action.file.filename == "b.bin"
        assert action.file.file.read() == b"data"
        action.file.file.close()

    def test_copy_source_overrides_upload(self):
        action = classify(
            _req(Verb.UPDATE, "/dst/k", headers={"x-amz-copy-source": "/src/dir/key.txt"})
        )
        assert action == CopyObject(src_uri="src/dir/key.txt", dest_uri="dst/k")

    def test_copy_source_overrides_acl(self):
        action = classify(
            _req(Verb.UPDATE, "/dst/k", {"acl": ""}, headers={"X-Amz-Copy-Source": "src/k"})
        )
        assert action == CopyObject(src_uri="src/k", dest_uri="dst/k")

    def test_copy_source_overrides_part_upload(self):
        action = classify(
            _req(
                Verb.UPDATE,
                "/dst/k",
                {"uploadId": "U", "partNumber": "1"},
                headers={"x-amz-copy-source": "src/k"},
            )
        )
        assert action.tag == ActionTag.COPY_OBJECT

    def test_empty_copy_source_is_ignored(self):
        action = classify(
            _req(Verb.UPDATE, "/b/k", {"acl": ""}, headers={"x-amz-copy-source": ""})
        )
        assert action == SetAcl(uri="b/k")

    def test_root_rejected_even_with_copy_source(self):
        with pytest.raises(UnsupportedOperation):
            classify(_req(Verb.UPDATE, "/", headers={"x-amz-copy-source": "src/k"}))


class TestDestroy:
    @pytest.mark.parametrize("query", [{}, {"uploadId": "U"}, {"anything": "x"}])
    def test_root_is_unsupported(self, query):
        with pytest.raises(UnsupportedOperation):
            classify(_req(Verb.DESTROY, "/", query))

    def test_rm_bucket(self):
        action = classify(_req(Verb.DESTROY, "/bucket", {"force": "1"}))
        assert action == RmBucket(bucket="bucket", delete_query={"force": "1"})

    def test_multipart_abortion(self):
        action = classify(_req(Verb.DESTROY, "/bucket/key", {"uploadId": "U"}))
        assert action == MultipartAbortion(uri="bucket/key", upload_id="U")

    def test_rm_object(self):
        assert classify(_req(Verb.DESTROY, "/b/k1/k2")) == RmObject(uri="b/k1/k2")


class TestTotality:
    @pytest.mark.parametrize("verb", [Verb.INDEX, Verb.CREATE])
    @pytest.mark.parametrize("path", ["/", "/b", "/b/", "/b/k", "/b//k", "/b/k/"])
    @pytest.mark.parametrize(
        "query", [{}, {"uploads": ""}, {"uploadId": ""}, {"partNumber": "x"}, {"acl": ""}]
    )
    def test_every_request_maps_to_an_action(self, verb, path, query):
        action = classify(_req(verb, path, query))
        assert isinstance(action.tag, ActionTag)
        file = getattr(action, "file", None)
        if file is not None:
            file.file.close()
