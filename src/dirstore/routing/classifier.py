"""Request classifier: one total function per verb class.

The same HTTP verb means different S3 operations depending on how many path
segments there are and which query keys are present. Each ``classify_*``
function evaluates an ordered list of mutually exclusive guards (first match
wins) and returns exactly one Action.

S3 multipart upload on the wire:

    Initialization:  POST   /bucket/key?uploads
    Part upload:     PUT    /bucket/key?partNumber=N&uploadId=ID
    Completion:      POST   /bucket/key?uploadId=ID
    Abortion:        DELETE /bucket/key?uploadId=ID
"""

import logging
import shutil
import tempfile
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field, replace
from enum import Enum
from io import BytesIO
from typing import BinaryIO

from dirstore.errors import UnsupportedOperation
from dirstore.routing.actions import (
    Action,
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
from dirstore.routing.copy_source import parse_copy_source
from dirstore.routing.paths import bucket_of, key_of, resolve_uri, split_segments

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "application/octet-stream"
COPY_SOURCE_HEADER = "x-amz-copy-source"


class Verb(str, Enum):
    """HTTP method class a request is routed under."""

    INDEX = "index"
    CREATE = "create"
    UPDATE = "update"
    DESTROY = "destroy"


@dataclass
class UploadedFile:
    """An uploaded file value: logical filename, content type and a stream."""

    filename: str
    content_type: str
    file: BinaryIO


@dataclass
class RequestDescriptor:
    """Everything the classifier may look at for one inbound request.

    Attributes:
        verb: The verb class the transport routed the request under.
        path: The raw request path, always starting with ``/``.
        query: Query parameters (unique keys).
        headers: Request headers; keys are lowercased on construction.
        body: The request body stream.
        file: A file already parsed from a ``multipart/form-data`` body.
        method: The original HTTP method (GET vs HEAD matters for GetObject).
        key: Explicit object key supplied by the router, if any.
        format: Explicit format suffix supplied by the router, if any.
    """

    verb: Verb
    path: str
    query: Mapping[str, str] = field(default_factory=dict)
    headers: Mapping[str, str] = field(default_factory=dict)
    body: BinaryIO = field(default_factory=BytesIO)
    file: UploadedFile | None = None
    method: str = ""
    key: str | None = None
    format: str | None = None

    def __post_init__(self) -> None:
        self.headers = {k.lower(): v for k, v in self.headers.items()}

    def header(self, name: str) -> str | None:
        return self.headers.get(name.lower())

    @property
    def content_type(self) -> str | None:
        return self.header("content-type") or None


def _route_path(segments: list[str]) -> str:
    """Rejoin path segments without the leading slash: ``b/k1/k2``."""
    return "/".join(segments[1:])


def _object_uri(request: RequestDescriptor, segments: list[str]) -> str:
    route = _route_path(segments)
    return resolve_uri(route, key=request.key, format=request.format, uri=route) or route


def _object_key(request: RequestDescriptor, uri: str) -> str:
    return request.key or key_of(uri)


def _ingest_file(request: RequestDescriptor, key: str) -> UploadedFile:
    """Turn the request payload into an UploadedFile named after the key.

    A form upload keeps its content and only takes the key's last segment as
    its filename. A raw body is buffered into a new temporary file.
    """
    fname = key.split("/")[-1]
    if request.file is not None:
        return replace(request.file, filename=fname)

    tmp = tempfile.TemporaryFile()
    shutil.copyfileobj(request.body, tmp)
    tmp.seek(0)
    return UploadedFile(
        filename=fname,
        content_type=request.content_type or DEFAULT_CONTENT_TYPE,
        file=tmp,
    )


def classify_index(request: RequestDescriptor) -> Action:
    """Classify a GET/HEAD request."""
    segments = split_segments(request.path)

    if request.path == "/":
        return ListBuckets()
    if len(segments) < 3:
        return ListBucketObjects(
            bucket=bucket_of(_route_path(segments)),
            list_query=dict(request.query),
        )

    uri = _object_uri(request, segments)
    if "acl" in request.query:
        return GetAcl(uri=uri)
    return GetObject(uri=uri, method=request.method or "GET")


def classify_create(request: RequestDescriptor) -> Action:
    """Classify a POST request.

    There is no root-path rejection here: ``POST /`` falls through to Upload.
    """
    segments = split_segments(request.path)
    uri = _object_uri(request, segments)

    if len(segments) > 3 and "uploads" in request.query:
        return MultipartInitialization(
            uri=uri,
            content_type=request.content_type or DEFAULT_CONTENT_TYPE,
        )
    if len(segments) > 3 and "uploadId" in request.query:
        return MultipartCompletion(uri=uri, body=request.body)
    return Upload(uri=uri, file=_ingest_file(request, _object_key(request, uri)))


def _select_update(request: RequestDescriptor, segments: list[str]) -> Action:
    if request.path == "/":
        raise UnsupportedOperation("PUT on the service root is not supported.")
    if len(segments) < 3:
        return CreateBucket(bucket=bucket_of(_route_path(segments)))

    uri = _object_uri(request, segments)
    if "acl" in request.query:
        return SetAcl(uri=uri)
    if "uploadId" in request.query and "partNumber" in request.query:
        return MultipartUpload(
            uri=uri,
            upload_id=request.query["uploadId"],
            part_number=request.query["partNumber"],
            body=request.body,
        )
    return SinglepartUpload(uri=uri, file=_ingest_file(request, _object_key(request, uri)))


def classify_update(request: RequestDescriptor) -> Action:
    """Classify a PUT/PATCH request.

    A copy-source header overrides whichever action the guards selected.
    """
    segments = split_segments(request.path)
    action = _select_update(request, segments)

    copy_source = parse_copy_source(request.header(COPY_SOURCE_HEADER))
    if copy_source is None:
        return action

    if isinstance(action, SinglepartUpload):
        action.file.file.close()
    return CopyObject(src_uri=copy_source.uri, dest_uri=_object_uri(request, segments))


def classify_destroy(request: RequestDescriptor) -> Action:
    """Classify a DELETE request."""
    segments = split_segments(request.path)

    if request.path == "/":
        raise UnsupportedOperation("DELETE on the service root is not supported.")
    if len(segments) < 3:
        return RmBucket(
            bucket=bucket_of(_route_path(segments)),
            delete_query=dict(request.query),
        )

    uri = _object_uri(request, segments)
    if "uploadId" in request.query:
        return MultipartAbortion(uri=uri, upload_id=request.query["uploadId"])
    return RmObject(uri=uri)


_CLASSIFIERS: dict[Verb, Callable[[RequestDescriptor], Action]] = {
    Verb.INDEX: classify_index,
    Verb.CREATE: classify_create,
    Verb.UPDATE: classify_update,
    Verb.DESTROY: classify_destroy,
}


def classify(request: RequestDescriptor) -> Action:
    """Classify a request under its verb class.

    Raises:
        UnsupportedOperation: For root-level PUT/PATCH and DELETE.
    """
    action = _CLASSIFIERS[request.verb](request)
    logger.debug("Classified %s %s as %s", request.method, request.path, action.tag.value)
    return action
