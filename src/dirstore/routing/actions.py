"""The Action tagged union produced by the request classifier.

Each variant is a frozen dataclass carrying a class-level ``tag``. Executors
dispatch on ``action.tag`` through explicit tables keyed by ``ActionTag``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, BinaryIO, ClassVar, Union

if TYPE_CHECKING:
    from dirstore.routing.classifier import UploadedFile


class ActionTag(str, Enum):
    """Discriminator for every Action variant."""

    LIST_BUCKETS = "list_buckets"
    LIST_BUCKET_OBJECTS = "list_bucket_objects"
    GET_ACL = "get_acl"
    GET_OBJECT = "get_object"
    MULTIPART_INITIALIZATION = "multipart_initialization"
    MULTIPART_COMPLETION = "multipart_completion"
    UPLOAD = "upload"
    CREATE_BUCKET = "create_bucket"
    SET_ACL = "set_acl"
    MULTIPART_UPLOAD = "multipart_upload"
    SINGLEPART_UPLOAD = "singlepart_upload"
    COPY_OBJECT = "copy_object"
    RM_BUCKET = "rm_bucket"
    MULTIPART_ABORTION = "multipart_abortion"
    RM_OBJECT = "rm_object"


@dataclass(frozen=True)
class ListBuckets:
    tag: ClassVar[ActionTag] = ActionTag.LIST_BUCKETS


@dataclass(frozen=True)
class ListBucketObjects:
    bucket: str
    list_query: dict[str, str] = field(default_factory=dict)
    tag: ClassVar[ActionTag] = ActionTag.LIST_BUCKET_OBJECTS


@dataclass(frozen=True)
class GetAcl:
    uri: str
    tag: ClassVar[ActionTag] = ActionTag.GET_ACL


@dataclass(frozen=True)
class GetObject:
    uri: str
    method: str = "GET"
    tag: ClassVar[ActionTag] = ActionTag.GET_OBJECT


@dataclass(frozen=True)
class MultipartInitialization:
    uri: str
    content_type: str = "application/octet-stream"
    tag: ClassVar[ActionTag] = ActionTag.MULTIPART_INITIALIZATION


@dataclass(frozen=True)
class MultipartCompletion:
    uri: str
    body: BinaryIO
    tag: ClassVar[ActionTag] = ActionTag.MULTIPART_COMPLETION


@dataclass(frozen=True)
class Upload:
    uri: str
    file: UploadedFile
    tag: ClassVar[ActionTag] = ActionTag.UPLOAD


@dataclass(frozen=True)
class CreateBucket:
    bucket: str
    tag: ClassVar[ActionTag] = ActionTag.CREATE_BUCKET


@dataclass(frozen=True)
class SetAcl:
    uri: str
    tag: ClassVar[ActionTag] = ActionTag.SET_ACL


@dataclass(frozen=True)
class MultipartUpload:
    uri: str
    upload_id: str
    part_number: str
    body: BinaryIO
    tag: ClassVar[ActionTag] = ActionTag.MULTIPART_UPLOAD


@dataclass(frozen=True)
class SinglepartUpload:
    uri: str
    file: UploadedFile
    tag: ClassVar[ActionTag] = ActionTag.SINGLEPART_UPLOAD


@dataclass(frozen=True)
class CopyObject:
    src_uri: str
    dest_uri: str
    tag: ClassVar[ActionTag] = ActionTag.COPY_OBJECT


@dataclass(frozen=True)
class RmBucket:
    bucket: str
    delete_query: dict[str, str] = field(default_factory=dict)
    tag: ClassVar[ActionTag] = ActionTag.RM_BUCKET


@dataclass(frozen=True)
class MultipartAbortion:
    uri: str
    upload_id: str
    tag: ClassVar[ActionTag] = ActionTag.MULTIPART_ABORTION


@dataclass(frozen=True)
class RmObject:
    uri: str
    tag: ClassVar[ActionTag] = ActionTag.RM_OBJECT


Action = Union[
    ListBuckets,
    ListBucketObjects,
    GetAcl,
    GetObject,
    MultipartInitialization,
    MultipartCompletion,
    Upload,
    CreateBucket,
    SetAcl,
    MultipartUpload,
    SinglepartUpload,
    CopyObject,
    RmBucket,
    MultipartAbortion,
    RmObject,
]

# Tags executed by the destroy pipeline; everything else is non-destructive.
DESTROY_TAGS = frozenset(
    {ActionTag.RM_BUCKET, ActionTag.RM_OBJECT, ActionTag.MULTIPART_ABORTION}
)
