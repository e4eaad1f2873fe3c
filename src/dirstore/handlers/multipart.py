"""Multipart upload action handlers.

Implements:
    - MultipartInitialization (POST /{bucket}/{key}?uploads)
    - MultipartUpload (PUT /{bucket}/{key}?partNumber=N&uploadId=ID)
    - MultipartCompletion (POST /{bucket}/{key}?uploadId=ID)

Abortion is a destroy action and lives in ``dirstore.destroy``.
"""

import binascii
import hashlib
import logging

from fastapi import Response

from dirstore.config import DirStoreConfig
from dirstore.errors import InvalidPart, MalformedXML, NoSuchUpload
from dirstore.handlers.acl import acl_to_json, build_default_acl
from dirstore.multipart import MultipartSessionManager
from dirstore.routing.actions import (
    MultipartCompletion,
    MultipartInitialization,
    MultipartUpload,
)
from dirstore.routing.classifier import RequestDescriptor
from dirstore.routing.paths import bucket_of, key_of
from dirstore.store import ObjectStore
from dirstore.validation import validate_part_number
from dirstore.xml_utils import (
    parse_complete_multipart_upload,
    render_complete_multipart_upload,
    render_initiate_multipart_upload,
    xml_response,
)

logger = logging.getLogger(__name__)


def composite_etag(part_md5s: list[str]) -> str:
    """Compute the S3 multipart ETag: md5 of the binary part digests, dash, count."""
    binary = b"".join(binascii.unhexlify(md5) for md5 in part_md5s)
    return f'"{hashlib.md5(binary).hexdigest()}-{len(part_md5s)}"'


class MultipartHandler:
    """Handles the create/fill/complete half of a multipart session."""

    def __init__(
        self,
        store: ObjectStore,
        sessions: MultipartSessionManager,
        config: DirStoreConfig,
    ) -> None:
        self.store = store
        self.sessions = sessions
        self.config = config

    def _require_session(self, upload_id: str, uri: str) -> dict:
        session = self.sessions.read_session(upload_id)
        if session is None or session.get("uri") != uri:
            raise NoSuchUpload(upload_id)
        return session

    async def initialization(
        self, action: MultipartInitialization, request: RequestDescriptor
    ) -> Response:
        bucket = bucket_of(action.uri)
        await self.store.require_bucket(bucket)
        upload_id = self.sessions.create(action.uri, action.content_type)
        return xml_response(
            render_initiate_multipart_upload(bucket, key_of(action.uri), upload_id)
        )

    async def upload_part(self, action: MultipartUpload, request: RequestDescriptor) -> Response:
        part_number = validate_part_number(action.part_number)
        self._require_session(action.upload_id, action.uri)
        md5 = self.sessions.write_part(action.upload_id, part_number, action.body)
        return Response(status_code=200, headers={"ETag": f'"{md5}"'})

    async def completion(
        self, action: MultipartCompletion, request: RequestDescriptor
    ) -> Response:
        """Assemble the listed parts (or all parts for an empty body) into the object.

        The session directory is removed once the object is stored.
        """
        upload_id = request.query.get("uploadId", "")
        session = self._require_session(upload_id, action.uri)

        requested = parse_complete_multipart_upload(action.body.read())
        stored = self.sessions.parts(upload_id)
        numbers = requested or sorted(stored)
        if not numbers:
            raise MalformedXML("No parts specified in request body")

        missing = [pn for pn in numbers if pn not in stored]
        if missing:
            raise InvalidPart(f"Part {missing[0]} was never uploaded.")

        paths = [stored[pn] for pn in numbers]
        etag = composite_etag([self.sessions.part_md5(p) for p in paths])
        server = self.config.server
        obj = await self.store.assemble_object(
            action.uri,
            paths,
            etag=etag,
            content_type=session.get("content_type", "application/octet-stream"),
            acl=acl_to_json(build_default_acl(server.owner_id, server.owner_display)),
        )
        self.sessions.teardown(upload_id)
        logger.info("Completed multipart upload %s (%d parts)", upload_id, len(paths))

        return xml_response(
            render_complete_multipart_upload(f"/{obj.uri}", obj.bucket, obj.key, obj.etag)
        )
