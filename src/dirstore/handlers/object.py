"""Object-level action handlers.

Implements:
    - GetObject / HeadObject (GET|HEAD /{bucket}/{key})
    - GetAcl (GET /{bucket}/{key}?acl)
    - SetAcl (PUT /{bucket}/{key}?acl)
    - Upload (POST /{bucket}/{key}), SinglepartUpload (PUT /{bucket}/{key})
    - CopyObject (PUT /{bucket}/{key} with x-amz-copy-source)
"""

import email.utils
import logging
from datetime import datetime, timezone

from fastapi import Response
from fastapi.responses import StreamingResponse

from dirstore.config import DirStoreConfig
from dirstore.handlers.acl import acl_from_json, acl_to_json, parse_canned_acl
from dirstore.routing.actions import (
    CopyObject,
    GetAcl,
    GetObject,
    SetAcl,
    SinglepartUpload,
    Upload,
)
from dirstore.routing.classifier import RequestDescriptor
from dirstore.store import ObjectStore, StoredObject
from dirstore.xml_utils import render_acl, render_copy_object_result, xml_response

logger = logging.getLogger(__name__)


def _iso_to_http_date(iso_str: str) -> str:
    """Convert a stored ``%Y-%m-%dT%H:%M:%S.000Z`` timestamp to RFC 7231 form."""
    try:
        dt = datetime.strptime(iso_str, "%Y-%m-%dT%H:%M:%S.000Z").replace(tzinfo=timezone.utc)
    except ValueError:
        return iso_str
    return email.utils.format_datetime(dt, usegmt=True)


class ObjectHandler:
    """Handles object reads, writes, copies and ACLs."""

    def __init__(self, store: ObjectStore, config: DirStoreConfig) -> None:
        self.store = store
        self.config = config

    def _acl_json(self, request: RequestDescriptor) -> str:
        server = self.config.server
        acl = parse_canned_acl(
            request.header("x-amz-acl") or "private", server.owner_id, server.owner_display
        )
        return acl_to_json(acl)

    @staticmethod
    def _object_headers(obj: StoredObject) -> dict[str, str]:
        return {
            "ETag": obj.etag,
            "Content-Length": str(obj.size),
            "Content-Type": obj.content_type,
            "Last-Modified": _iso_to_http_date(obj.last_modified),
            "Accept-Ranges": "bytes",
        }

    async def get_object(self, action: GetObject, request: RequestDescriptor) -> Response:
        """Stream an object's body; HEAD returns the headers only."""
        obj = await self.store.get_object(action.uri)
        headers = self._object_headers(obj)
        if action.method.upper() == "HEAD":
            return Response(status_code=200, headers=headers)
        return StreamingResponse(
            self.store.open_stream(obj),
            status_code=200,
            media_type=obj.content_type,
            headers=headers,
        )

    async def get_acl(self, action: GetAcl, request: RequestDescriptor) -> Response:
        obj = await self.store.get_object(action.uri)
        return xml_response(render_acl(acl_from_json(obj.acl)))

    async def set_acl(self, action: SetAcl, request: RequestDescriptor) -> Response:
        """Apply the canned ACL from ``x-amz-acl`` (default ``private``)."""
        obj = await self.store.get_object(action.uri)
        await self.store.set_object_acl(obj, self._acl_json(request))
        return Response(status_code=200)

    async def upload(
        self, action: Upload | SinglepartUpload, request: RequestDescriptor
    ) -> Response:
        """Store an uploaded file at the action's uri."""
        uploaded = action.file
        try:
            obj = await self.store.put_object(
                action.uri,
                uploaded.file,
                content_type=uploaded.content_type,
                acl=self._acl_json(request),
            )
        finally:
            uploaded.file.close()
        logger.debug("Stored %s (%s, %d bytes)", obj.uri, uploaded.filename, obj.size)
        return Response(status_code=200, headers={"ETag": obj.etag})

    async def copy_object(self, action: CopyObject, request: RequestDescriptor) -> Response:
        obj = await self.store.copy_object(
            action.src_uri, action.dest_uri, acl=self._acl_json(request)
        )
        return xml_response(render_copy_object_result(obj.etag, obj.last_modified))
