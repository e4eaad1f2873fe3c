"""Bucket-level action handlers.

Implements:
    - ListBuckets (GET /)
    - ListBucketObjects (GET /{bucket})
    - CreateBucket (PUT /{bucket})
"""

import logging

from fastapi import Response

from dirstore.config import DirStoreConfig
from dirstore.handlers.acl import acl_to_json, parse_canned_acl
from dirstore.routing.actions import CreateBucket, ListBucketObjects, ListBuckets
from dirstore.routing.classifier import RequestDescriptor
from dirstore.store import ObjectStore
from dirstore.validation import validate_bucket_name, validate_max_keys
from dirstore.xml_utils import render_list_buckets, render_list_objects, xml_response

logger = logging.getLogger(__name__)


class BucketHandler:
    """Handles bucket listing and creation."""

    def __init__(self, store: ObjectStore, config: DirStoreConfig) -> None:
        self.store = store
        self.config = config

    async def list_buckets(self, action: ListBuckets, request: RequestDescriptor) -> Response:
        buckets = await self.store.list_buckets()
        body = render_list_buckets(
            owner_id=self.config.server.owner_id,
            owner_display_name=self.config.server.owner_display,
            buckets=[{"name": b.name, "created_at": b.created_at} for b in buckets],
        )
        return xml_response(body)

    async def list_bucket_objects(
        self, action: ListBucketObjects, request: RequestDescriptor
    ) -> Response:
        """List a bucket's objects.

        Honors ``prefix``, ``delimiter``, ``marker`` and ``max-keys`` from the
        passed-through query; other keys are ignored.
        """
        query = action.list_query
        prefix = query.get("prefix", "")
        delimiter = query.get("delimiter", "")
        marker = query.get("marker", "")
        max_keys = validate_max_keys(query.get("max-keys"))

        result = await self.store.list_objects(
            action.bucket,
            prefix=prefix,
            delimiter=delimiter,
            max_keys=max_keys,
            marker=marker,
        )
        body = render_list_objects(
            name=action.bucket,
            prefix=prefix,
            delimiter=delimiter,
            max_keys=max_keys,
            is_truncated=result["is_truncated"],
            contents=result["contents"],
            common_prefixes=result["common_prefixes"],
            marker=marker,
            next_marker=result["next_marker"],
        )
        return xml_response(body)

    async def create_bucket(self, action: CreateBucket, request: RequestDescriptor) -> Response:
        """Create a bucket. Re-creating an existing bucket succeeds."""
        validate_bucket_name(action.bucket)
        server = self.config.server
        acl = parse_canned_acl(
            request.header("x-amz-acl") or "private", server.owner_id, server.owner_display
        )
        await self.store.create_bucket(action.bucket, acl=acl_to_json(acl))
        return Response(status_code=200, headers={"Location": f"/{action.bucket}"})
