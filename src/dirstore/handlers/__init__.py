"""Handlers for every non-destructive action, behind one dispatch table."""

from collections.abc import Awaitable, Callable
from typing import Any

from fastapi import Response

from dirstore.config import DirStoreConfig
from dirstore.errors import UnrecognizedAction
from dirstore.handlers.bucket import BucketHandler
from dirstore.handlers.multipart import MultipartHandler
from dirstore.handlers.object import ObjectHandler
from dirstore.multipart import MultipartSessionManager
from dirstore.routing.actions import Action, ActionTag
from dirstore.routing.classifier import RequestDescriptor
from dirstore.store import ObjectStore

Handler = Callable[[Any, RequestDescriptor], Awaitable[Response]]


class ActionDispatcher:
    """Routes a classified non-destroy action to its handler."""

    def __init__(
        self,
        store: ObjectStore,
        sessions: MultipartSessionManager,
        config: DirStoreConfig,
    ) -> None:
        buckets = BucketHandler(store, config)
        objects = ObjectHandler(store, config)
        multipart = MultipartHandler(store, sessions, config)

        self._handlers: dict[ActionTag, Handler] = {
            ActionTag.LIST_BUCKETS: buckets.list_buckets,
            ActionTag.LIST_BUCKET_OBJECTS: buckets.list_bucket_objects,
            ActionTag.CREATE_BUCKET: buckets.create_bucket,
            ActionTag.GET_ACL: objects.get_acl,
            ActionTag.SET_ACL: objects.set_acl,
            ActionTag.GET_OBJECT: objects.get_object,
            ActionTag.UPLOAD: objects.upload,
            ActionTag.SINGLEPART_UPLOAD: objects.upload,
            ActionTag.COPY_OBJECT: objects.copy_object,
            ActionTag.MULTIPART_INITIALIZATION: multipart.initialization,
            ActionTag.MULTIPART_UPLOAD: multipart.upload_part,
            ActionTag.MULTIPART_COMPLETION: multipart.completion,
        }

    @property
    def handled_tags(self) -> frozenset[ActionTag]:
        return frozenset(self._handlers)

    async def dispatch(self, action: Action, request: RequestDescriptor) -> Response:
        """Run the handler for ``action.tag``.

        Raises:
            UnrecognizedAction: If no handler is registered for the tag.
        """
        tag = getattr(action, "tag", None)
        handler = self._handlers.get(tag) if isinstance(tag, ActionTag) else None
        if handler is None:
            raise UnrecognizedAction(tag)
        return await handler(action, request)


__all__ = ["ActionDispatcher", "BucketHandler", "MultipartHandler", "ObjectHandler"]
