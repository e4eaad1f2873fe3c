"""Request classification: HTTP request descriptors to tagged actions."""

from dirstore.routing.actions import Action, ActionTag
from dirstore.routing.classifier import RequestDescriptor, UploadedFile, Verb, classify

__all__ = [
    "Action",
    "ActionTag",
    "classify",
    "RequestDescriptor",
    "UploadedFile",
    "Verb",
]
