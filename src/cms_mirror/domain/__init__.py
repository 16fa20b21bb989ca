"""Domain value objects."""

from __future__ import annotations

from .content_type import ContentType, FieldDefinition, FieldType
from .entry import (
    ASSET_CONTENT_TYPE,
    DEFAULT_LOCALE,
    DELETED_TYPES,
    ENTRY_TYPES,
    Entry,
    Link,
    Sys,
)
from .events import DeletedItem, SyncPage, WebhookAction, WebhookEvent
from .value_object import ValueObject

__all__ = [
    "ASSET_CONTENT_TYPE",
    "DEFAULT_LOCALE",
    "DELETED_TYPES",
    "ENTRY_TYPES",
    "ContentType",
    "DeletedItem",
    "Entry",
    "FieldDefinition",
    "FieldType",
    "Link",
    "SyncPage",
    "Sys",
    "ValueObject",
    "WebhookAction",
    "WebhookEvent",
]
