"""Change notifications and sync pages."""

from __future__ import annotations

from enum import Enum

from .entry import Entry
from .value_object import ValueObject


class WebhookAction(str, Enum):
    CREATE = "create"
    SAVE = "save"
    AUTO_SAVE = "auto_save"
    PUBLISH = "publish"
    UNPUBLISH = "unpublish"
    ARCHIVE = "archive"
    DELETE = "delete"

    @property
    def removes(self) -> bool:
        return self in (WebhookAction.DELETE, WebhookAction.ARCHIVE)

    @property
    def is_draft(self) -> bool:
        """Management-side edits that do not publish anything."""
        return self in (WebhookAction.CREATE, WebhookAction.SAVE, WebhookAction.AUTO_SAVE)


class WebhookEvent(ValueObject):
    """A delta for one entry. ``entry`` may carry only ``sys`` for deletes."""

    action: WebhookAction
    entry: Entry
    topic: str | None = None

    @property
    def entry_id(self) -> str:
        return self.entry.id


class DeletedItem(ValueObject):
    id: str
    type: str = "DeletedEntry"
    revision: int = 0


class SyncPage(ValueObject):
    """One page of the CMS sync API.

    ``next_token`` is the cursor for the following page while ``done`` is
    false, and the durable cursor for the next incremental run once it is.
    """

    entries: tuple[Entry, ...] = ()
    deleted: tuple[DeletedItem, ...] = ()
    next_token: str
    done: bool

    @property
    def deleted_ids(self) -> list[str]:
        return [item.id for item in self.deleted]
