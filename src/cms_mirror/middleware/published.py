"""PublishedOnlyMiddleware: hides drafts and unpublished entries."""

from __future__ import annotations

from typing import TYPE_CHECKING

from .base import StoreMiddleware

if TYPE_CHECKING:
    from ..domain.entry import Entry
    from .context import MiddlewareContext


class PublishedOnlyMiddleware(StoreMiddleware):
    """Drops entries whose ``sys.published_at`` is null, except in preview."""

    @classmethod
    def applies(cls, context: MiddlewareContext) -> bool:
        return not context.preview

    def select(self, entry: Entry, context: MiddlewareContext) -> bool:  # noqa: ARG002
        return entry.sys.published_at is not None
