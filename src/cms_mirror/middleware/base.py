"""Base class for read pipeline stages."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ..domain.entry import Entry
    from .context import MiddlewareContext


class StoreMiddleware:
    """
    Default stage: applies everywhere, keeps every entry, changes nothing.

    Subclasses override any of :meth:`applies`, :meth:`select` and
    :meth:`transform`.
    """

    @classmethod
    def applies(cls, context: MiddlewareContext) -> bool:  # noqa: ARG003
        return True

    def select(self, entry: Entry, context: MiddlewareContext) -> bool:  # noqa: ARG002
        return True

    def transform(self, entry: Entry, context: MiddlewareContext) -> Entry:  # noqa: ARG002
        return entry

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"
