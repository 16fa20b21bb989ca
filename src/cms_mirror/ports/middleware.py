"""IStoreMiddleware: protocol for read pipeline stages."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from ..domain.entry import Entry
    from ..middleware.context import MiddlewareContext


@runtime_checkable
class IStoreMiddleware(Protocol):
    """
    A filter/transform stage wrapped around a store.

    ``applies`` is a class-level, context-only decision evaluated once per
    call; returning ``False`` removes the stage from that call entirely.
    """

    @classmethod
    def applies(cls, context: MiddlewareContext) -> bool:
        ...

    def select(self, entry: Entry, context: MiddlewareContext) -> bool:
        ...

    def transform(self, entry: Entry, context: MiddlewareContext) -> Entry:
        ...
