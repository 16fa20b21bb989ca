"""Store ports: the uniform read interface and the synced write surface."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Mapping
    from datetime import datetime

    from ..domain.entry import Entry
    from ..middleware.context import MiddlewareContext
    from ..query.options import QueryOptions
    from .search_result import SearchResult


@runtime_checkable
class IStore(Protocol):
    """
    Read interface shared by every backend and by the middleware pipeline.

    ``find`` returns ``None`` when the id is unknown or deleted.
    """

    async def find(
        self,
        entry_id: str,
        *,
        context: MiddlewareContext | None = None,
    ) -> Entry | None:
        ...

    async def find_by(
        self,
        content_type: str,
        filter: Mapping[str, Any] | None = None,  # noqa: A002
        *,
        options: QueryOptions | None = None,
        context: MiddlewareContext | None = None,
    ) -> Entry | None:
        """Return the first entry of *content_type* matching *filter*."""
        ...

    def find_all(
        self,
        content_type: str,
        filter: Mapping[str, Any] | None = None,  # noqa: A002
        *,
        options: QueryOptions | None = None,
        context: MiddlewareContext | None = None,
    ) -> SearchResult[Entry]:
        ...


@runtime_checkable
class ISyncedStore(IStore, Protocol):
    """
    A store holding a materialized copy of entries.

    Conditional writes compare revisions against both the stored entry and
    any tombstone, atomically per entry.
    """

    async def get_revision(self, entry_id: str) -> int | None:
        """Stored or tombstoned revision of *entry_id*, ``None`` if unseen."""
        ...

    async def upsert(self, entry: Entry) -> None:
        """Write *entry* unconditionally and drop any tombstone for its id."""
        ...

    async def index(self, entry: Entry) -> bool:
        """Write *entry* only if its revision is newer; return whether it did."""
        ...

    async def remove(
        self,
        entry_id: str,
        revision: int,
        *,
        force: bool = False,
        deleted_at: datetime | None = None,
    ) -> bool:
        """Delete *entry_id* leaving a tombstone at *revision*.

        Unless *force* is set, a revision not newer than the stored one
        makes this a no-op returning ``False``.
        """
        ...

    async def is_tombstoned(self, entry_id: str) -> bool:
        ...

    async def entry_ids(self) -> set[str]:
        ...

    async def purge_tombstones(self, older_than: datetime) -> int:
        """Drop tombstones recorded before *older_than*; return the count."""
        ...

    async def clear(self) -> None:
        ...
