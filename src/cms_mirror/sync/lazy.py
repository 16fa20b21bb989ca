"""LazySyncStore: runs the full sync on first read."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from ..ports.search_result import SearchResult

if TYPE_CHECKING:
    from collections.abc import Mapping

    from ..domain.entry import Entry
    from ..middleware.context import MiddlewareContext
    from ..ports.store import ISyncedStore
    from ..query.options import QueryOptions
    from .engine import SyncEngine


class LazySyncStore:
    """Wraps a synced store so the first read awaits the engine's full sync."""

    def __init__(self, store: ISyncedStore, engine: SyncEngine) -> None:
        self._store = store
        self._engine = engine

    async def find(
        self,
        entry_id: str,
        *,
        context: MiddlewareContext | None = None,
    ) -> Entry | None:
        await self._engine.ensure_synced()
        return await self._store.find(entry_id, context=context)

    async def find_by(
        self,
        content_type: str,
        filter: Mapping[str, Any] | None = None,  # noqa: A002
        *,
        options: QueryOptions | None = None,
        context: MiddlewareContext | None = None,
    ) -> Entry | None:
        await self._engine.ensure_synced()
        return await self._store.find_by(content_type, filter, options=options, context=context)

    def find_all(
        self,
        content_type: str,
        filter: Mapping[str, Any] | None = None,  # noqa: A002
        *,
        options: QueryOptions | None = None,
        context: MiddlewareContext | None = None,
    ) -> SearchResult[Entry]:
        async def list_fn() -> list[Entry]:
            await self._engine.ensure_synced()
            return await self._store.find_all(
                content_type, filter, options=options, context=context
            )

        return SearchResult(list_fn)
