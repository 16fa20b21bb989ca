"""build_pipeline: wrap a store in an ordered chain of read stages."""

from __future__ import annotations

import dataclasses
import logging
from typing import TYPE_CHECKING, Any

from ..ports.search_result import SearchResult
from .context import MiddlewareContext

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Mapping, Sequence

    from ..config import MirrorConfig
    from ..domain.entry import Entry
    from ..ports.middleware import IStoreMiddleware
    from ..ports.store import IStore
    from ..query.options import QueryOptions

logger = logging.getLogger(__name__)


def build_pipeline(
    store: IStore,
    middlewares: Sequence[IStoreMiddleware],
    *,
    config: MirrorConfig | None = None,
) -> MiddlewareStore:
    """Compose ``stage_n(...stage_1(store))``.

    The first stage in the list sits closest to the store and sees each
    candidate entry first.
    """
    return MiddlewareStore(store, middlewares, config=config)


class MiddlewareStore:
    """
    A store whose reads pass through ``select`` then ``transform`` of every
    active stage, in order, stopping at the first stage that drops the entry.

    Which stages are active is decided once per call from the context alone.
    Paging of ``find_all`` happens after selection so pages stay full.
    """

    def __init__(
        self,
        store: IStore,
        middlewares: Sequence[IStoreMiddleware],
        *,
        config: MirrorConfig | None = None,
    ) -> None:
        self._store = store
        self._middlewares = tuple(middlewares)
        self._config = config

    @property
    def store(self) -> IStore:
        return self._store

    @property
    def middlewares(self) -> tuple[IStoreMiddleware, ...]:
        return self._middlewares

    # ── Stage application ────────────────────────────────────────

    def context_for(self, context: MiddlewareContext | None) -> MiddlewareContext:
        if context is not None:
            return context
        return MiddlewareContext(config=self._config)

    def active_stages(self, context: MiddlewareContext) -> list[IStoreMiddleware]:
        return [mw for mw in self._middlewares if mw.applies(context)]

    @staticmethod
    def apply(
        entry: Entry,
        stages: Sequence[IStoreMiddleware],
        context: MiddlewareContext,
    ) -> Entry | None:
        for stage in stages:
            if not stage.select(entry, context):
                logger.debug("Entry %s dropped by %r", entry.id, stage)
                return None
            entry = stage.transform(entry, context)
        return entry

    # ── IStore ───────────────────────────────────────────────────

    async def find(
        self,
        entry_id: str,
        *,
        context: MiddlewareContext | None = None,
    ) -> Entry | None:
        ctx = self.context_for(context)
        stages = self.active_stages(ctx)
        entry = await self._store.find(entry_id, context=ctx)
        if entry is None:
            return None
        return self.apply(entry, stages, ctx)

    async def find_by(
        self,
        content_type: str,
        filter: Mapping[str, Any] | None = None,  # noqa: A002
        *,
        options: QueryOptions | None = None,
        context: MiddlewareContext | None = None,
    ) -> Entry | None:
        ctx = self.context_for(context)
        stages = self.active_stages(ctx)
        if not stages:
            return await self._store.find_by(
                content_type, filter, options=options, context=ctx
            )
        # The first raw match may be dropped by a stage; keep looking.
        async for entry in self.find_all(
            content_type, filter, options=options, context=ctx
        ).stream():
            return entry
        return None

    def find_all(
        self,
        content_type: str,
        filter: Mapping[str, Any] | None = None,  # noqa: A002
        *,
        options: QueryOptions | None = None,
        context: MiddlewareContext | None = None,
    ) -> SearchResult[Entry]:
        ctx = self.context_for(context)
        stages = self.active_stages(ctx)
        if not stages:
            return self._store.find_all(content_type, filter, options=options, context=ctx)

        skip = options.skip if options is not None else 0
        limit = options.limit if options is not None else None
        inner = dataclasses.replace(options, skip=0, limit=None) if options else None

        def candidates() -> SearchResult[Entry]:
            return self._store.find_all(content_type, filter, options=inner, context=ctx)

        async def list_fn() -> list[Entry]:
            selected = [
                entry
                for entry in (self.apply(c, stages, ctx) for c in await candidates())
                if entry is not None
            ]
            end = None if limit is None else skip + limit
            return selected[skip:end]

        async def stream_fn(batch_size: int | None) -> AsyncIterator[Entry]:
            seen = 0
            emitted = 0
            async for candidate in candidates().stream(batch_size=batch_size):
                if limit is not None and emitted >= limit:
                    return
                entry = self.apply(candidate, stages, ctx)
                if entry is None:
                    continue
                seen += 1
                if seen <= skip:
                    continue
                emitted += 1
                yield entry

        return SearchResult(list_fn, stream_fn)
