"""DirectStore: passthrough to the CMS delivery API, no persistence."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from ..domain.entry import ASSET_CONTENT_TYPE
from ..ports.search_result import SearchResult
from ..primitives.exceptions import NotFoundError
from ..query.filter import parse_filter
from ..query.options import QueryOptions

if TYPE_CHECKING:
    from collections.abc import Mapping

    from ..client.http import CMSClient
    from ..domain.entry import Entry
    from ..middleware.context import MiddlewareContext

logger = logging.getLogger(__name__)


class DirectStore:
    """
    Every read goes to the CMS and returns live data.

    Filters are translated to delivery API query parameters
    (``fields.slug[ne]=...``). Preview contexts use the preview client
    when one is configured.
    """

    def __init__(self, client: CMSClient, *, preview_client: CMSClient | None = None) -> None:
        self._client = client
        self._preview_client = preview_client

    def _client_for(self, context: MiddlewareContext | None) -> CMSClient:
        if context is not None and context.preview and self._preview_client is not None:
            return self._preview_client
        return self._client

    async def find(
        self,
        entry_id: str,
        *,
        context: MiddlewareContext | None = None,
    ) -> Entry | None:
        client = self._client_for(context)
        try:
            return await client.get_entry(entry_id)
        except NotFoundError:
            pass
        try:
            return await client.get_asset(entry_id)
        except NotFoundError:
            logger.debug("No entry or asset with id %s", entry_id)
            return None

    async def find_by(
        self,
        content_type: str,
        filter: Mapping[str, Any] | None = None,  # noqa: A002
        *,
        options: QueryOptions | None = None,
        context: MiddlewareContext | None = None,
    ) -> Entry | None:
        options = options or QueryOptions()
        first = QueryOptions(limit=1, skip=options.skip, order=options.order, locale=options.locale)
        entries = await self.find_all(content_type, filter, options=first, context=context)
        return entries[0] if entries else None

    def find_all(
        self,
        content_type: str,
        filter: Mapping[str, Any] | None = None,  # noqa: A002
        *,
        options: QueryOptions | None = None,
        context: MiddlewareContext | None = None,
    ) -> SearchResult[Entry]:
        options = options or QueryOptions()
        query = self.build_query(content_type, filter, options)
        client = self._client_for(context)

        async def list_fn() -> list[Entry]:
            if content_type == ASSET_CONTENT_TYPE:
                return await client.list_assets(query, limit=options.limit, skip=options.skip)
            return await client.list_entries(query, limit=options.limit, skip=options.skip)

        return SearchResult(list_fn)

    @staticmethod
    def build_query(
        content_type: str,
        filter: Mapping[str, Any] | None,  # noqa: A002
        options: QueryOptions,
    ) -> dict[str, Any]:
        query: dict[str, Any] = {}
        if content_type != ASSET_CONTENT_TYPE:
            query["content_type"] = content_type
        for condition in parse_filter(filter):
            key, value = condition.to_query_param()
            query[key] = value
        query.update(options.to_query_params())
        return query
