"""Async HTTP clients for the CMS delivery, preview and management APIs."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import httpx
from pydantic import ValidationError

from ..primitives.exceptions import (
    CMSClientError,
    InvalidSchemaError,
    MalformedResponseError,
    TransientError,
)
from ..registry.indexer import index_content_type
from .response import (
    decode_json,
    parse_entries,
    parse_entry,
    parse_sync_page,
    raise_for_status,
)

if TYPE_CHECKING:
    from types import TracebackType

    from ..config import MirrorConfig
    from ..domain.content_type import ContentType
    from ..domain.entry import Entry
    from ..domain.events import SyncPage

logger = logging.getLogger(__name__)

PAGE_LIMIT = 1000


class CMSClient:
    """
    Read-only client for the delivery (or preview) API of one space.

    The client never retries; every failure surfaces as a typed
    :class:`~cms_mirror.primitives.exceptions.CMSClientError` and the caller
    decides on a retry policy. Timeouts are per HTTP call.

    Usage::

        async with CMSClient.from_config(config) as client:
            page = await client.sync_page()
    """

    def __init__(
        self,
        *,
        space: str,
        access_token: str,
        environment: str = "master",
        base_url: str = "https://cdn.contentful.com",
        timeout: float = 10.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.space = space
        self.environment = environment
        self._base = f"{base_url.rstrip('/')}/spaces/{space}/environments/{environment}"
        self._headers = {"Authorization": f"Bearer {access_token}"}
        self._timeout = timeout
        self._owns_http = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=timeout)

    @classmethod
    def from_config(
        cls,
        config: MirrorConfig,
        *,
        preview: bool = False,
        http_client: httpx.AsyncClient | None = None,
    ) -> CMSClient:
        if preview:
            if not config.preview_token:
                raise CMSClientError("preview_token is not configured")
            token, base_url = config.preview_token, config.preview_url
        else:
            token, base_url = config.access_token, config.cdn_url
        return cls(
            space=config.space,
            access_token=token,
            environment=config.environment,
            base_url=base_url,
            timeout=config.request_timeout,
            http_client=http_client,
        )

    async def __aenter__(self) -> CMSClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()

    async def close(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    # -- transport ------------------------------------------------------------

    async def get(
        self,
        path: str,
        params: dict[str, Any] | None = None,
        *,
        sync_token_sent: bool = False,
    ) -> Any:
        url = f"{self._base}/{path}"
        logger.debug("GET %s %s", url, params or "")
        try:
            response = await self._http.get(
                url, params=params, headers=self._headers, timeout=self._timeout
            )
        except httpx.TimeoutException as err:
            raise TransientError(f"GET {path} timed out") from err
        except httpx.TransportError as err:
            raise TransientError(f"GET {path} failed: {err}") from err
        raise_for_status(response, sync_token_sent=sync_token_sent)
        return decode_json(response)

    # -- content types --------------------------------------------------------

    async def list_content_types(self, limit: int = PAGE_LIMIT) -> list[ContentType]:
        raw_types = await self._collect("content_types", {}, page_size=limit)
        try:
            return [index_content_type(raw) for raw in raw_types]
        except (InvalidSchemaError, ValidationError) as err:
            raise MalformedResponseError(f"Invalid content type: {err}") from err

    # -- entries & assets -----------------------------------------------------

    async def get_entry(self, entry_id: str) -> Entry:
        """Fetch one entry in all locales; raises ``NotFoundError``."""
        return parse_entry(await self.get(f"entries/{entry_id}", {"locale": "*"}))

    async def get_asset(self, asset_id: str) -> Entry:
        return parse_entry(await self.get(f"assets/{asset_id}", {"locale": "*"}))

    async def list_entries(
        self,
        query: dict[str, Any] | None = None,
        *,
        limit: int | None = None,
        skip: int = 0,
    ) -> list[Entry]:
        params = {"locale": "*", **(query or {})}
        return parse_entries(await self._collect("entries", params, limit=limit, skip=skip))

    async def list_assets(
        self,
        query: dict[str, Any] | None = None,
        *,
        limit: int | None = None,
        skip: int = 0,
    ) -> list[Entry]:
        params = {"locale": "*", **(query or {})}
        return parse_entries(await self._collect("assets", params, limit=limit, skip=skip))

    # -- sync -----------------------------------------------------------------

    async def sync_page(self, token: str | None = None) -> SyncPage:
        """Fetch one page of the sync API.

        ``token=None`` starts an initial sync. A token the CMS no longer
        accepts raises ``TokenExpiredError``.
        """
        params: dict[str, Any] = (
            {"initial": "true"} if token is None else {"sync_token": token}
        )
        body = await self.get("sync", params, sync_token_sent=token is not None)
        return parse_sync_page(body)

    # -- pagination -----------------------------------------------------------

    async def _collect(
        self,
        path: str,
        params: dict[str, Any],
        *,
        limit: int | None = None,
        skip: int = 0,
        page_size: int = PAGE_LIMIT,
    ) -> list[Any]:
        items: list[Any] = []
        while True:
            size = page_size if limit is None else min(page_size, limit - len(items))
            body = await self.get(path, {**params, "skip": skip, "limit": size})
            if not isinstance(body, dict) or not isinstance(body.get("items"), list):
                raise MalformedResponseError(f"{path} response without an items array")
            page = body["items"]
            items.extend(page)
            skip += len(page)
            total = body.get("total", 0)
            if not page or skip >= total or (limit is not None and len(items) >= limit):
                return items


class ManagementClient(CMSClient):
    """Client for the management API; only content type reads are used."""

    @classmethod
    def from_config(
        cls,
        config: MirrorConfig,
        *,
        preview: bool = False,  # noqa: ARG003
        http_client: httpx.AsyncClient | None = None,
    ) -> ManagementClient:
        if not config.management_token:
            raise CMSClientError("management_token is not configured")
        return cls(
            space=config.space,
            access_token=config.management_token,
            environment=config.environment,
            base_url=config.management_url,
            timeout=config.request_timeout,
            http_client=http_client,
        )
