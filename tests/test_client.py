"""Tests for the CMS HTTP client using httpx.MockTransport."""

from __future__ import annotations

import httpx
import pytest

from cms_mirror.client import CMSClient, ManagementClient
from cms_mirror.client.response import parse_sync_page
from cms_mirror.config import MirrorConfig
from cms_mirror.primitives import (
    AuthError,
    CMSClientError,
    MalformedResponseError,
    NotFoundError,
    RateLimitedError,
    TokenExpiredError,
    TransientError,
)

BASE = "https://cdn.example.test"
SYNC_URL = f"{BASE}/spaces/sp/environments/master/sync"


def make_client(handler) -> CMSClient:
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return CMSClient(space="sp", access_token="tok", base_url=BASE, http_client=http)


def sync_body(items, *, next_page: str | None = None, next_sync: str | None = None) -> dict:
    body: dict = {"sys": {"type": "Array"}, "items": items}
    if next_page:
        body["nextPageUrl"] = f"{SYNC_URL}?sync_token={next_page}"
    if next_sync:
        body["nextSyncUrl"] = f"{SYNC_URL}?sync_token={next_sync}"
    return body


class TestRequests:
    @pytest.mark.asyncio
    async def test_bearer_token_and_environment_path(self, raw) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=raw.entry("e1"))

        client = make_client(handler)
        entry = await client.get_entry("e1")

        assert entry.id == "e1"
        request = seen[0]
        assert request.headers["Authorization"] == "Bearer tok"
        assert request.url.path == "/spaces/sp/environments/master/entries/e1"
        assert request.url.params["locale"] == "*"

    @pytest.mark.asyncio
    async def test_list_entries_paginates(self, raw) -> None:
        items = [raw.entry(f"e{i}") for i in range(5)]

        def handler(request: httpx.Request) -> httpx.Response:
            skip = int(request.url.params["skip"])
            limit = int(request.url.params["limit"])
            return httpx.Response(
                200, json={"items": items[skip : skip + limit], "total": len(items)}
            )

        client = make_client(handler)
        client_entries = await client._collect("entries", {}, page_size=2)
        assert len(client_entries) == 5
        limited = await client.list_entries({"content_type": "article"}, limit=3)
        assert [e.id for e in limited] == ["e0", "e1", "e2"]

    @pytest.mark.asyncio
    async def test_list_content_types(self, content_type_payloads) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                200, json={"items": content_type_payloads, "total": len(content_type_payloads)}
            )

        types = await make_client(handler).list_content_types()
        assert [t.id for t in types] == ["article", "person"]

    @pytest.mark.asyncio
    async def test_invalid_content_type_is_malformed_response(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                200,
                json={"items": [{"sys": {"id": "x"}, "fields": [{"id": "f", "type": "?"}]}], "total": 1},
            )

        with pytest.raises(MalformedResponseError):
            await make_client(handler).list_content_types()

    @pytest.mark.asyncio
    async def test_context_manager_closes_owned_client(self) -> None:
        async with CMSClient(space="sp", access_token="tok") as client:
            assert client.space == "sp"
        assert client._http.is_closed


class TestErrorMapping:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("status", "error"),
        [
            (401, AuthError),
            (403, AuthError),
            (404, NotFoundError),
            (429, RateLimitedError),
            (500, TransientError),
            (503, TransientError),
            (400, CMSClientError),
        ],
    )
    async def test_status_codes(self, status, error) -> None:
        client = make_client(lambda request: httpx.Response(status, json={"message": "nope"}))
        with pytest.raises(error) as excinfo:
            await client.get_entry("e1")
        assert excinfo.value.status == status

    @pytest.mark.asyncio
    async def test_rate_limit_hint(self) -> None:
        client = make_client(
            lambda request: httpx.Response(429, headers={"X-Contentful-RateLimit-Reset": "7"})
        )
        with pytest.raises(RateLimitedError) as excinfo:
            await client.get_entry("e1")
        assert excinfo.value.retry_after == 7.0

    @pytest.mark.asyncio
    async def test_timeout_is_transient(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("slow", request=request)

        with pytest.raises(TransientError):
            await make_client(handler).get_entry("e1")

    @pytest.mark.asyncio
    async def test_connection_error_is_transient(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(TransientError):
            await make_client(handler).get_entry("e1")

    @pytest.mark.asyncio
    async def test_non_json_body(self) -> None:
        client = make_client(lambda request: httpx.Response(200, text="<html>"))
        with pytest.raises(MalformedResponseError):
            await client.get_entry("e1")


class TestSync:
    @pytest.mark.asyncio
    async def test_initial_then_token(self, raw) -> None:
        params: list[dict] = []

        def handler(request: httpx.Request) -> httpx.Response:
            params.append(dict(request.url.params))
            if "initial" in request.url.params:
                return httpx.Response(200, json=sync_body([raw.entry("e1")], next_page="p2"))
            return httpx.Response(200, json=sync_body([], next_sync="s1"))

        client = make_client(handler)
        first = await client.sync_page()
        second = await client.sync_page(first.next_token)

        assert params == [{"initial": "true"}, {"sync_token": "p2"}]
        assert not first.done and first.next_token == "p2"
        assert second.done and second.next_token == "s1"

    @pytest.mark.asyncio
    async def test_rejected_token_means_expired(self) -> None:
        client = make_client(lambda request: httpx.Response(400, json={"message": "bad token"}))
        with pytest.raises(TokenExpiredError):
            await client.sync_page("stale")

    @pytest.mark.asyncio
    async def test_bad_request_without_token_is_not_expiry(self) -> None:
        client = make_client(lambda request: httpx.Response(400, json={"message": "bad"}))
        with pytest.raises(CMSClientError) as excinfo:
            await client.sync_page()
        assert not isinstance(excinfo.value, TokenExpiredError)

    def test_parse_sync_page_deletions(self, raw) -> None:
        page = parse_sync_page(
            sync_body(
                [
                    raw.entry("e1"),
                    {"sys": {"id": "e2", "type": "DeletedEntry", "revision": 3}},
                    {"sys": {"id": "a1", "type": "DeletedAsset"}},
                ],
                next_sync="s9",
            )
        )
        assert [e.id for e in page.entries] == ["e1"]
        assert page.deleted_ids == ["e2", "a1"]
        assert page.deleted[0].revision == 3

    @pytest.mark.parametrize(
        "body",
        [
            {"items": "nope"},
            {"items": []},
            {"items": [], "nextSyncUrl": "https://x.test/sync"},
            sync_body([{"sys": {"id": "x", "type": "Space"}}], next_sync="s"),
            sync_body([{"sys": {"id": "x", "type": "Entry"}}], next_sync="s"),
        ],
    )
    def test_parse_sync_page_malformed(self, body) -> None:
        with pytest.raises(MalformedResponseError):
            parse_sync_page(body)


class TestFromConfig:
    def test_delivery_and_preview(self) -> None:
        config = MirrorConfig(space="sp", access_token="tok", preview_token="prev")
        delivery = CMSClient.from_config(config)
        preview = CMSClient.from_config(config, preview=True)
        assert delivery._headers["Authorization"] == "Bearer tok"
        assert preview._headers["Authorization"] == "Bearer prev"
        assert preview._base.startswith(config.preview_url)

    def test_missing_tokens(self) -> None:
        config = MirrorConfig(space="sp", access_token="tok")
        with pytest.raises(CMSClientError):
            CMSClient.from_config(config, preview=True)
        with pytest.raises(CMSClientError):
            ManagementClient.from_config(config)

    def test_management_client(self) -> None:
        config = MirrorConfig(space="sp", access_token="tok", management_token="mgmt")
        client = ManagementClient.from_config(config)
        assert client._base.startswith(config.management_url)
        assert client._headers["Authorization"] == "Bearer mgmt"
