"""Response decoding and HTTP status → exception mapping."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import httpx
from pydantic import ValidationError

from ..domain.entry import DELETED_TYPES, ENTRY_TYPES, Entry
from ..domain.events import DeletedItem, SyncPage
from ..primitives.exceptions import (
    AuthError,
    CMSClientError,
    MalformedResponseError,
    NotFoundError,
    RateLimitedError,
    TokenExpiredError,
    TransientError,
)

if TYPE_CHECKING:
    from collections.abc import Iterable

RATE_LIMIT_RESET_HEADER = "X-Contentful-RateLimit-Reset"


def decode_json(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError as err:
        raise MalformedResponseError(
            f"Response from {response.request.url} is not JSON",
            status=response.status_code,
        ) from err


def raise_for_status(response: httpx.Response, *, sync_token_sent: bool = False) -> None:
    """Raise the typed error matching a non-2xx *response*."""
    status = response.status_code
    if 200 <= status < 300:
        return
    try:
        body: Any = response.json()
    except ValueError:
        body = response.text
    message = _error_message(body) or response.reason_phrase
    url = response.request.url
    detail = f"{response.request.method} {url.path} -> {status}: {message}"

    if status in (401, 403):
        raise AuthError(detail, status=status, body=body)
    if status == 404:
        raise NotFoundError(detail, status=status, body=body)
    if status == 429:
        raise RateLimitedError(
            detail, retry_after=_retry_after(response), status=status, body=body
        )
    if status >= 500:
        raise TransientError(detail, status=status, body=body)
    if sync_token_sent and status in (400, 410):
        raise TokenExpiredError(detail, status=status, body=body)
    raise CMSClientError(detail, status=status, body=body)


def parse_sync_page(body: Any) -> SyncPage:
    """Build a :class:`SyncPage` from a sync API response body.

    The continuation token is taken from ``nextPageUrl`` while more pages
    remain, otherwise from ``nextSyncUrl``.
    """
    if not isinstance(body, dict) or not isinstance(body.get("items"), list):
        raise MalformedResponseError("Sync response without an items array")
    next_url = body.get("nextPageUrl")
    done = next_url is None
    if done:
        next_url = body.get("nextSyncUrl")
    if not next_url:
        raise MalformedResponseError("Sync response without nextPageUrl or nextSyncUrl")
    token = httpx.URL(next_url).params.get("sync_token")
    if not token:
        raise MalformedResponseError(f"No sync_token in {next_url!r}")

    entries: list[Entry] = []
    deleted: list[DeletedItem] = []
    for item in body["items"]:
        sys_type = _sys_type(item)
        if sys_type in ENTRY_TYPES:
            entries.append(parse_entry(item))
        elif sys_type in DELETED_TYPES:
            deleted.append(
                DeletedItem(
                    id=item["sys"]["id"],
                    type=sys_type,
                    revision=item["sys"].get("revision", 0),
                )
            )
        else:
            raise MalformedResponseError(f"Unexpected sync item type {sys_type!r}")
    return SyncPage(
        entries=tuple(entries), deleted=tuple(deleted), next_token=token, done=done
    )


def parse_entry(item: Any) -> Entry:
    try:
        return Entry.from_raw(item)
    except (KeyError, TypeError, ValidationError) as err:
        raise MalformedResponseError(f"Malformed entry: {err}") from err


def parse_entries(items: Iterable[Any]) -> list[Entry]:
    return [parse_entry(item) for item in items]


def _sys_type(item: Any) -> str | None:
    if isinstance(item, dict) and isinstance(item.get("sys"), dict):
        return item["sys"].get("type")
    return None


def _error_message(body: Any) -> str | None:
    if isinstance(body, dict):
        message = body.get("message")
        return str(message) if message else None
    return None


def _retry_after(response: httpx.Response) -> float | None:
    for header in (RATE_LIMIT_RESET_HEADER, "Retry-After"):
        value = response.headers.get(header)
        if value is None:
            continue
        try:
            return float(value)
        except ValueError:
            continue
    return None
