"""Shared fixtures: raw CMS payloads and entry builders."""

from __future__ import annotations

from typing import Any

import pytest

from cms_mirror.domain import Entry


def raw_entry(
    entry_id: str,
    content_type: str = "article",
    *,
    revision: int = 1,
    fields: dict[str, Any] | None = None,
    published: bool = True,
    updated_at: str = "2024-01-01T00:00:00Z",
) -> dict[str, Any]:
    sys: dict[str, Any] = {
        "id": entry_id,
        "type": "Entry",
        "revision": revision,
        "contentType": {"sys": {"type": "Link", "linkType": "ContentType", "id": content_type}},
        "createdAt": "2024-01-01T00:00:00Z",
        "updatedAt": updated_at,
    }
    if published:
        sys["publishedAt"] = updated_at
    return {"sys": sys, "fields": fields or {}}


def localized(value: Any, locale: str = "en-US") -> dict[str, Any]:
    return {locale: value}


def link(entry_id: str, link_type: str = "Entry") -> dict[str, Any]:
    return {"sys": {"type": "Link", "linkType": link_type, "id": entry_id}}


@pytest.fixture
def make_entry():
    """Build an :class:`Entry`; plain field values are wrapped in ``en-US``."""

    def _make(
        entry_id: str,
        content_type: str = "article",
        *,
        revision: int = 1,
        published: bool = True,
        updated_at: str = "2024-01-01T00:00:00Z",
        **fields: Any,
    ) -> Entry:
        return Entry.from_raw(
            raw_entry(
                entry_id,
                content_type,
                revision=revision,
                fields={name: localized(value) for name, value in fields.items()},
                published=published,
                updated_at=updated_at,
            ),
            delivery=False,
        )

    return _make


@pytest.fixture
def raw():
    """Access to the raw payload helpers from tests."""

    class _Raw:
        entry = staticmethod(raw_entry)
        localized = staticmethod(localized)
        link = staticmethod(link)

    return _Raw


ARTICLE_TYPE = {
    "sys": {"id": "article", "type": "ContentType"},
    "name": "Article",
    "displayField": "title",
    "fields": [
        {"id": "title", "name": "Title", "type": "Symbol", "localized": True},
        {"id": "slug", "name": "Slug", "type": "Symbol"},
        {"id": "views", "name": "Views", "type": "Integer"},
        {"id": "rating", "name": "Rating", "type": "Number"},
        {"id": "featured", "name": "Featured", "type": "Boolean"},
        {"id": "publishAt", "name": "Publish at", "type": "Date"},
        {"id": "body", "name": "Body", "type": "RichText"},
        {"id": "location", "name": "Location", "type": "Location"},
        {"id": "tags", "name": "Tags", "type": "Array", "items": {"type": "Symbol"}},
        {
            "id": "author",
            "name": "Author",
            "type": "Link",
            "linkType": "Entry",
            "validations": [{"linkContentType": ["person"]}],
        },
        {
            "id": "related",
            "name": "Related",
            "type": "Array",
            "items": {
                "type": "Link",
                "linkType": "Entry",
                "validations": [{"linkContentType": ["article", "person"]}],
            },
        },
        {"id": "hero", "name": "Hero", "type": "Link", "linkType": "Asset"},
        {"id": "anything", "name": "Anything", "type": "Link", "linkType": "Entry"},
    ],
}

PERSON_TYPE = {
    "sys": {"id": "person", "type": "ContentType"},
    "name": "Person",
    "displayField": "name",
    "fields": [
        {"id": "name", "name": "Name", "type": "Symbol"},
        {
            "id": "bestFriend",
            "name": "Best friend",
            "type": "Link",
            "linkType": "Entry",
            "validations": [{"linkContentType": ["person"]}],
        },
    ],
}


@pytest.fixture
def content_type_payloads() -> list[dict[str, Any]]:
    return [ARTICLE_TYPE, PERSON_TYPE]


@pytest.fixture
def type_registry(content_type_payloads):
    from cms_mirror.registry import TypeRegistry, index_content_type

    return TypeRegistry.build(index_content_type(raw) for raw in content_type_payloads)
