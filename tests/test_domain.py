"""Tests for entries, links and change events."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from cms_mirror.domain import (
    ASSET_CONTENT_TYPE,
    DeletedItem,
    Entry,
    Link,
    SyncPage,
    WebhookAction,
    WebhookEvent,
)


class TestEntry:
    def test_from_raw_reads_sys(self, raw) -> None:
        entry = Entry.from_raw(raw.entry("e1", "article", revision=4))
        assert entry.id == "e1"
        assert entry.content_type_id == "article"
        assert entry.revision == 4
        assert entry.sys.published_at is not None
        assert not entry.is_asset

    def test_delivery_payload_without_published_at_counts_as_published(self, raw) -> None:
        payload = raw.entry("e1", published=False)
        assert Entry.from_raw(payload).sys.published_at is not None
        assert Entry.from_raw(payload, delivery=False).sys.published_at is None

    def test_management_version_is_not_a_revision(self, raw) -> None:
        payload = raw.entry("e1")
        del payload["sys"]["revision"]
        payload["sys"]["version"] = 9
        assert Entry.from_raw(payload, delivery=False).revision == 0

        payload["sys"]["publishedCounter"] = 2
        assert Entry.from_raw(payload, delivery=False).revision == 2

    def test_asset(self) -> None:
        entry = Entry.from_raw(
            {
                "sys": {"id": "a1", "type": "Asset", "revision": 1},
                "fields": {"title": {"en-US": "Logo"}},
            }
        )
        assert entry.is_asset
        assert entry.content_type_id == ASSET_CONTENT_TYPE
        assert "contentType" not in entry.to_raw()["sys"]

    def test_field_locale_lookup(self, make_entry) -> None:
        entry = make_entry("e1", title="Hello")
        assert entry.field("title") == "Hello"
        assert entry.field("title", "de-DE") is None
        assert entry.field("missing", default="x") == "x"

    def test_links(self, raw) -> None:
        entry = Entry.from_raw(
            raw.entry(
                "e1",
                fields={
                    "author": {"en-US": raw.link("p1")},
                    "related": {"en-US": [raw.link("e2"), {"not": "a link"}, raw.link("a1", "Asset")]},
                },
            )
        )
        assert entry.links("author") == [Link(link_type="Entry", id="p1")]
        assert [link.id for link in entry.links("related")] == ["e2", "a1"]
        assert entry.links("missing") == []

    def test_raw_roundtrip_keeps_identity(self, raw) -> None:
        entry = Entry.from_raw(raw.entry("e1", fields={"title": {"en-US": "Hi"}}))
        again = Entry.from_raw(entry.to_raw(), delivery=False)
        assert again == entry
        assert hash(again) == hash(entry)

    def test_entries_are_immutable(self, make_entry) -> None:
        entry = make_entry("e1")
        with pytest.raises(ValidationError):
            entry.sys = entry.sys  # type: ignore[misc]


class TestLink:
    def test_rejects_non_links(self) -> None:
        assert Link.from_raw("e1") is None
        assert Link.from_raw({"sys": {"type": "Entry", "id": "e1"}}) is None
        assert Link.from_raw({"sys": {"type": "Link", "linkType": "Space", "id": "s"}}) is None

    def test_to_raw(self) -> None:
        raw_link = Link(link_type="Asset", id="a1").to_raw()
        assert Link.from_raw(raw_link) == Link(link_type="Asset", id="a1")


class TestEvents:
    def test_removing_actions(self) -> None:
        assert WebhookAction.DELETE.removes
        assert WebhookAction.ARCHIVE.removes
        assert not WebhookAction.PUBLISH.removes
        assert not WebhookAction.UNPUBLISH.removes

    def test_event_entry_id(self, make_entry) -> None:
        event = WebhookEvent(action=WebhookAction.PUBLISH, entry=make_entry("e9"))
        assert event.entry_id == "e9"

    def test_sync_page_deleted_ids(self) -> None:
        page = SyncPage(
            deleted=(DeletedItem(id="a"), DeletedItem(id="b", type="DeletedAsset")),
            next_token="t",
            done=True,
        )
        assert page.deleted_ids == ["a", "b"]
