"""Entries, assets and links as mirrored from the CMS."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from .value_object import ValueObject

DEFAULT_LOCALE = "en-US"

ASSET_CONTENT_TYPE = "Asset"

ENTRY_TYPES = frozenset({"Entry", "Asset"})
DELETED_TYPES = frozenset({"DeletedEntry", "DeletedAsset"})


class Sys(ValueObject):
    """System metadata carried by every entry.

    ``published_at`` is ``None`` for drafts and unpublished entries.
    ``locale`` is set once fields have been narrowed to a single locale.
    """

    id: str
    type: str = "Entry"
    content_type_id: str
    revision: int = 0
    created_at: datetime | None = None
    updated_at: datetime | None = None
    published_at: datetime | None = None
    locale: str | None = None


class Link(ValueObject):
    """A lazy reference to another entry or asset."""

    link_type: Literal["Entry", "Asset"]
    id: str

    @classmethod
    def from_raw(cls, raw: Any) -> Link | None:
        """Parse ``{"sys": {"type": "Link", "linkType": ..., "id": ...}}``."""
        if not isinstance(raw, dict):
            return None
        sys = raw.get("sys")
        if not isinstance(sys, dict) or sys.get("type") != "Link":
            return None
        link_type = sys.get("linkType")
        if link_type not in ("Entry", "Asset") or not sys.get("id"):
            return None
        return cls(link_type=link_type, id=sys["id"])

    def to_raw(self) -> dict[str, Any]:
        return {"sys": {"type": "Link", "linkType": self.link_type, "id": self.id}}


class Entry(ValueObject):
    """
    One content record.

    ``fields`` maps a field id to a mapping of locale to value, the shape the
    CMS sync API returns. Link values are kept in their raw form and parsed
    on access via :meth:`links`, so resolution always goes through a store.
    """

    sys: Sys
    fields: dict[str, dict[str, Any]] = {}

    # -- accessors ------------------------------------------------------------

    @property
    def id(self) -> str:
        return self.sys.id

    @property
    def content_type_id(self) -> str:
        return self.sys.content_type_id

    @property
    def revision(self) -> int:
        return self.sys.revision

    @property
    def is_asset(self) -> bool:
        return self.sys.type == "Asset"

    def field(
        self,
        field_id: str,
        locale: str | None = None,
        default: Any = None,
    ) -> Any:
        """Return the value of *field_id* for *locale* (or the entry's own)."""
        values = self.fields.get(field_id)
        if not values:
            return default
        return values.get(locale or self.sys.locale or DEFAULT_LOCALE, default)

    def links(self, field_id: str, locale: str | None = None) -> list[Link]:
        """Return the links held by a link or link-array field."""
        value = self.field(field_id, locale)
        raw_items = value if isinstance(value, list) else [value]
        return [link for link in map(Link.from_raw, raw_items) if link is not None]

    # -- (de)serialization ----------------------------------------------------

    @classmethod
    def from_raw(cls, raw: dict[str, Any], *, delivery: bool = True) -> Entry:
        """Build an entry from CMS JSON.

        Delivery and sync APIs only ever return published content, so when
        *delivery* is true a missing ``publishedAt`` defaults to ``updatedAt``.
        Management payloads (``delivery=False``) keep ``publishedAt`` as sent.
        """
        sys = raw["sys"]
        sys_type = sys.get("type", "Entry")
        if sys_type in ("Asset", "DeletedAsset"):
            content_type_id = ASSET_CONTENT_TYPE
        else:
            content_type_id = sys["contentType"]["sys"]["id"]
        published_at = sys.get("publishedAt")
        if published_at is None and delivery:
            published_at = sys.get("updatedAt")
        return cls(
            sys=Sys(
                id=sys["id"],
                type=sys_type,
                content_type_id=content_type_id,
                revision=_revision(sys),
                created_at=sys.get("createdAt"),
                updated_at=sys.get("updatedAt"),
                published_at=published_at,
                locale=sys.get("locale"),
            ),
            fields=raw.get("fields") or {},
        )

    def to_raw(self) -> dict[str, Any]:
        """Inverse of :meth:`from_raw`, suitable for JSON persistence."""
        sys: dict[str, Any] = {
            "id": self.sys.id,
            "type": self.sys.type,
            "revision": self.sys.revision,
        }
        if not self.is_asset:
            sys["contentType"] = {
                "sys": {
                    "type": "Link",
                    "linkType": "ContentType",
                    "id": self.sys.content_type_id,
                }
            }
        for key, value in (
            ("createdAt", self.sys.created_at),
            ("updatedAt", self.sys.updated_at),
            ("publishedAt", self.sys.published_at),
        ):
            if value is not None:
                sys[key] = value.isoformat()
        if self.sys.locale is not None:
            sys["locale"] = self.sys.locale
        return {"sys": sys, "fields": self.fields}


def _revision(sys: dict[str, Any]) -> int:
    """The publish revision of a payload.

    Management payloads carry ``version``, an edit counter that moves on
    every save; only ``revision`` or ``publishedCounter`` order publishes.
    """
    revision = sys.get("revision")
    if revision is None:
        revision = sys.get("publishedCounter")
    return int(revision or 0)
