"""MemorySyncedStore: materialized entries held in process memory."""

from __future__ import annotations

import logging
from collections.abc import Hashable
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from ...domain.entry import DEFAULT_LOCALE
from ...middleware.context import ALL_LOCALES
from ...ports.search_result import SearchResult
from ...query.filter import Condition, matches_all, parse_filter, resolve_path
from ...query.operators import Operator
from ...query.options import QueryOptions

if TYPE_CHECKING:
    from collections.abc import Mapping

    from ...domain.entry import Entry
    from ...middleware.context import MiddlewareContext

logger = logging.getLogger(__name__)

_IndexKey = tuple[str, str, str]


@dataclass(frozen=True)
class Tombstone:
    entry_id: str
    revision: int
    deleted_at: datetime


class MemorySyncedStore:
    """
    Entries indexed by id, by content type, and by ``(contentTypeId,
    fieldPath, locale)`` for equality lookups.

    Field indexes are built on first use and dropped whenever an entry of
    that content type changes. No write awaits, so each write is atomic
    with respect to other tasks on the loop.
    """

    def __init__(self, *, default_locale: str = DEFAULT_LOCALE) -> None:
        self._default_locale = default_locale
        self._entries: dict[str, Entry] = {}
        self._by_type: dict[str, dict[str, None]] = {}
        self._field_index: dict[_IndexKey, dict[Hashable, set[str]]] = {}
        self._tombstones: dict[str, Tombstone] = {}

    # ── IStore ───────────────────────────────────────────────────

    async def find(
        self,
        entry_id: str,
        *,
        context: MiddlewareContext | None = None,  # noqa: ARG002
    ) -> Entry | None:
        return self._entries.get(entry_id)

    async def find_by(
        self,
        content_type: str,
        filter: Mapping[str, Any] | None = None,  # noqa: A002
        *,
        options: QueryOptions | None = None,
        context: MiddlewareContext | None = None,
    ) -> Entry | None:
        options = options or QueryOptions()
        results = self._query(content_type, filter, options, context)
        return results[0] if results else None

    def find_all(
        self,
        content_type: str,
        filter: Mapping[str, Any] | None = None,  # noqa: A002
        *,
        options: QueryOptions | None = None,
        context: MiddlewareContext | None = None,
    ) -> SearchResult[Entry]:
        async def list_fn() -> list[Entry]:
            return self._query(content_type, filter, options or QueryOptions(), context)

        return SearchResult(list_fn)

    # ── ISyncedStore ─────────────────────────────────────────────

    async def get_revision(self, entry_id: str) -> int | None:
        return self._revision(entry_id)

    async def upsert(self, entry: Entry) -> None:
        self._write(entry)

    async def index(self, entry: Entry) -> bool:
        current = self._revision(entry.id)
        if current is not None and entry.revision <= current:
            logger.debug(
                "Skipping %s revision %d (stored %d)", entry.id, entry.revision, current
            )
            return False
        self._write(entry)
        return True

    async def remove(
        self,
        entry_id: str,
        revision: int,
        *,
        force: bool = False,
        deleted_at: datetime | None = None,
    ) -> bool:
        current = self._revision(entry_id)
        if not force and current is not None and revision <= current:
            return False
        previous = self._entries.pop(entry_id, None)
        if previous is not None:
            self._by_type.get(previous.content_type_id, {}).pop(entry_id, None)
            self._invalidate(previous.content_type_id)
        self._tombstones[entry_id] = Tombstone(
            entry_id, revision, deleted_at or datetime.now(timezone.utc)
        )
        return True

    async def is_tombstoned(self, entry_id: str) -> bool:
        return entry_id in self._tombstones

    async def entry_ids(self) -> set[str]:
        return set(self._entries)

    async def purge_tombstones(self, older_than: datetime) -> int:
        expired = [
            entry_id
            for entry_id, tombstone in self._tombstones.items()
            if tombstone.deleted_at < older_than
        ]
        for entry_id in expired:
            del self._tombstones[entry_id]
        return len(expired)

    async def clear(self) -> None:
        self._entries.clear()
        self._by_type.clear()
        self._field_index.clear()
        self._tombstones.clear()

    # ── Test helpers ─────────────────────────────────────────────

    def snapshot(self) -> dict[str, dict[str, Any]]:
        """Raw copy of every stored entry, keyed by id."""
        return {entry_id: entry.to_raw() for entry_id, entry in self._entries.items()}

    def tombstones(self) -> dict[str, Tombstone]:
        return dict(self._tombstones)

    def __len__(self) -> int:
        return len(self._entries)

    # ── Internals ────────────────────────────────────────────────

    def _revision(self, entry_id: str) -> int | None:
        entry = self._entries.get(entry_id)
        if entry is not None:
            return entry.revision
        tombstone = self._tombstones.get(entry_id)
        return tombstone.revision if tombstone is not None else None

    def _write(self, entry: Entry) -> None:
        previous = self._entries.get(entry.id)
        if previous is not None and previous.content_type_id != entry.content_type_id:
            self._by_type.get(previous.content_type_id, {}).pop(entry.id, None)
            self._invalidate(previous.content_type_id)
        self._entries[entry.id] = entry
        self._by_type.setdefault(entry.content_type_id, {})[entry.id] = None
        self._tombstones.pop(entry.id, None)
        self._invalidate(entry.content_type_id)

    def _invalidate(self, content_type: str) -> None:
        for key in [k for k in self._field_index if k[0] == content_type]:
            del self._field_index[key]

    def _locale(self, options: QueryOptions, context: MiddlewareContext | None) -> str:
        locale = options.locale or (context.locale if context is not None else None)
        if locale is None or locale == ALL_LOCALES:
            return self._default_locale
        return locale

    def _query(
        self,
        content_type: str,
        filter: Mapping[str, Any] | None,  # noqa: A002
        options: QueryOptions,
        context: MiddlewareContext | None,
    ) -> list[Entry]:
        locale = self._locale(options, context)
        conditions = parse_filter(filter)
        ids: list[str] | None = None
        remaining: list[Condition] = []
        for condition in conditions:
            hits = self._indexed(content_type, condition, locale)
            if hits is None:
                remaining.append(condition)
            else:
                base = ids if ids is not None else list(self._by_type.get(content_type, {}))
                ids = [i for i in base if i in hits]
        candidates = (
            self._entries[i] for i in (ids if ids is not None else self._by_type.get(content_type, {}))
        )
        matched = [e for e in candidates if matches_all(e, remaining, locale)]
        return options.apply(matched, locale)

    def _indexed(self, content_type: str, condition: Condition, locale: str) -> set[str] | None:
        """Ids matching an equality condition via the field index, if usable."""
        if condition.operator is not Operator.EQ or condition.is_sys:
            return None
        expected = condition.value
        if not isinstance(expected, (str, int, float)) or isinstance(expected, bool):
            return None
        key = (content_type, condition.path, locale)
        index = self._field_index.get(key)
        if index is None:
            index = self._field_index[key] = self._build_index(content_type, condition.path, locale)
        return index.get(expected, set())

    def _build_index(self, content_type: str, path: str, locale: str) -> dict[Hashable, set[str]]:
        index: dict[Hashable, set[str]] = {}
        for entry_id in self._by_type.get(content_type, {}):
            value = resolve_path(self._entries[entry_id], path, locale)
            values = value if isinstance(value, list) else [value]
            for item in values:
                if isinstance(item, Hashable) and item is not None:
                    index.setdefault(item, set()).add(entry_id)
        return index
