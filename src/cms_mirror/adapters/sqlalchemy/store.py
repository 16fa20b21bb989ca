"""DurableSyncedStore: materialized entries in a SQL database."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from sqlalchemy import delete, select

from ...domain.entry import DEFAULT_LOCALE, Entry
from ...middleware.context import ALL_LOCALES
from ...ports.search_result import SearchResult
from ...query.filter import matches_all, parse_filter
from ...query.operators import Operator
from ...query.options import QueryOptions
from .exceptions import translate_errors
from .models import Base, EntryRecord, TombstoneRecord

if TYPE_CHECKING:
    from collections.abc import Mapping

    from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

    from ...middleware.context import MiddlewareContext

logger = logging.getLogger(__name__)


def _naive_utc(value: datetime | None) -> datetime | None:
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


class DurableSyncedStore:
    """
    Same semantics as the memory backend, persisted through SQLAlchemy.

    Every write runs in its own transaction covering the entry row and its
    tombstone, so readers never see a half-applied change. Content type and
    ``sys.id`` conditions are pushed into SQL; other conditions, ordering
    and paging are evaluated on the loaded rows.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        default_locale: str = DEFAULT_LOCALE,
    ) -> None:
        self._session_factory = session_factory
        self._default_locale = default_locale

    @staticmethod
    async def create_schema(engine: AsyncEngine) -> None:
        """Create the entry, tombstone and sync-state tables if missing."""
        async with translate_errors("create_schema"), engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    # ── IStore ───────────────────────────────────────────────────

    async def find(
        self,
        entry_id: str,
        *,
        context: MiddlewareContext | None = None,  # noqa: ARG002
    ) -> Entry | None:
        async with translate_errors("find"), self._session_factory() as session:
            record = await session.get(EntryRecord, entry_id)
            return self._to_entry(record) if record is not None else None

    async def find_by(
        self,
        content_type: str,
        filter: Mapping[str, Any] | None = None,  # noqa: A002
        *,
        options: QueryOptions | None = None,
        context: MiddlewareContext | None = None,
    ) -> Entry | None:
        results = await self._query(content_type, filter, options or QueryOptions(), context)
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
            return await self._query(content_type, filter, options or QueryOptions(), context)

        return SearchResult(list_fn)

    # ── ISyncedStore ─────────────────────────────────────────────

    async def get_revision(self, entry_id: str) -> int | None:
        async with translate_errors("get_revision"), self._session_factory() as session:
            return await self._revision(session, entry_id)

    async def upsert(self, entry: Entry) -> None:
        async with translate_errors("upsert"), self._session_factory() as session:
            async with session.begin():
                await self._write(session, entry)

    async def index(self, entry: Entry) -> bool:
        async with translate_errors("index"), self._session_factory() as session:
            async with session.begin():
                current = await self._revision(session, entry.id, for_update=True)
                if current is not None and entry.revision <= current:
                    logger.debug(
                        "Skipping %s revision %d (stored %d)",
                        entry.id,
                        entry.revision,
                        current,
                    )
                    return False
                await self._write(session, entry)
                return True

    async def remove(
        self,
        entry_id: str,
        revision: int,
        *,
        force: bool = False,
        deleted_at: datetime | None = None,
    ) -> bool:
        async with translate_errors("remove"), self._session_factory() as session:
            async with session.begin():
                current = await self._revision(session, entry_id, for_update=True)
                if not force and current is not None and revision <= current:
                    return False
                await session.execute(delete(EntryRecord).where(EntryRecord.id == entry_id))
                tombstone = await session.get(TombstoneRecord, entry_id)
                when = _naive_utc(deleted_at or datetime.now(timezone.utc))
                if tombstone is None:
                    session.add(TombstoneRecord(id=entry_id, revision=revision, deleted_at=when))
                else:
                    tombstone.revision = revision
                    tombstone.deleted_at = when
                return True

    async def is_tombstoned(self, entry_id: str) -> bool:
        async with translate_errors("is_tombstoned"), self._session_factory() as session:
            return await session.get(TombstoneRecord, entry_id) is not None

    async def entry_ids(self) -> set[str]:
        async with translate_errors("entry_ids"), self._session_factory() as session:
            result = await session.scalars(select(EntryRecord.id))
            return set(result.all())

    async def purge_tombstones(self, older_than: datetime) -> int:
        async with translate_errors("purge_tombstones"), self._session_factory() as session:
            async with session.begin():
                result = await session.execute(
                    delete(TombstoneRecord).where(
                        TombstoneRecord.deleted_at < _naive_utc(older_than)
                    )
                )
                return int(result.rowcount or 0)

    async def clear(self) -> None:
        async with translate_errors("clear"), self._session_factory() as session:
            async with session.begin():
                await session.execute(delete(EntryRecord))
                await session.execute(delete(TombstoneRecord))

    # ── Internals ────────────────────────────────────────────────

    @staticmethod
    def _to_entry(record: EntryRecord) -> Entry:
        return record.data

    @staticmethod
    async def _revision(
        session: AsyncSession, entry_id: str, *, for_update: bool = False
    ) -> int | None:
        stmt = select(EntryRecord.revision).where(EntryRecord.id == entry_id)
        if for_update:
            stmt = stmt.with_for_update()
        revision = await session.scalar(stmt)
        if revision is not None:
            return int(revision)
        tombstone = await session.scalar(
            select(TombstoneRecord.revision).where(TombstoneRecord.id == entry_id)
        )
        return int(tombstone) if tombstone is not None else None

    @staticmethod
    async def _write(session: AsyncSession, entry: Entry) -> None:
        values = {
            "content_type_id": entry.content_type_id,
            "revision": entry.revision,
            "updated_at": _naive_utc(entry.sys.updated_at),
            "published_at": _naive_utc(entry.sys.published_at),
            "data": entry,
        }
        record = await session.get(EntryRecord, entry.id)
        if record is None:
            session.add(EntryRecord(id=entry.id, **values))
        else:
            for name, value in values.items():
                setattr(record, name, value)
        await session.execute(delete(TombstoneRecord).where(TombstoneRecord.id == entry.id))

    async def _query(
        self,
        content_type: str,
        filter: Mapping[str, Any] | None,  # noqa: A002
        options: QueryOptions,
        context: MiddlewareContext | None,
    ) -> list[Entry]:
        locale = options.locale or (context.locale if context is not None else None)
        if locale is None or locale == ALL_LOCALES:
            locale = self._default_locale
        stmt = (
            select(EntryRecord)
            .where(EntryRecord.content_type_id == content_type)
            .order_by(EntryRecord.updated_at, EntryRecord.id)
        )
        remaining = []
        for condition in parse_filter(filter):
            if condition.path == "sys.id" and condition.operator is Operator.EQ:
                stmt = stmt.where(EntryRecord.id == condition.value)
            elif condition.path == "sys.id" and condition.operator is Operator.IN:
                ids = condition.value
                if isinstance(ids, str):
                    ids = [part.strip() for part in ids.split(",")]
                stmt = stmt.where(EntryRecord.id.in_(list(ids)))
            else:
                remaining.append(condition)
        async with translate_errors("find_all"), self._session_factory() as session:
            records = (await session.scalars(stmt)).all()
            entries = [self._to_entry(record) for record in records]
        matched = [entry for entry in entries if matches_all(entry, remaining, locale)]
        return options.apply(matched, locale)
