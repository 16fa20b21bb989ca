"""Tables backing the durable synced store."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Index, Integer, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from ...domain.entry import Entry
from .types import EntryPayload


class Base(DeclarativeBase):
    """Declarative base for the mirror's tables."""


class EntryRecord(Base):
    """One mirrored entry or asset; ``data`` is the full entry."""

    __tablename__ = "cms_entries"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    content_type_id: Mapped[str] = mapped_column(String(64), nullable=False)
    revision: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    published_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    data: Mapped[Entry] = mapped_column(EntryPayload, nullable=False)

    __table_args__ = (
        Index("ix_cms_entries_type_updated", "content_type_id", "updated_at"),
    )


class TombstoneRecord(Base):
    __tablename__ = "cms_tombstones"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    revision: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    deleted_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)


class SyncStateRecord(Base):
    __tablename__ = "cms_sync_state"

    key: Mapped[str] = mapped_column(String(64), primary_key=True)
    token: Mapped[str] = mapped_column(String, nullable=False)
