"""Column type for entry payloads."""

from __future__ import annotations

from typing import Any

from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.types import JSON, TypeDecorator

from ...domain.entry import Entry


class EntryPayload(TypeDecorator[Entry]):
    """
    Stores an :class:`Entry` as its raw CMS JSON.

    JSONB on PostgreSQL, plain JSON elsewhere (SQLite).
    """

    impl = JSON
    cache_ok = True

    def load_dialect_impl(self, dialect: Any) -> Any:
        if dialect.name == "postgresql":
            return dialect.type_descriptor(JSONB())
        return dialect.type_descriptor(JSON())

    def process_bind_param(self, value: Entry | None, dialect: Any) -> Any:  # noqa: ARG002
        return value.to_raw() if value is not None else None

    def process_result_value(self, value: Any, dialect: Any) -> Entry | None:  # noqa: ARG002
        return Entry.from_raw(value, delivery=False) if value is not None else None
