"""SQLAlchemy sync-state store implementing ISyncStateStore."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import text

from ...ports.sync_state import SYNC_TOKEN_KEY
from .exceptions import translate_errors
from .models import SyncStateRecord

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

TABLE_NAME = SyncStateRecord.__tablename__


class SQLAlchemySyncStateStore:
    """
    Keeps sync tokens in ``cms_sync_state`` (``key`` PK, ``token``).
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        table_name: str = TABLE_NAME,
    ) -> None:
        self._session_factory = session_factory
        self._table = table_name

    async def get_token(self, key: str = SYNC_TOKEN_KEY) -> str | None:
        async with translate_errors("get_token"), self._session_factory() as session:
            result = await session.execute(
                text(f"SELECT token FROM {self._table} WHERE key = :key"),
                {"key": key},
            )
            row = result.fetchone()
            return str(row[0]) if row else None

    async def save_token(self, token: str, key: str = SYNC_TOKEN_KEY) -> None:
        async with translate_errors("save_token"), self._session_factory() as session:
            await session.execute(
                text(
                    f"""
                    INSERT INTO {self._table} (key, token)
                    VALUES (:key, :token)
                    ON CONFLICT (key) DO UPDATE SET token = :token
                    """
                ),
                {"key": key, "token": token},
            )
            await session.commit()

    async def reset_token(self, key: str = SYNC_TOKEN_KEY) -> None:
        async with translate_errors("reset_token"), self._session_factory() as session:
            await session.execute(
                text(f"DELETE FROM {self._table} WHERE key = :key"),
                {"key": key},
            )
            await session.commit()
