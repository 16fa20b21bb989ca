"""Tests for sync token persistence and SQLAlchemy error translation."""

from __future__ import annotations

import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from cms_mirror.adapters.memory import InMemorySyncStateStore
from cms_mirror.adapters.sqlalchemy import (
    DurableSyncedStore,
    SQLAlchemyStoreError,
    SQLAlchemySyncStateStore,
)
from cms_mirror.ports import SYNC_TOKEN_KEY, ISyncStateStore
from cms_mirror.primitives import StoreBackendError


@pytest.fixture
async def engine():
    eng = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    yield eng
    await eng.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest.fixture(params=["memory", "sqlalchemy"])
async def state_store(request, engine, session_factory):
    if request.param == "memory":
        return InMemorySyncStateStore()
    await DurableSyncedStore.create_schema(engine)
    return SQLAlchemySyncStateStore(session_factory)


class TestSyncStateStore:
    @pytest.mark.asyncio
    async def test_roundtrip(self, state_store) -> None:
        assert isinstance(state_store, ISyncStateStore)
        assert await state_store.get_token() is None
        await state_store.save_token("t1")
        await state_store.save_token("t2")
        assert await state_store.get_token() == "t2"
        assert await state_store.get_token(SYNC_TOKEN_KEY) == "t2"

    @pytest.mark.asyncio
    async def test_keys_are_independent(self, state_store) -> None:
        await state_store.save_token("a", key="sync:a")
        await state_store.save_token("b", key="sync:b")
        await state_store.reset_token(key="sync:a")
        assert await state_store.get_token("sync:a") is None
        assert await state_store.get_token("sync:b") == "b"

    @pytest.mark.asyncio
    async def test_reset_missing_key(self, state_store) -> None:
        await state_store.reset_token()
        assert await state_store.get_token() is None


class TestErrorTranslation:
    @pytest.mark.asyncio
    async def test_missing_tables_raise_store_backend_error(self, session_factory) -> None:
        store = DurableSyncedStore(session_factory)
        with pytest.raises(SQLAlchemyStoreError) as excinfo:
            await store.find("e1")
        assert isinstance(excinfo.value, StoreBackendError)
        assert "find failed" in str(excinfo.value)

    @pytest.mark.asyncio
    async def test_sync_state_errors_translated(self, session_factory) -> None:
        with pytest.raises(StoreBackendError):
            await SQLAlchemySyncStateStore(session_factory).get_token()
