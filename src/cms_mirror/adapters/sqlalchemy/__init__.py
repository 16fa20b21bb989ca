"""SQLAlchemy (async) adapters for the durable synced store."""

from __future__ import annotations

from .exceptions import SQLAlchemyStoreError
from .models import Base, EntryRecord, SyncStateRecord, TombstoneRecord
from .store import DurableSyncedStore
from .sync_state import SQLAlchemySyncStateStore

__all__ = [
    "Base",
    "DurableSyncedStore",
    "EntryRecord",
    "SQLAlchemyStoreError",
    "SQLAlchemySyncStateStore",
    "SyncStateRecord",
    "TombstoneRecord",
]
