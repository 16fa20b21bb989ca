"""Ports (protocols) implemented by adapters."""

from __future__ import annotations

from .locking import ILockStrategy
from .middleware import IStoreMiddleware
from .search_result import SearchResult
from .store import IStore, ISyncedStore
from .sync_state import SYNC_TOKEN_KEY, ISyncStateStore

__all__ = [
    "SYNC_TOKEN_KEY",
    "ILockStrategy",
    "IStore",
    "IStoreMiddleware",
    "ISyncStateStore",
    "ISyncedStore",
    "SearchResult",
]
