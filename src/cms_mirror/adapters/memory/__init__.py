"""In-memory adapters."""

from __future__ import annotations

from .locking import InMemoryLockStrategy
from .store import MemorySyncedStore, Tombstone
from .sync_state import InMemorySyncStateStore

__all__ = [
    "InMemoryLockStrategy",
    "InMemorySyncStateStore",
    "MemorySyncedStore",
    "Tombstone",
]
