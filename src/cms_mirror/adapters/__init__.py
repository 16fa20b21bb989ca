"""Store adapters."""

from __future__ import annotations

from .direct import DirectStore
from .memory import InMemoryLockStrategy, InMemorySyncStateStore, MemorySyncedStore

__all__ = [
    "DirectStore",
    "InMemoryLockStrategy",
    "InMemorySyncStateStore",
    "MemorySyncedStore",
]
