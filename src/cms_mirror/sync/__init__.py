"""Synchronization: engine, retry policy, webhook worker pool."""

from __future__ import annotations

from .engine import SyncEngine, SyncResult, SyncSource, SyncState
from .lazy import LazySyncStore
from .retry import RetryPolicy
from .worker import WebhookEventWorker, partition_for

__all__ = [
    "LazySyncStore",
    "RetryPolicy",
    "SyncEngine",
    "SyncResult",
    "SyncSource",
    "SyncState",
    "WebhookEventWorker",
    "partition_for",
]
