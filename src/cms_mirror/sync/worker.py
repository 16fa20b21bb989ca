"""WebhookEventWorker: partitioned pool applying webhook deltas."""

from __future__ import annotations

import asyncio
import contextlib
import hashlib
import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ..domain.events import WebhookEvent
    from .engine import SyncEngine

logger = logging.getLogger("cms_mirror.sync")


def partition_for(entry_id: str, partition_count: int) -> int:
    """SHA-256 of the entry id modulo *partition_count*."""
    digest = hashlib.sha256(entry_id.encode()).hexdigest()
    return int(digest, 16) % partition_count


class WebhookEventWorker:
    """
    Applies accepted webhook events through the sync engine.

    Events are partitioned by entry id so every event for one id is
    handled by the same consumer in arrival order, while different ids
    proceed in parallel. :meth:`submit` never waits for the store.
    A failure is logged and does not stop the partition.

    With *sync_after_apply*, every event that is not a draft edit is
    followed by an incremental sync run for its id.
    """

    def __init__(
        self,
        engine: SyncEngine,
        *,
        concurrency: int = 4,
        sync_after_apply: bool = False,
    ) -> None:
        if concurrency < 1:
            raise ValueError("concurrency must be >= 1")
        self._engine = engine
        self._sync_after_apply = sync_after_apply
        self._queues: list[asyncio.Queue[WebhookEvent]] = [
            asyncio.Queue() for _ in range(concurrency)
        ]
        self._tasks: list[asyncio.Task[None]] = []
        self.processed = 0
        self.failed = 0

    @property
    def running(self) -> bool:
        return bool(self._tasks)

    def submit(self, event: WebhookEvent) -> None:
        partition = partition_for(event.entry_id, len(self._queues))
        self._queues[partition].put_nowait(event)
        logger.debug("Queued %s for %s on partition %d", event.action.value, event.entry_id, partition)

    async def start(self) -> None:
        if self._tasks:
            return
        self._tasks = [
            asyncio.create_task(self._run(index), name=f"webhook-worker-{index}")
            for index in range(len(self._queues))
        ]

    async def join(self) -> None:
        """Wait until every queued event has been handled."""
        await asyncio.gather(*(queue.join() for queue in self._queues))

    async def stop(self, *, drain: bool = True) -> None:
        if drain and self._tasks:
            await self.join()
        tasks, self._tasks = self._tasks, []
        for task in tasks:
            task.cancel()
        for task in tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task

    async def _run(self, index: int) -> None:
        queue = self._queues[index]
        while True:
            event = await queue.get()
            try:
                await self._engine.apply_event(event)
                if self._sync_after_apply and not event.action.is_draft:
                    await self._engine.sync_next(up_to_id=event.entry_id)
                self.processed += 1
            except asyncio.CancelledError:
                raise
            except Exception:
                self.failed += 1
                logger.exception(
                    "Failed to apply %s for %s", event.action.value, event.entry_id
                )
            finally:
                queue.task_done()
