"""Concurrency utilities for per-entry serialization."""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from types import TracebackType

    from .ports.locking import ILockStrategy
    from .primitives.locking import ResourceIdentifier

logger = logging.getLogger("cms_mirror.locking")


class CriticalSection:
    """
    Async context manager holding locks on one or more resources.

    Resources are deduplicated and acquired in sorted order; locks taken
    before a failure are released again.

    Usage::

        async with CriticalSection([ResourceIdentifier("entry", entry_id)], locks):
            await store.index(entry)
    """

    def __init__(
        self,
        resources: list[ResourceIdentifier],
        lock_strategy: ILockStrategy,
        *,
        timeout: float = 10.0,
    ) -> None:
        self._resources = sorted(set(resources))
        self._lock_strategy = lock_strategy
        self._timeout = timeout
        self._acquired: list[tuple[ResourceIdentifier, str]] = []

    async def __aenter__(self) -> CriticalSection:
        start = time.perf_counter()
        try:
            for resource in self._resources:
                token = await self._lock_strategy.acquire(resource, timeout=self._timeout)
                self._acquired.append((resource, token))
        except BaseException:
            await self._release_all()
            raise
        logger.debug(
            "Acquired %d lock(s) in %.1fms",
            len(self._resources),
            (time.perf_counter() - start) * 1000,
        )
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self._release_all()

    async def _release_all(self) -> None:
        while self._acquired:
            resource, token = self._acquired.pop()
            await self._lock_strategy.release(resource, token)
