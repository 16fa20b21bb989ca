"""InMemoryLockStrategy: single-process implementation of ILockStrategy."""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from dataclasses import dataclass, field
from uuid import uuid4

from ...primitives.exceptions import LockAcquisitionError
from ...primitives.locking import ResourceIdentifier

logger = logging.getLogger("cms_mirror.locking")


@dataclass
class _FIFOLock:
    """
    Lock that serves waiters strictly in arrival order.

    ``release`` hands ownership directly to the next waiter, so a newcomer
    can never overtake the queue.
    """

    _locked: bool = False
    _waiters: deque[asyncio.Future[None]] = field(default_factory=deque)

    async def acquire(self, resource: ResourceIdentifier, timeout: float) -> None:
        if not self._locked and not self._waiters:
            self._locked = True
            return

        waiter: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        self._waiters.append(waiter)
        logger.debug("Waiting for %s at position %d", resource, len(self._waiters))
        try:
            await asyncio.wait_for(waiter, timeout=timeout)
        except asyncio.TimeoutError as err:
            self._abandon(waiter)
            raise LockAcquisitionError(resource, timeout) from err
        except asyncio.CancelledError:
            self._abandon(waiter)
            raise

    def _abandon(self, waiter: asyncio.Future[None]) -> None:
        if waiter in self._waiters:
            self._waiters.remove(waiter)
        elif waiter.done() and not waiter.cancelled():
            # Ownership was handed over as we gave up; pass it on.
            self.release()

    def release(self) -> None:
        while self._waiters:
            waiter = self._waiters.popleft()
            if not waiter.done():
                waiter.set_result(None)
                return
        self._locked = False


@dataclass
class _LockState:
    fifo_lock: _FIFOLock = field(default_factory=_FIFOLock)
    token: str | None = None
    ref_count: int = 0


class InMemoryLockStrategy:
    """
    Per-resource FIFO mutex for one event loop.

    State for a resource lives only while someone holds or awaits it.
    """

    def __init__(self) -> None:
        self._locks: dict[tuple[str, str], _LockState] = {}

    async def acquire(
        self,
        resource: ResourceIdentifier,
        *,
        timeout: float = 10.0,
    ) -> str:
        key = (resource.resource_type, resource.resource_id)
        state = self._locks.get(key)
        if state is None:
            state = self._locks[key] = _LockState()
        state.ref_count += 1
        try:
            await state.fifo_lock.acquire(resource, timeout)
        except BaseException:
            self._unref(key, state)
            raise
        state.token = str(uuid4())
        logger.debug("Lock acquired: %s", resource)
        return state.token

    async def release(self, resource: ResourceIdentifier, token: str) -> None:
        key = (resource.resource_type, resource.resource_id)
        state = self._locks.get(key)
        if state is None or state.token != token:
            logger.warning("Attempted to release invalid or expired lock: %s", resource)
            return
        state.token = None
        state.fifo_lock.release()
        self._unref(key, state)
        logger.debug("Lock released: %s", resource)

    async def active_locks(self) -> list[ResourceIdentifier]:
        return [
            ResourceIdentifier(resource_type, resource_id)
            for (resource_type, resource_id), state in self._locks.items()
            if state.token is not None
        ]

    def _unref(self, key: tuple[str, str], state: _LockState) -> None:
        state.ref_count -= 1
        if state.ref_count <= 0:
            self._locks.pop(key, None)

    def __len__(self) -> int:
        return len(self._locks)
