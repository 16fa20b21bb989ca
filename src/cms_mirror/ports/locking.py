"""ILockStrategy: protocol for per-resource mutual exclusion."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from ..primitives.locking import ResourceIdentifier


@runtime_checkable
class ILockStrategy(Protocol):
    """
    Lock strategy protocol.

    Implementations can use database advisory locks or Redis for
    multi-process deployments, or in-memory queues for a single process.
    """

    async def acquire(
        self,
        resource: ResourceIdentifier,
        *,
        timeout: float = 10.0,
    ) -> str:
        """Acquire the lock for *resource* and return a release token.

        Raises:
            LockAcquisitionError: If the lock could not be acquired in time.
        """
        ...

    async def release(self, resource: ResourceIdentifier, token: str) -> None:
        ...

    async def active_locks(self) -> list[ResourceIdentifier]:
        ...
