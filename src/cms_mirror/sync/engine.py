"""SyncEngine: full and incremental synchronization into a synced store."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import TYPE_CHECKING, Any, Protocol, TypeVar

from ..adapters.memory.locking import InMemoryLockStrategy
from ..adapters.memory.sync_state import InMemorySyncStateStore
from ..concurrency import CriticalSection
from ..domain.events import WebhookAction
from ..primitives.exceptions import (
    CMSMirrorError,
    RateLimitedError,
    SyncCancelledError,
    SyncError,
    TokenExpiredError,
    TransientError,
)
from ..primitives.locking import ResourceIdentifier
from .retry import RetryPolicy

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Awaitable, Callable

    from ..config import MirrorConfig
    from ..domain.entry import Entry
    from ..domain.events import SyncPage, WebhookEvent
    from ..ports.locking import ILockStrategy
    from ..ports.store import ISyncedStore
    from ..ports.sync_state import ISyncStateStore

logger = logging.getLogger("cms_mirror.sync")

T = TypeVar("T")


class SyncSource(Protocol):
    """The part of the CMS client the engine consumes."""

    async def sync_page(self, token: str | None = None) -> SyncPage:
        ...


class SyncState(str, Enum):
    UNINITIALIZED = "uninitialized"
    FULL_SYNC_IN_PROGRESS = "full_sync_in_progress"
    IDLE = "idle"
    INCREMENTAL_SYNC_IN_PROGRESS = "incremental_sync_in_progress"


@dataclass(frozen=True)
class SyncResult:
    pages: int
    upserted: int
    deleted: int
    token: str
    found_up_to_id: bool = True

    @property
    def count(self) -> int:
        return self.upserted + self.deleted


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SyncEngine:
    """
    Keeps a synced store consistent with the CMS.

    States: ``UNINITIALIZED → FULL_SYNC_IN_PROGRESS → IDLE ⇄
    INCREMENTAL_SYNC_IN_PROGRESS``. A failed or cancelled full sync returns
    to ``UNINITIALIZED`` with no cursor persisted.

    Incremental changes (webhook events and cursor pages) are applied under
    a per-entry-id lock and only when their revision is newer than what the
    store holds, which makes duplicate or stale deliveries no-ops.
    """

    def __init__(
        self,
        source: SyncSource,
        store: ISyncedStore,
        *,
        state_store: ISyncStateStore | None = None,
        lock_strategy: ILockStrategy | None = None,
        retry_policy: RetryPolicy | None = None,
        tombstone_ttl: float = 3600.0,
        lock_timeout: float = 30.0,
        resync_delay: float | None = None,
        resync_limit: int = 3,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._source = source
        self._store = store
        self._state_store = state_store or InMemorySyncStateStore()
        self._locks = lock_strategy or InMemoryLockStrategy()
        self._retry = retry_policy or RetryPolicy()
        self._tombstone_ttl = tombstone_ttl
        self._lock_timeout = lock_timeout
        self._resync_delay = resync_delay
        self._resync_limit = resync_limit
        self._resyncs: set[asyncio.Task[None]] = set()
        self._clock = clock
        self._state = SyncState.UNINITIALIZED
        self._run_lock = asyncio.Lock()
        self._init_lock = asyncio.Lock()
        self._in_flight = 0
        self._touched_during_full_sync: set[str] | None = None

    @classmethod
    def from_config(
        cls,
        config: MirrorConfig,
        source: SyncSource,
        store: ISyncedStore,
        **kwargs: Any,
    ) -> SyncEngine:
        retry = RetryPolicy(
            max_attempts=config.sync_retry_limit,
            base_delay=min(config.sync_retry_wait, config.sync_retry_max_wait),
            max_delay=config.sync_retry_max_wait,
        )
        return cls(
            source,
            store,
            retry_policy=retry,
            tombstone_ttl=config.tombstone_ttl,
            resync_delay=config.resync_delay,
            **kwargs,
        )

    @property
    def state(self) -> SyncState:
        if self._state is SyncState.IDLE and self._in_flight:
            return SyncState.INCREMENTAL_SYNC_IN_PROGRESS
        return self._state

    @property
    def store(self) -> ISyncedStore:
        return self._store

    # ── Startup ──────────────────────────────────────────────────

    async def restore(self) -> bool:
        """Resume from a persisted cursor; return whether one was found."""
        if self._state is not SyncState.UNINITIALIZED:
            return True
        token = await self._state_store.get_token()
        if token is None:
            return False
        self._state = SyncState.IDLE
        logger.info("Resumed from persisted sync token")
        return True

    async def ensure_synced(self) -> None:
        """Run the full sync unless the store is already initialized.

        Concurrent callers share a single run.
        """
        if self._state is SyncState.IDLE:
            return
        async with self._init_lock:
            if self._state is SyncState.FULL_SYNC_IN_PROGRESS:
                async with self._run_lock:
                    pass
            if self._state is SyncState.UNINITIALIZED and not await self.restore():
                await self.full_sync()

    # ── Full sync ────────────────────────────────────────────────

    async def full_sync(self, *, cancel: asyncio.Event | None = None) -> SyncResult:
        """
        Load every entry from an initial sync and persist the final cursor.

        All-or-nothing: on error or cancellation the engine returns to
        ``UNINITIALIZED`` and no cursor is kept, so a retry starts over.
        Entries the store holds but the sync did not return are removed.
        """
        async with self._run_lock:
            self._state = SyncState.FULL_SYNC_IN_PROGRESS
            self._touched_during_full_sync = set()
            logger.info("Full sync started")
            try:
                await self._state_store.reset_token()
                result = await self._run_full_sync(cancel)
            except BaseException as err:
                self._state = SyncState.UNINITIALIZED
                if isinstance(err, (SyncCancelledError, asyncio.CancelledError)):
                    logger.warning("Full sync cancelled")
                else:
                    logger.error("Full sync failed: %s", err)
                raise
            finally:
                self._touched_during_full_sync = None
            self._state = SyncState.IDLE
        logger.info(
            "Full sync finished: %d pages, %d upserted, %d deleted",
            result.pages,
            result.upserted,
            result.deleted,
        )
        await self.purge_tombstones()
        return result

    async def _run_full_sync(self, cancel: asyncio.Event | None) -> SyncResult:
        token: str | None = None
        seen: set[str] = set()
        pages = upserted = deleted = 0
        while True:
            page = await self._fetch(token, cancel)
            _check_cancelled(cancel)
            for entry in page.entries:
                await self._store.upsert(entry)
                seen.add(entry.id)
            upserted += len(page.entries)
            for item in page.deleted:
                await self._store.remove(item.id, item.revision, force=True)
                seen.discard(item.id)
            deleted += len(page.deleted)
            token = page.next_token
            pages += 1
            if page.done:
                break

        keep = seen | (self._touched_during_full_sync or set())
        for stale_id in await self._store.entry_ids() - keep:
            revision = await self._store.get_revision(stale_id)
            await self._store.remove(stale_id, revision or 0, force=True)
            deleted += 1
        _check_cancelled(cancel)
        await self._state_store.save_token(page.next_token)
        return SyncResult(
            pages=pages, upserted=upserted, deleted=deleted, token=page.next_token
        )

    # ── Incremental sync ─────────────────────────────────────────

    async def sync_next(self, *, up_to_id: str | None = None) -> SyncResult:
        """
        Apply every change since the persisted cursor.

        Falls back to a full sync when the engine has no cursor or the CMS
        rejects it as expired. ``found_up_to_id`` reports whether a change
        for *up_to_id* was seen. When it was not, and a resync delay is
        configured, another run is scheduled: the sync API may not have
        caught up with the webhook that named the id.
        """
        result = await self._sync_next(up_to_id)
        if not result.found_up_to_id and up_to_id is not None:
            self.sync_later(up_to_id)
        return result

    def sync_later(self, up_to_id: str, *, attempt: int = 1) -> bool:
        """Schedule a delayed :meth:`sync_next`; return whether one was queued."""
        if self._resync_delay is None:
            return False
        if attempt > self._resync_limit:
            logger.warning(
                "Giving up on %s after %d delayed syncs", up_to_id, self._resync_limit
            )
            return False
        logger.info("%s not in sync yet; retrying in %.0fs", up_to_id, self._resync_delay)
        task = asyncio.create_task(
            self._delayed_sync(up_to_id, attempt), name=f"resync-{up_to_id}"
        )
        self._resyncs.add(task)
        task.add_done_callback(self._resyncs.discard)
        return True

    @property
    def pending_resyncs(self) -> int:
        return len(self._resyncs)

    async def close(self) -> None:
        """Cancel scheduled delayed syncs."""
        tasks = list(self._resyncs)
        for task in tasks:
            task.cancel()
        for task in tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task

    async def _delayed_sync(self, up_to_id: str, attempt: int) -> None:
        await asyncio.sleep(self._resync_delay or 0)
        try:
            result = await self._sync_next(up_to_id)
        except CMSMirrorError:
            logger.exception("Delayed sync for %s failed", up_to_id)
            return
        if not result.found_up_to_id:
            self.sync_later(up_to_id, attempt=attempt + 1)

    async def _sync_next(self, up_to_id: str | None) -> SyncResult:
        if not await self.restore():
            return await self.full_sync()

        async with self._run_lock:
            self._in_flight += 1
            try:
                token = await self._state_store.get_token()
                if token is not None:
                    return await self._run_incremental(token, up_to_id)
            except TokenExpiredError:
                logger.warning("Sync token expired; falling back to full sync")
            finally:
                self._in_flight -= 1
        # The cursor expired or vanished: no partial repair, start over.
        self._state = SyncState.UNINITIALIZED
        return await self.full_sync()

    async def _run_incremental(self, token: str, up_to_id: str | None) -> SyncResult:
        found = up_to_id is None
        pages = upserted = deleted = 0
        while True:
            page = await self._fetch(token, None)
            for entry in page.entries:
                if await self._index(entry):
                    upserted += 1
                found = found or entry.id == up_to_id
            for item in page.deleted:
                if await self._remove(item.id, item.revision):
                    deleted += 1
                found = found or item.id == up_to_id
            token = page.next_token
            pages += 1
            if page.done:
                break
        await self._state_store.save_token(token)
        logger.info("Incremental sync applied %d upserts, %d deletes", upserted, deleted)
        return SyncResult(
            pages=pages,
            upserted=upserted,
            deleted=deleted,
            token=token,
            found_up_to_id=found,
        )

    # ── Webhook deltas ───────────────────────────────────────────

    async def apply_event(self, event: WebhookEvent) -> bool:
        """Apply one webhook delta; return whether the store changed."""
        entry = event.entry
        if event.action.removes:
            applied = await self._remove(entry.id, entry.revision)
        elif event.action is WebhookAction.UNPUBLISH:
            applied = await self._index(entry, unpublish=True)
        elif event.action.is_draft:
            applied = await self._index_draft(entry)
        else:
            applied = await self._index(entry)
        logger.debug(
            "%s %s revision %d: %s",
            event.action.value,
            entry.id,
            entry.revision,
            "applied" if applied else "discarded",
        )
        return applied

    async def _index(self, entry: Entry, *, unpublish: bool = False) -> bool:
        async with self._entry_lock(entry.id):
            if unpublish:
                unpublished = await self._unpublished(entry)
                if unpublished is None:
                    return False
                entry = unpublished
            applied = await self._store.index(entry)
            if self._touched_during_full_sync is not None:
                self._touched_during_full_sync.add(entry.id)
            return applied

    async def _index_draft(self, entry: Entry) -> bool:
        """Store an unpublished edit unless a published copy exists.

        Drafts never replace published content and are kept without a
        publish date, so only preview reads see them.
        """
        async with self._entry_lock(entry.id):
            if await self._store.is_tombstoned(entry.id):
                return False
            current = await self._store.find(entry.id)
            if current is not None and (
                current.sys.published_at is not None or current.revision > entry.revision
            ):
                return False
            draft = entry.model_copy(
                update={"sys": entry.sys.model_copy(update={"published_at": None})}
            )
            await self._store.upsert(draft)
            if self._touched_during_full_sync is not None:
                self._touched_during_full_sync.add(entry.id)
            return True

    async def _remove(self, entry_id: str, revision: int) -> bool:
        async with self._entry_lock(entry_id):
            return await self._store.remove(entry_id, revision)

    async def _unpublished(self, entry: Entry) -> Entry | None:
        """The stored entry at the event's revision with no publish date.

        Unpublish payloads carry only ``sys``; without a stored copy there
        is nothing to keep.
        """
        current = await self._store.find(entry.id)
        if current is None:
            return None if not entry.fields else entry.model_copy(
                update={"sys": entry.sys.model_copy(update={"published_at": None})}
            )
        sys = current.sys.model_copy(
            update={
                "revision": entry.revision,
                "updated_at": entry.sys.updated_at or current.sys.updated_at,
                "published_at": None,
            }
        )
        return current.model_copy(
            update={"sys": sys, "fields": entry.fields or current.fields}
        )

    @contextlib.asynccontextmanager
    async def _entry_lock(self, entry_id: str) -> AsyncIterator[None]:
        self._in_flight += 1
        try:
            async with CriticalSection(
                [ResourceIdentifier("entry", entry_id)],
                self._locks,
                timeout=self._lock_timeout,
            ):
                yield
        finally:
            self._in_flight -= 1

    # ── Maintenance ──────────────────────────────────────────────

    async def purge_tombstones(self) -> int:
        cutoff = self._clock() - timedelta(seconds=self._tombstone_ttl)
        purged = await self._store.purge_tombstones(cutoff)
        if purged:
            logger.debug("Purged %d expired tombstones", purged)
        return purged

    # ── Fetching ─────────────────────────────────────────────────

    async def _fetch(self, token: str | None, cancel: asyncio.Event | None) -> SyncPage:
        return await self._with_retry(
            lambda: _cancellable(self._source.sync_page(token), cancel), cancel
        )

    async def _with_retry(
        self,
        call: Callable[[], Awaitable[T]],
        cancel: asyncio.Event | None,
    ) -> T:
        attempt = 1
        while True:
            try:
                return await call()
            except (TransientError, RateLimitedError) as err:
                if not self._retry.should_retry(attempt):
                    raise SyncError(
                        f"Sync call failed after {attempt} attempt(s): {err}"
                    ) from err
                hint = err.retry_after if isinstance(err, RateLimitedError) else None
                delay = self._retry.delay_for_attempt(attempt, hint)
                logger.warning(
                    "Sync call failed (attempt %d/%d), retrying in %.2fs: %s",
                    attempt,
                    self._retry.max_attempts,
                    delay,
                    err,
                )
                await _sleep(delay, cancel)
                attempt += 1


def _check_cancelled(cancel: asyncio.Event | None) -> None:
    if cancel is not None and cancel.is_set():
        raise SyncCancelledError("Full sync cancelled")


async def _cancellable(call: Awaitable[T], cancel: asyncio.Event | None) -> T:
    """Await *call* unless *cancel* fires first, in which case abort it."""
    if cancel is None:
        return await call
    if cancel.is_set():
        if asyncio.iscoroutine(call):
            call.close()
        raise SyncCancelledError("Full sync cancelled")
    fetch = asyncio.ensure_future(call)
    waiter = asyncio.ensure_future(cancel.wait())
    try:
        done, _ = await asyncio.wait({fetch, waiter}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        pending = [task for task in (fetch, waiter) if not task.done()]
        for task in pending:
            task.cancel()
        for task in pending:
            with contextlib.suppress(asyncio.CancelledError):
                await task
    if fetch in done:
        return fetch.result()
    raise SyncCancelledError("Full sync cancelled during page fetch")


async def _sleep(seconds: float, cancel: asyncio.Event | None) -> None:
    if cancel is None:
        await asyncio.sleep(seconds)
        return
    try:
        await asyncio.wait_for(cancel.wait(), timeout=seconds)
    except asyncio.TimeoutError:
        return
    raise SyncCancelledError("Full sync cancelled during retry backoff")
