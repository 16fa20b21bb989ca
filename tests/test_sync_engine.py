"""Tests for the sync engine: full sync, incremental sync and webhook deltas."""

from __future__ import annotations

import asyncio
import random
from collections import deque
from datetime import datetime, timedelta, timezone

import pytest

from cms_mirror.adapters.memory import InMemorySyncStateStore, MemorySyncedStore
from cms_mirror.config import MirrorConfig
from cms_mirror.domain import DeletedItem, Entry, SyncPage, WebhookAction, WebhookEvent
from cms_mirror.primitives import (
    AuthError,
    RateLimitedError,
    SyncCancelledError,
    SyncError,
    TokenExpiredError,
    TransientError,
)
from cms_mirror.sync import RetryPolicy, SyncEngine, SyncState
from cms_mirror.webhooks import WebhookReceiver

NO_WAIT = RetryPolicy(max_attempts=3, base_delay=0, max_delay=0, jitter=False)


class FakeSource:
    """
    Scripted sync API.

    ``pages`` maps a token (``None`` for the initial request) to the page it
    returns. ``failures`` is consumed first: each item is raised once.
    """

    def __init__(self, pages: dict[str | None, SyncPage]) -> None:
        self.pages = pages
        self.failures: deque[BaseException] = deque()
        self.calls: list[str | None] = []
        self.gate: asyncio.Event | None = None

    async def sync_page(self, token: str | None = None) -> SyncPage:
        self.calls.append(token)
        if self.gate is not None:
            await self.gate.wait()
        if self.failures:
            raise self.failures.popleft()
        if token is not None and token not in self.pages:
            raise TokenExpiredError(f"unknown token {token}", status=400)
        return self.pages[token]


def page(entries=(), deleted=(), *, next_token: str, done: bool) -> SyncPage:
    return SyncPage(
        entries=tuple(entries), deleted=tuple(deleted), next_token=next_token, done=done
    )


def event(action: WebhookAction, entry: Entry) -> WebhookEvent:
    return WebhookEvent(action=action, entry=entry)


@pytest.fixture
def store() -> MemorySyncedStore:
    return MemorySyncedStore()


@pytest.fixture
def initial_pages(make_entry) -> dict[str | None, SyncPage]:
    return {
        None: page([make_entry("e1", title="One"), make_entry("e2")], next_token="p2", done=False),
        "p2": page([make_entry("p1", "person")], next_token="s1", done=True),
    }


@pytest.fixture
def engine_for(store):
    def _engine(source: FakeSource, **kwargs) -> SyncEngine:
        kwargs.setdefault("retry_policy", NO_WAIT)
        return SyncEngine(source, store, **kwargs)

    return _engine


class TestFullSync:
    @pytest.mark.asyncio
    async def test_loads_every_page_and_persists_token(self, store, engine_for, initial_pages) -> None:
        state_store = InMemorySyncStateStore()
        source = FakeSource(initial_pages)
        engine = engine_for(source, state_store=state_store)
        assert engine.state is SyncState.UNINITIALIZED

        result = await engine.full_sync()

        assert engine.state is SyncState.IDLE
        assert result.pages == 2
        assert result.upserted == 3
        assert result.token == "s1"
        assert source.calls == [None, "p2"]
        assert await state_store.get_token() == "s1"
        assert await store.entry_ids() == {"e1", "e2", "p1"}

    @pytest.mark.asyncio
    async def test_deleted_items_and_stale_entries_removed(self, store, engine_for, make_entry) -> None:
        await store.upsert(make_entry("stale"))
        await store.upsert(make_entry("gone"))
        source = FakeSource(
            {
                None: page(
                    [make_entry("e1")],
                    [DeletedItem(id="gone", revision=2)],
                    next_token="s1",
                    done=True,
                )
            }
        )
        result = await engine_for(source).full_sync()
        assert await store.entry_ids() == {"e1"}
        assert await store.is_tombstoned("stale")
        assert result.deleted == 2

    @pytest.mark.asyncio
    async def test_recovery_yields_identical_snapshot(self, engine_for, initial_pages) -> None:
        reference = MemorySyncedStore()
        await SyncEngine(FakeSource(initial_pages), reference, retry_policy=NO_WAIT).full_sync()

        store = MemorySyncedStore()
        source = FakeSource(initial_pages)
        source.failures.append(AuthError("boom", status=401))
        engine = SyncEngine(source, store, retry_policy=NO_WAIT)
        with pytest.raises(AuthError):
            await engine.full_sync()
        assert engine.state is SyncState.UNINITIALIZED

        await engine.full_sync()
        assert store.snapshot() == reference.snapshot()

    @pytest.mark.asyncio
    async def test_failure_midway_keeps_no_token(self, engine_for, initial_pages) -> None:
        state_store = InMemorySyncStateStore()
        await state_store.save_token("old")
        source = FakeSource(initial_pages)
        del source.pages["p2"]
        engine = engine_for(source, state_store=state_store)
        with pytest.raises(TokenExpiredError):
            await engine.full_sync()
        assert engine.state is SyncState.UNINITIALIZED
        assert await state_store.get_token() is None

    @pytest.mark.asyncio
    async def test_cancel_during_fetch(self, engine_for, initial_pages) -> None:
        state_store = InMemorySyncStateStore()
        source = FakeSource(initial_pages)
        source.gate = asyncio.Event()
        cancel = asyncio.Event()
        engine = engine_for(source, state_store=state_store)

        task = asyncio.create_task(engine.full_sync(cancel=cancel))
        while not source.calls:
            await asyncio.sleep(0)
        assert engine.state is SyncState.FULL_SYNC_IN_PROGRESS
        cancel.set()

        with pytest.raises(SyncCancelledError):
            await task
        assert engine.state is SyncState.UNINITIALIZED
        assert await state_store.get_token() is None

    @pytest.mark.asyncio
    async def test_cancel_before_start(self, engine_for, initial_pages) -> None:
        source = FakeSource(initial_pages)
        cancel = asyncio.Event()
        cancel.set()
        engine = engine_for(source)
        with pytest.raises(SyncCancelledError):
            await engine.full_sync(cancel=cancel)
        assert source.calls == []
        assert engine.state is SyncState.UNINITIALIZED

    @pytest.mark.asyncio
    async def test_cancel_during_backoff(self, engine_for, initial_pages) -> None:
        source = FakeSource(initial_pages)
        source.failures.append(TransientError("503", status=503))
        cancel = asyncio.Event()
        slow = RetryPolicy(max_attempts=3, base_delay=30, max_delay=30, jitter=False)
        engine = engine_for(source, retry_policy=slow)

        task = asyncio.create_task(engine.full_sync(cancel=cancel))
        while not source.calls:
            await asyncio.sleep(0)
        await asyncio.sleep(0.01)
        cancel.set()
        with pytest.raises(SyncCancelledError):
            await asyncio.wait_for(task, timeout=5)

    @pytest.mark.asyncio
    async def test_purges_expired_tombstones(self, store, engine_for, initial_pages) -> None:
        long_ago = datetime.now(timezone.utc) - timedelta(days=2)
        await store.remove("ancient", 1, deleted_at=long_ago)
        await engine_for(FakeSource(initial_pages), tombstone_ttl=3600).full_sync()
        assert not await store.is_tombstoned("ancient")


class TestRetry:
    @pytest.mark.asyncio
    async def test_transient_errors_are_retried(self, store, engine_for, initial_pages) -> None:
        source = FakeSource(initial_pages)
        source.failures.extend(
            [TransientError("503", status=503), RateLimitedError("429", retry_after=0)]
        )
        await engine_for(source).full_sync()
        assert source.calls == [None, None, None, "p2"]
        assert await store.entry_ids() == {"e1", "e2", "p1"}

    @pytest.mark.asyncio
    async def test_exhausted_retries_raise_sync_error(self, engine_for, initial_pages) -> None:
        source = FakeSource(initial_pages)
        source.failures.extend([TransientError("timeout")] * 3)
        engine = engine_for(source)
        with pytest.raises(SyncError) as excinfo:
            await engine.full_sync()
        assert isinstance(excinfo.value.__cause__, TransientError)
        assert len(source.calls) == 3
        assert engine.state is SyncState.UNINITIALIZED

    @pytest.mark.asyncio
    async def test_auth_errors_are_not_retried(self, engine_for, initial_pages) -> None:
        source = FakeSource(initial_pages)
        source.failures.append(AuthError("bad token", status=401))
        with pytest.raises(AuthError):
            await engine_for(source).full_sync()
        assert source.calls == [None]

    def test_backoff(self) -> None:
        policy = RetryPolicy(max_attempts=4, base_delay=1, max_delay=5, jitter=False)
        assert [policy.delay_for_attempt(n) for n in (1, 2, 3, 4)] == [1, 2, 4, 5]
        assert policy.delay_for_attempt(1, hint=3) == 3
        assert policy.delay_for_attempt(1, hint=100) == 5
        assert policy.should_retry(3) and not policy.should_retry(4)

    def test_jitter_stays_in_range(self) -> None:
        policy = RetryPolicy(base_delay=2, max_delay=60)
        for _ in range(50):
            assert 1.0 <= policy.delay_for_attempt(1) <= 3.0

    def test_invalid_policy(self) -> None:
        with pytest.raises(ValueError):
            RetryPolicy(max_attempts=0)
        with pytest.raises(ValueError):
            RetryPolicy(base_delay=10, max_delay=1)

    def test_from_config(self, store) -> None:
        config = MirrorConfig(
            space="sp", access_token="tok", sync_retry_limit=5, sync_retry_wait=1, tombstone_ttl=10
        )
        engine = SyncEngine.from_config(config, FakeSource({}), store)
        assert engine._retry.max_attempts == 5
        assert engine._retry.base_delay == 1
        assert engine._tombstone_ttl == 10
        assert engine._resync_delay == 600


class TestIncrementalSync:
    @pytest.mark.asyncio
    async def test_applies_changes_since_token(self, store, engine_for, initial_pages, make_entry) -> None:
        state_store = InMemorySyncStateStore()
        source = FakeSource(initial_pages)
        engine = engine_for(source, state_store=state_store)
        await engine.full_sync()

        source.pages["s1"] = page(
            [make_entry("e1", revision=2, title="Two")],
            [DeletedItem(id="e2", revision=2)],
            next_token="s2",
            done=True,
        )
        result = await engine.sync_next(up_to_id="e2")

        assert result.found_up_to_id
        assert result.upserted == 1 and result.deleted == 1
        assert (await store.find("e1")).field("title") == "Two"
        assert await store.find("e2") is None
        assert await state_store.get_token() == "s2"
        assert engine.state is SyncState.IDLE

    @pytest.mark.asyncio
    async def test_without_token_runs_full_sync(self, store, engine_for, initial_pages) -> None:
        source = FakeSource(initial_pages)
        result = await engine_for(source).sync_next()
        assert result.token == "s1"
        assert source.calls == [None, "p2"]

    @pytest.mark.asyncio
    async def test_expired_token_triggers_full_sync(self, store, engine_for, initial_pages) -> None:
        state_store = InMemorySyncStateStore()
        await state_store.save_token("expired")
        source = FakeSource(initial_pages)
        engine = engine_for(source, state_store=state_store)

        assert await engine.restore()
        result = await engine.sync_next()

        assert source.calls == ["expired", None, "p2"]
        assert result.token == "s1"
        assert await state_store.get_token() == "s1"
        assert engine.state is SyncState.IDLE

    @pytest.mark.asyncio
    async def test_stale_pages_do_not_regress(self, store, engine_for, make_entry) -> None:
        state_store = InMemorySyncStateStore()
        await state_store.save_token("s1")
        await store.index(make_entry("e1", revision=5, title="new"))
        source = FakeSource(
            {"s1": page([make_entry("e1", revision=3, title="old")], next_token="s2", done=True)}
        )
        result = await engine_for(source, state_store=state_store).sync_next()
        assert result.upserted == 0
        assert (await store.find("e1")).field("title") == "new"


class TestWebhookDeltas:
    @pytest.fixture
    async def engine(self, engine_for, initial_pages) -> SyncEngine:
        engine = engine_for(FakeSource(initial_pages))
        await engine.full_sync()
        return engine

    @pytest.mark.asyncio
    async def test_publish_then_delete(self, store, engine, make_entry) -> None:
        assert await engine.apply_event(event(WebhookAction.PUBLISH, make_entry("e9", revision=1)))
        assert await store.find("e9") is not None
        assert await engine.apply_event(event(WebhookAction.DELETE, make_entry("e9", revision=2)))
        assert await store.find("e9") is None

    @pytest.mark.asyncio
    async def test_duplicates_are_idempotent(self, store, engine, make_entry) -> None:
        publish = event(WebhookAction.PUBLISH, make_entry("e9", revision=3, title="x"))
        assert await engine.apply_event(publish)
        before = store.snapshot()
        assert not await engine.apply_event(publish)
        assert store.snapshot() == before

    @pytest.mark.asyncio
    async def test_delete_beats_late_publish(self, store, engine, make_entry) -> None:
        await engine.apply_event(event(WebhookAction.DELETE, make_entry("e1", revision=10)))
        assert not await engine.apply_event(event(WebhookAction.PUBLISH, make_entry("e1", revision=9)))
        assert await store.find("e1") is None

    @pytest.mark.asyncio
    async def test_archive_removes(self, store, engine, make_entry) -> None:
        assert await engine.apply_event(event(WebhookAction.ARCHIVE, make_entry("e2", revision=5)))
        assert await store.find("e2") is None

    @pytest.mark.asyncio
    async def test_unpublish_keeps_fields_and_clears_publish_date(self, store, engine, raw) -> None:
        bare = Entry.from_raw(
            {"sys": {"id": "e1", "type": "Entry", "revision": 4, "contentType": {"sys": {"id": "Unknown"}}}},
            delivery=False,
        )
        assert await engine.apply_event(event(WebhookAction.UNPUBLISH, bare))
        stored = await store.find("e1")
        assert stored.sys.published_at is None
        assert stored.content_type_id == "article"
        assert stored.field("title") == "One"
        assert stored.revision == 4

    @pytest.mark.asyncio
    async def test_unpublish_of_unknown_entry_is_noop(self, store, engine) -> None:
        bare = Entry.from_raw(
            {"sys": {"id": "zz", "type": "Entry", "revision": 1, "contentType": {"sys": {"id": "Unknown"}}}},
            delivery=False,
        )
        assert not await engine.apply_event(event(WebhookAction.UNPUBLISH, bare))
        assert await store.find("zz") is None

    @pytest.mark.asyncio
    async def test_order_independence_for_one_id(self, make_entry) -> None:
        """Any delivery order of the same revisions converges on the newest."""
        events = [
            event(WebhookAction.PUBLISH, make_entry("e1", revision=1, title="r1")),
            event(WebhookAction.PUBLISH, make_entry("e1", revision=2, title="r2")),
            event(WebhookAction.DELETE, make_entry("e1", revision=3)),
            event(WebhookAction.PUBLISH, make_entry("e1", revision=4, title="r4")),
        ]
        rng = random.Random(7)
        for _ in range(10):
            shuffled = events[:]
            rng.shuffle(shuffled)
            store = MemorySyncedStore()
            engine = SyncEngine(FakeSource({}), store, retry_policy=NO_WAIT)
            for item in shuffled:
                await engine.apply_event(item)
            assert (await store.find("e1")).field("title") == "r4"

    @pytest.mark.asyncio
    async def test_concurrent_events_serialize_per_id(self, make_entry) -> None:
        store = MemorySyncedStore()
        engine = SyncEngine(FakeSource({}), store, retry_policy=NO_WAIT)
        events = [
            event(WebhookAction.PUBLISH, make_entry("e1", revision=r, title=f"r{r}"))
            for r in range(1, 21)
        ]
        results = await asyncio.gather(*(engine.apply_event(e) for e in events))
        assert results[0]
        assert (await store.find("e1")).revision == 20
        assert engine.state is SyncState.UNINITIALIZED

    @pytest.mark.asyncio
    async def test_webhook_during_full_sync_survives_sweep(self, store, engine_for, make_entry) -> None:
        source = FakeSource({None: page([make_entry("e1")], next_token="s1", done=True)})
        source.gate = asyncio.Event()
        engine = engine_for(source)
        task = asyncio.create_task(engine.full_sync())
        while not source.calls:
            await asyncio.sleep(0)

        await engine.apply_event(event(WebhookAction.PUBLISH, make_entry("fresh", revision=1)))
        source.gate.set()
        await task
        assert await store.entry_ids() == {"e1", "fresh"}


class TestStartup:
    @pytest.mark.asyncio
    async def test_restore_from_persisted_token(self, engine_for, initial_pages) -> None:
        state_store = InMemorySyncStateStore()
        engine = engine_for(FakeSource(initial_pages), state_store=state_store)
        assert not await engine.restore()
        await state_store.save_token("s1")
        assert await engine.restore()
        assert engine.state is SyncState.IDLE

    @pytest.mark.asyncio
    async def test_ensure_synced_runs_once(self, engine_for, initial_pages) -> None:
        source = FakeSource(initial_pages)
        engine = engine_for(source)
        await asyncio.gather(*(engine.ensure_synced() for _ in range(5)))
        assert source.calls == [None, "p2"]
        await engine.ensure_synced()
        assert source.calls == [None, "p2"]


async def drain_resyncs(engine: SyncEngine) -> None:
    while engine.pending_resyncs:
        await asyncio.sleep(0.001)


class TestDelayedResync:
    @pytest.fixture
    def source(self, initial_pages) -> FakeSource:
        return FakeSource(initial_pages)

    @pytest.mark.asyncio
    async def test_missing_id_is_synced_again_later(
        self, store, engine_for, source, make_entry
    ) -> None:
        engine = engine_for(source, resync_delay=0)
        await engine.full_sync()
        source.pages["s1"] = page(next_token="s2", done=True)
        source.pages["s2"] = page([make_entry("late", revision=1)], next_token="s3", done=True)

        result = await engine.sync_next(up_to_id="late")
        assert not result.found_up_to_id
        assert engine.pending_resyncs == 1

        await asyncio.wait_for(drain_resyncs(engine), timeout=5)
        assert await store.find("late") is not None
        assert source.calls[2:] == ["s1", "s2"]

    @pytest.mark.asyncio
    async def test_run_without_id_counts_as_found(self, engine_for, source) -> None:
        engine = engine_for(source, resync_delay=0)
        await engine.full_sync()
        source.pages["s1"] = page(next_token="s2", done=True)
        result = await engine.sync_next()
        assert result.found_up_to_id
        assert engine.pending_resyncs == 0

    @pytest.mark.asyncio
    async def test_gives_up_after_limit(self, engine_for, source, caplog) -> None:
        engine = engine_for(source, resync_delay=0, resync_limit=2)
        await engine.full_sync()
        source.pages["s1"] = page(next_token="s2", done=True)
        source.pages["s2"] = page(next_token="s2", done=True)

        await engine.sync_next(up_to_id="never")
        await asyncio.wait_for(drain_resyncs(engine), timeout=5)
        assert source.calls[2:] == ["s1", "s2", "s2"]
        assert "Giving up on never" in caplog.text

    @pytest.mark.asyncio
    async def test_disabled_by_default(self, engine_for, source) -> None:
        engine = engine_for(source)
        await engine.full_sync()
        source.pages["s1"] = page(next_token="s2", done=True)
        result = await engine.sync_next(up_to_id="missing")
        assert not result.found_up_to_id
        assert engine.pending_resyncs == 0

    @pytest.mark.asyncio
    async def test_close_cancels_pending(self, engine_for, source) -> None:
        engine = engine_for(source, resync_delay=60)
        await engine.full_sync()
        source.pages["s1"] = page(next_token="s2", done=True)
        await engine.sync_next(up_to_id="missing")
        assert engine.pending_resyncs == 1
        await engine.close()
        assert engine.pending_resyncs == 0
        assert source.calls[2:] == ["s1"]


def published_payload(raw, entry_id: str, revision: int, title: str) -> dict:
    return raw.entry(entry_id, revision=revision, fields={"title": raw.localized(title)})


def management_payload(
    raw, entry_id: str, *, version: int, published_counter: int, **fields
) -> dict:
    payload = raw.entry(
        entry_id, fields={name: raw.localized(value) for name, value in fields.items()}
    )
    del payload["sys"]["revision"]
    payload["sys"].update(
        version=version, publishedCounter=published_counter, publishedVersion=version - 1
    )
    if not published_counter:
        del payload["sys"]["publishedAt"]
    return payload


def topic(name: str) -> dict[str, str]:
    return {
        "X-Contentful-Topic": f"ContentManagement.Entry.{name}",
        "Content-Type": "application/vnd.contentful.management.v1+json",
    }


class TestDraftEdits:
    @pytest.fixture
    def receiver(self) -> WebhookReceiver:
        return WebhookReceiver(lambda event: None)

    @pytest.fixture
    def engine(self, store) -> SyncEngine:
        return SyncEngine(FakeSource({}), store, retry_policy=NO_WAIT)

    @pytest.mark.asyncio
    async def test_auto_save_keeps_published_copy(self, store, engine, receiver, raw) -> None:
        events = [
            receiver.parse(topic("publish"), published_payload(raw, "e1", 1, "v1")),
            receiver.parse(
                topic("auto_save"),
                management_payload(raw, "e1", version=9, published_counter=1, title="draft"),
            ),
            receiver.parse(topic("publish"), published_payload(raw, "e1", 2, "v2")),
        ]
        applied = [await engine.apply_event(item) for item in events]

        assert applied == [True, False, True]
        stored = await store.find("e1")
        assert stored.field("title") == "v2"
        assert stored.revision == 2

    @pytest.mark.asyncio
    async def test_save_of_new_entry_is_stored_as_draft(self, store, engine, receiver, raw) -> None:
        save = receiver.parse(
            topic("save"),
            management_payload(raw, "d1", version=3, published_counter=0, title="wip"),
        )
        assert save.action is WebhookAction.SAVE
        assert await engine.apply_event(save)
        draft = await store.find("d1")
        assert draft.sys.published_at is None
        assert draft.revision == 0

        again = receiver.parse(
            topic("auto_save"),
            management_payload(raw, "d1", version=4, published_counter=0, title="wip 2"),
        )
        assert await engine.apply_event(again)
        assert (await store.find("d1")).field("title") == "wip 2"

        publish = receiver.parse(topic("publish"), published_payload(raw, "d1", 1, "done"))
        assert await engine.apply_event(publish)
        published = await store.find("d1")
        assert published.sys.published_at is not None
        assert published.field("title") == "done"

    @pytest.mark.asyncio
    async def test_save_after_delete_is_discarded(self, store, engine, make_entry) -> None:
        await engine.apply_event(event(WebhookAction.DELETE, make_entry("e1", revision=3)))
        draft = make_entry("e1", revision=0, published=False, title="ghost")
        assert not await engine.apply_event(event(WebhookAction.SAVE, draft))
        assert await store.find("e1") is None
