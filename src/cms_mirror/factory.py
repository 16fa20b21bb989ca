"""
Wiring: builds a complete content mirror from a :class:`MirrorConfig`.

Usage::

    mirror = await ContentMirror.create(MirrorConfig.from_mapping(options))
    await mirror.start()
    result = await mirror.execute("{ allArticle { title } }")
    await mirror.stop()
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from .adapters.direct import DirectStore
from .adapters.memory import MemorySyncedStore
from .adapters.sqlalchemy import DurableSyncedStore, SQLAlchemySyncStateStore
from .client.http import CMSClient, ManagementClient
from .config import ContentDelivery, SyncStoreKind
from .graphql.builder import SchemaBuilder, execute
from .middleware.context import MiddlewareContext
from .middleware.locale import LocaleMiddleware
from .middleware.pipeline import MiddlewareStore, build_pipeline
from .middleware.publish_window import PublishWindowMiddleware
from .middleware.published import PublishedOnlyMiddleware
from .middleware.registry import MiddlewareRegistry
from .primitives.exceptions import ConfigurationError
from .registry.models import ModelRegistry
from .registry.registry import RegistryHolder, TypeRegistry
from .sync.engine import SyncEngine
from .sync.lazy import LazySyncStore
from .sync.worker import WebhookEventWorker
from .webhooks.receiver import WebhookReceiver

if TYPE_CHECKING:
    import httpx
    from graphql import ExecutionResult, GraphQLSchema
    from sqlalchemy.ext.asyncio import AsyncEngine

    from .config import MirrorConfig
    from .domain.content_type import ContentType
    from .ports.store import IStore, ISyncedStore
    from .ports.sync_state import ISyncStateStore
    from .sync.engine import SyncResult

logger = logging.getLogger("cms_mirror")


def default_middleware() -> MiddlewareRegistry:
    """The standard read stages: published only, publish window, locale."""
    registry = MiddlewareRegistry()
    registry.register(PublishedOnlyMiddleware, priority=10)
    registry.register(PublishWindowMiddleware, priority=20)
    registry.register(LocaleMiddleware, priority=100)
    return registry


async def load_content_types(
    config: MirrorConfig, *, http_client: httpx.AsyncClient | None = None
) -> list[ContentType]:
    """Read content types from the management API when a token is set, else the CDN."""
    if config.management_token:
        client: CMSClient = ManagementClient.from_config(config, http_client=http_client)
    else:
        client = CMSClient.from_config(config, http_client=http_client)
    async with client:
        content_types = await client.list_content_types()
    logger.info("Loaded %d content types", len(content_types))
    return content_types


class ContentMirror:
    """
    A configured mirror: registry, read pipeline, and for synced delivery
    the sync engine, webhook worker and receiver.

    ``engine``, ``worker`` and ``receiver`` are ``None`` for direct delivery.
    ``models`` maps content types to entry factories for :meth:`get`; it is
    rebuilt with the registry.
    """

    def __init__(
        self,
        config: MirrorConfig,
        *,
        registry: TypeRegistry,
        client: CMSClient,
        store: MiddlewareStore,
        preview_client: CMSClient | None = None,
        engine: SyncEngine | None = None,
        db_engine: AsyncEngine | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.config = config
        self.client = client
        self.preview_client = preview_client
        self.store = store
        self.engine = engine
        self._registry = RegistryHolder(registry)
        self.models = ModelRegistry.for_registry(registry)
        self._db_engine = db_engine
        self._http_client = http_client
        self._schema: GraphQLSchema | None = None
        self._schema_registry: TypeRegistry | None = None
        self.worker: WebhookEventWorker | None = None
        self.receiver: WebhookReceiver | None = None
        if engine is not None:
            self.worker = WebhookEventWorker(
                engine,
                concurrency=config.worker_concurrency,
                sync_after_apply=config.sync_on_webhook,
            )
            self.receiver = WebhookReceiver.from_config(config, self.worker.submit)

    @classmethod
    async def create(
        cls,
        config: MirrorConfig,
        *,
        http_client: httpx.AsyncClient | None = None,
        middleware: MiddlewareRegistry | None = None,
        registry: TypeRegistry | None = None,
    ) -> ContentMirror:
        config.validate()
        if registry is None:
            registry = TypeRegistry.build(
                await load_content_types(config, http_client=http_client)
            )
        client = CMSClient.from_config(config, http_client=http_client)
        preview_client = None
        if config.preview_token:
            preview_client = CMSClient.from_config(config, preview=True, http_client=http_client)
        stages = (middleware or default_middleware()).get_ordered_middlewares()

        if not config.content_delivery.synced:
            raw: IStore = DirectStore(client, preview_client=preview_client)
            return cls(
                config,
                registry=registry,
                client=client,
                preview_client=preview_client,
                store=build_pipeline(raw, stages, config=config),
                http_client=http_client,
            )

        db_engine = None
        synced: ISyncedStore
        state_store: ISyncStateStore | None = None
        if config.sync_store is SyncStoreKind.DURABLE:
            if config.database_url is None:
                raise ConfigurationError("database_url is required for a durable sync store")
            db_engine = create_async_engine(config.database_url)
            session_factory = async_sessionmaker(db_engine, expire_on_commit=False)
            synced = DurableSyncedStore(session_factory, default_locale=config.default_locale)
            state_store = SQLAlchemySyncStateStore(session_factory)
        else:
            synced = MemorySyncedStore(default_locale=config.default_locale)
        engine = SyncEngine.from_config(config, client, synced, state_store=state_store)

        raw = synced
        if config.content_delivery is ContentDelivery.LAZY_SYNC:
            raw = LazySyncStore(synced, engine)
        return cls(
            config,
            registry=registry,
            client=client,
            preview_client=preview_client,
            store=build_pipeline(raw, stages, config=config),
            engine=engine,
            db_engine=db_engine,
            http_client=http_client,
        )

    # ── Lifecycle ────────────────────────────────────────────────

    async def start(self) -> None:
        if self._db_engine is not None:
            await DurableSyncedStore.create_schema(self._db_engine)
        if self.engine is not None:
            restored = await self.engine.restore()
            if self.config.content_delivery is ContentDelivery.EAGER_SYNC and not restored:
                await self.engine.full_sync()
        if self.worker is not None:
            await self.worker.start()
        logger.info("Content mirror started (%s)", self.config.content_delivery.value)

    async def stop(self) -> None:
        if self.worker is not None:
            await self.worker.stop()
        if self.engine is not None:
            await self.engine.close()
        if self._http_client is None:
            await self.client.close()
            if self.preview_client is not None:
                await self.preview_client.close()
        if self._db_engine is not None:
            await self._db_engine.dispose()
        logger.info("Content mirror stopped")

    async def __aenter__(self) -> ContentMirror:
        await self.start()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.stop()

    # ── Registry and schema ──────────────────────────────────────

    @property
    def registry(self) -> TypeRegistry:
        return self._registry.current

    async def rebuild_registry(self) -> TypeRegistry:
        """Reload content types and swap the registry in one step."""
        content_types = await load_content_types(self.config, http_client=self._http_client)
        registry = self._registry.rebuild(content_types)
        self.models = self.models.rebind(registry)
        return registry

    @property
    def schema(self) -> GraphQLSchema:
        """Schema for the current registry, rebuilt after a registry swap."""
        registry = self.registry
        if self._schema is None or self._schema_registry is not registry:
            self._schema = SchemaBuilder(registry, self.store).build()
            self._schema_registry = registry
        return self._schema

    async def execute(
        self,
        source: str,
        *,
        preview: bool = False,
        locale: str | None = None,
        variables: dict[str, Any] | None = None,
    ) -> ExecutionResult:
        context = MiddlewareContext.create(self.config, preview=preview, locale=locale)
        return await execute(
            self.schema,
            source,
            context=context,
            variables=variables,
            max_depth=self.config.max_link_depth,
        )

    # ── Reads and sync ───────────────────────────────────────────

    async def get(
        self,
        entry_id: str,
        *,
        preview: bool = False,
        locale: str | None = None,
    ) -> Any:
        """Find one entry through the pipeline and build its registered model."""
        context = MiddlewareContext.create(self.config, preview=preview, locale=locale)
        entry = await self.store.find(entry_id, context=context)
        return None if entry is None else self.models.build(entry)

    async def sync(self, *, up_to_id: str | None = None) -> SyncResult:
        """Run an incremental sync; a miss on *up_to_id* schedules a delayed one."""
        if self.engine is None:
            raise ConfigurationError("sync requires a synced content_delivery")
        return await self.engine.sync_next(up_to_id=up_to_id)
