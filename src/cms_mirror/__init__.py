"""cms-mirror: a local, queryable mirror of a headless CMS.

Reads pass through a middleware pipeline over a direct, in-memory or
SQLAlchemy-backed store; synced stores are kept current by a sync engine
fed from the sync API and inbound webhooks.
"""

from __future__ import annotations

# ── Adapters ────────────────────────────────────────────────────
from .adapters.direct import DirectStore
from .adapters.memory import (
    InMemoryLockStrategy,
    InMemorySyncStateStore,
    MemorySyncedStore,
)

# ── Client ──────────────────────────────────────────────────────
from .client import CMSClient, ManagementClient

# ── Configuration and wiring ────────────────────────────────────
from .config import ContentDelivery, MirrorConfig, SyncStoreKind

# ── Domain ──────────────────────────────────────────────────────
from .domain import (
    ContentType,
    DeletedItem,
    Entry,
    FieldDefinition,
    FieldType,
    Link,
    SyncPage,
    Sys,
    WebhookAction,
    WebhookEvent,
)
from .factory import ContentMirror, default_middleware, load_content_types

# ── Middleware ──────────────────────────────────────────────────
from .middleware import (
    LocaleMiddleware,
    MiddlewareContext,
    MiddlewareRegistry,
    MiddlewareStore,
    PublishedOnlyMiddleware,
    PublishWindowMiddleware,
    StoreMiddleware,
    build_pipeline,
)

# ── Primitives ──────────────────────────────────────────────────
from .primitives import (
    AuthError,
    CMSClientError,
    CMSMirrorError,
    ConfigurationError,
    InvalidSchemaError,
    MalformedResponseError,
    MalformedWebhookError,
    NotFoundError,
    RateLimitedError,
    SchemaBuildError,
    StoreBackendError,
    SyncCancelledError,
    SyncError,
    TokenExpiredError,
    TransientError,
    UnknownContentTypeError,
)
from .query import QueryOptions

# ── Registry ────────────────────────────────────────────────────
from .registry import RegistryHolder, TypeRegistry

# ── Sync ────────────────────────────────────────────────────────
from .sync import (
    LazySyncStore,
    RetryPolicy,
    SyncEngine,
    SyncResult,
    SyncState,
    WebhookEventWorker,
)

# ── Webhooks ────────────────────────────────────────────────────
from .webhooks import WebhookReceiver, WebhookResponse

__version__ = "0.1.0"

__all__ = [
    "AuthError",
    "CMSClient",
    "CMSClientError",
    "CMSMirrorError",
    "ConfigurationError",
    "ContentDelivery",
    "ContentMirror",
    "ContentType",
    "DeletedItem",
    "DirectStore",
    "Entry",
    "FieldDefinition",
    "FieldType",
    "InMemoryLockStrategy",
    "InMemorySyncStateStore",
    "InvalidSchemaError",
    "LazySyncStore",
    "Link",
    "LocaleMiddleware",
    "MalformedResponseError",
    "MalformedWebhookError",
    "ManagementClient",
    "MemorySyncedStore",
    "MiddlewareContext",
    "MiddlewareRegistry",
    "MiddlewareStore",
    "MirrorConfig",
    "NotFoundError",
    "PublishWindowMiddleware",
    "PublishedOnlyMiddleware",
    "QueryOptions",
    "RateLimitedError",
    "RegistryHolder",
    "RetryPolicy",
    "SchemaBuildError",
    "StoreBackendError",
    "StoreMiddleware",
    "SyncCancelledError",
    "SyncEngine",
    "SyncError",
    "SyncPage",
    "SyncResult",
    "SyncState",
    "SyncStoreKind",
    "Sys",
    "TokenExpiredError",
    "TransientError",
    "TypeRegistry",
    "UnknownContentTypeError",
    "WebhookAction",
    "WebhookEvent",
    "WebhookEventWorker",
    "WebhookReceiver",
    "WebhookResponse",
    "build_pipeline",
    "default_middleware",
    "load_content_types",
]
