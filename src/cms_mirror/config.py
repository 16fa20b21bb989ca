"""Explicit configuration value shared by every component."""

from __future__ import annotations

import dataclasses
import re
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

from .domain.entry import DEFAULT_LOCALE
from .primitives.exceptions import ConfigurationError

if TYPE_CHECKING:
    from collections.abc import Mapping


class ContentDelivery(str, Enum):
    """Selects the store backend and when the full sync runs."""

    DIRECT = "direct"
    EAGER_SYNC = "eager_sync"
    LAZY_SYNC = "lazy_sync"

    @property
    def synced(self) -> bool:
        return self is not ContentDelivery.DIRECT


class SyncStoreKind(str, Enum):
    MEMORY = "memory"
    DURABLE = "durable"


@dataclass(frozen=True)
class MirrorConfig:
    """Configuration for a content mirror.

    Attributes:
        space: CMS space id.
        access_token: Delivery API read credential.
        management_token: Management API credential; enables reading
            content types from the management API.
        preview_token: Preview API credential used for preview reads.
        environment: CMS environment name.
        default_locale: Locale used when a request names none.
        content_delivery: Direct passthrough or a synced store, and whether
            the full sync runs at startup (eager) or on first read (lazy).
        sync_store: Memory or durable synced backend.
        database_url: SQLAlchemy async URL for the durable backend.
        webhook_username: Basic auth user expected on inbound webhooks.
        webhook_password: Basic auth password expected on inbound webhooks.
        sync_retry_limit: Attempts per sync call, including the first.
        sync_retry_wait: Base backoff delay in seconds.
        sync_retry_max_wait: Cap on the backoff delay in seconds.
        tombstone_ttl: Seconds a deleted id is retained as a tombstone.
        resync_delay: Seconds before an incremental sync that missed the id
            it was run for is repeated; ``None`` disables the repeat.
        sync_on_webhook: Follow each publish, unpublish or delete webhook
            with an incremental sync run for that id.
        request_timeout: Per HTTP call timeout in seconds.
        worker_concurrency: Number of webhook worker partitions.
        max_link_depth: Link hops a single schema query may resolve.
    """

    space: str
    access_token: str
    management_token: str | None = None
    preview_token: str | None = None
    environment: str = "master"
    default_locale: str = DEFAULT_LOCALE
    content_delivery: ContentDelivery = ContentDelivery.DIRECT
    sync_store: SyncStoreKind = SyncStoreKind.MEMORY
    database_url: str | None = None
    webhook_username: str | None = None
    webhook_password: str | None = None
    sync_retry_limit: int = 3
    sync_retry_wait: float = 2.0
    sync_retry_max_wait: float = 60.0
    tombstone_ttl: float = 3600.0
    resync_delay: float | None = 600.0
    sync_on_webhook: bool = False
    request_timeout: float = 10.0
    worker_concurrency: int = 4
    max_link_depth: int = 10
    cdn_url: str = "https://cdn.contentful.com"
    preview_url: str = "https://preview.contentful.com"
    management_url: str = "https://api.contentful.com"

    def __post_init__(self) -> None:
        # Accept plain strings for the enum options.
        try:
            object.__setattr__(
                self, "content_delivery", _coerce(ContentDelivery, self.content_delivery)
            )
            object.__setattr__(
                self, "sync_store", _coerce(SyncStoreKind, self.sync_store)
            )
        except ValueError as err:
            raise ConfigurationError(str(err)) from err

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any]) -> MirrorConfig:
        """Build a config from snake_case or camelCase option names."""
        known = {f.name for f in dataclasses.fields(cls)}
        kwargs: dict[str, Any] = {}
        for key, value in mapping.items():
            name = _snake_case(key)
            if name not in known:
                raise ConfigurationError(f"Unknown configuration option {key!r}")
            kwargs[name] = value
        try:
            config = cls(**kwargs)
        except TypeError as err:
            raise ConfigurationError(str(err)) from err
        config.validate()
        return config

    @property
    def webhook_auth_enabled(self) -> bool:
        return bool(self.webhook_username and self.webhook_password)

    def validate(self) -> None:
        """Raise :class:`ConfigurationError` if the options cannot work together."""
        if not self.space:
            raise ConfigurationError("space is required")
        if not self.access_token:
            raise ConfigurationError("access_token is required")
        if (
            self.content_delivery.synced
            and self.sync_store is SyncStoreKind.DURABLE
            and not self.database_url
        ):
            raise ConfigurationError("database_url is required for a durable sync store")
        if bool(self.webhook_username) != bool(self.webhook_password):
            raise ConfigurationError(
                "webhook_username and webhook_password must be set together"
            )
        if self.sync_retry_limit < 1:
            raise ConfigurationError("sync_retry_limit must be >= 1")
        if self.resync_delay is not None and self.resync_delay < 0:
            raise ConfigurationError("resync_delay must be >= 0")
        if self.worker_concurrency < 1:
            raise ConfigurationError("worker_concurrency must be >= 1")
        if self.max_link_depth < 1:
            raise ConfigurationError("max_link_depth must be >= 1")


def _coerce(enum_cls: type[Enum], value: Any) -> Any:
    if isinstance(value, enum_cls):
        return value
    return enum_cls(_snake_case(str(value)))


def _snake_case(name: str) -> str:
    return re.sub(r"(?<!^)(?=[A-Z])", "_", name).lower()
