"""Exception taxonomy for cms-mirror."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .locking import ResourceIdentifier


class CMSMirrorError(Exception):
    """Root exception for the entire cms-mirror package."""


class DomainError(CMSMirrorError):
    """Base class for errors about content, schemas and registries."""


class InfrastructureError(CMSMirrorError):
    """Base class for errors raised by I/O collaborators."""


class ConfigurationError(CMSMirrorError):
    """Raised when a :class:`~cms_mirror.config.MirrorConfig` is invalid."""


# ── CMS API Client ───────────────────────────────────────────────────


class CMSClientError(InfrastructureError):
    """Raised for a non-2xx response from the remote CMS.

    Carries the HTTP ``status`` (``None`` for transport failures) and the
    decoded response ``body`` when one was available.
    """

    def __init__(
        self,
        message: str,
        *,
        status: int | None = None,
        body: Any = None,
    ) -> None:
        self.status = status
        self.body = body
        super().__init__(message)


class AuthError(CMSClientError):
    """Invalid or insufficient CMS credentials (401/403)."""


class NotFoundError(CMSClientError):
    """The requested entry, asset or content type does not exist."""


class RateLimitedError(CMSClientError):
    """The CMS throttled the request (429).

    ``retry_after`` is the server's hint in seconds, if it sent one.
    """

    def __init__(
        self,
        message: str,
        *,
        retry_after: float | None = None,
        status: int | None = 429,
        body: Any = None,
    ) -> None:
        self.retry_after = retry_after
        super().__init__(message, status=status, body=body)


class TransientError(CMSClientError):
    """Network failure, timeout or 5xx. Safe to retry with backoff."""


class MalformedResponseError(CMSClientError):
    """The CMS answered 2xx but the body does not match the expected shape."""


class TokenExpiredError(CMSClientError):
    """The sync token is no longer accepted; a full sync is required."""


# ── Schemas ──────────────────────────────────────────────────────────


class InvalidSchemaError(DomainError):
    """Raised when content type definitions cannot form a registry."""


class UnknownContentTypeError(DomainError):
    """Raised when a content type id is not present in the registry."""

    def __init__(self, content_type_id: str) -> None:
        self.content_type_id = content_type_id
        super().__init__(f"Content type {content_type_id!r} is not registered")


class SchemaBuildError(DomainError):
    """Raised when a query schema cannot be built from the registry."""


# ── Store & Sync ─────────────────────────────────────────────────────


class StoreBackendError(InfrastructureError):
    """Connectivity or durability failure in a synced store backend."""


class SyncError(InfrastructureError):
    """Raised when a synchronization run fails for good."""


class SyncCancelledError(SyncError):
    """Raised when a full sync is aborted through its cancellation signal."""


class LockAcquisitionError(InfrastructureError):
    """Failed to acquire a per-resource lock within the timeout."""

    def __init__(self, resource: ResourceIdentifier, timeout: float) -> None:
        self.resource = resource
        self.timeout = timeout
        super().__init__(f"Failed to acquire lock on {resource} within {timeout}s")


# ── Webhooks ─────────────────────────────────────────────────────────


class WebhookError(CMSMirrorError):
    """Base class for webhook ingestion failures."""


class MalformedWebhookError(WebhookError):
    """Inbound webhook payload could not be parsed into an event."""
