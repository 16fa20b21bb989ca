"""Primitive building blocks shared by every layer."""

from __future__ import annotations

from .exceptions import (
    AuthError,
    CMSClientError,
    CMSMirrorError,
    ConfigurationError,
    DomainError,
    InfrastructureError,
    InvalidSchemaError,
    LockAcquisitionError,
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
    WebhookError,
)
from .locking import ResourceIdentifier

__all__ = [
    "AuthError",
    "CMSClientError",
    "CMSMirrorError",
    "ConfigurationError",
    "DomainError",
    "InfrastructureError",
    "InvalidSchemaError",
    "LockAcquisitionError",
    "MalformedResponseError",
    "MalformedWebhookError",
    "NotFoundError",
    "RateLimitedError",
    "ResourceIdentifier",
    "SchemaBuildError",
    "StoreBackendError",
    "SyncCancelledError",
    "SyncError",
    "TokenExpiredError",
    "TransientError",
    "UnknownContentTypeError",
    "WebhookError",
]
