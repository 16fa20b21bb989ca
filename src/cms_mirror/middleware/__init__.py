"""Read pipeline: stages wrapped around a store."""

from __future__ import annotations

from .base import StoreMiddleware
from .context import DeliveryParams, MiddlewareContext
from .definition import MiddlewareDefinition
from .locale import LocaleMiddleware
from .pipeline import MiddlewareStore, build_pipeline
from .publish_window import PublishWindowMiddleware
from .published import PublishedOnlyMiddleware
from .registry import MiddlewareRegistry

__all__ = [
    "DeliveryParams",
    "LocaleMiddleware",
    "MiddlewareContext",
    "MiddlewareDefinition",
    "MiddlewareRegistry",
    "MiddlewareStore",
    "PublishWindowMiddleware",
    "PublishedOnlyMiddleware",
    "StoreMiddleware",
    "build_pipeline",
]
