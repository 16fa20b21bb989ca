"""Content type registry."""

from __future__ import annotations

from .indexer import ASSET_TYPE, index_content_type
from .models import ModelRegistry
from .registry import RegistryHolder, TypeRegistry

__all__ = [
    "ASSET_TYPE",
    "ModelRegistry",
    "RegistryHolder",
    "TypeRegistry",
    "index_content_type",
]
