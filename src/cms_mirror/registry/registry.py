"""Immutable content type registry and its atomically swapped holder."""

from __future__ import annotations

import logging
from types import MappingProxyType
from typing import TYPE_CHECKING

from ..domain.content_type import ContentType, FieldType
from ..domain.entry import ASSET_CONTENT_TYPE
from ..primitives.exceptions import InvalidSchemaError, UnknownContentTypeError
from .indexer import ASSET_TYPE

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

logger = logging.getLogger(__name__)


class TypeRegistry:
    """
    Every content type of a space, indexed by id.

    Built once by :meth:`build`, which fails fast with
    :class:`InvalidSchemaError`; afterwards reads never fail and need no
    locking. Content types discovered later require an explicit rebuild
    through :class:`RegistryHolder`.
    """

    __slots__ = ("_types",)

    def __init__(self, types: dict[str, ContentType]) -> None:
        self._types = MappingProxyType(dict(types))

    @classmethod
    def build(cls, content_types: Iterable[ContentType]) -> TypeRegistry:
        types: dict[str, ContentType] = {}
        for content_type in content_types:
            if content_type.id in types:
                raise InvalidSchemaError(
                    f"Duplicate content type id {content_type.id!r}"
                )
            _check_fields(content_type)
            types[content_type.id] = content_type
        types.setdefault(ASSET_CONTENT_TYPE, ASSET_TYPE)
        logger.debug("Built type registry with %d content types", len(types))
        return cls(types)

    def get(self, content_type_id: str) -> ContentType:
        try:
            return self._types[content_type_id]
        except KeyError:
            raise UnknownContentTypeError(content_type_id) from None

    def find(self, content_type_id: str) -> ContentType | None:
        return self._types.get(content_type_id)

    def __contains__(self, content_type_id: object) -> bool:
        return content_type_id in self._types

    def __iter__(self) -> Iterator[ContentType]:
        return iter(self._types.values())

    def __len__(self) -> int:
        return len(self._types)

    @property
    def ids(self) -> list[str]:
        return list(self._types)


def _check_fields(content_type: ContentType) -> None:
    seen: set[str] = set()
    for field in content_type.fields:
        where = f"{content_type.id}.{field.id}"
        if field.id in seen:
            raise InvalidSchemaError(f"{where}: duplicate field id")
        seen.add(field.id)
        if field.link_target_types is None:
            continue
        if field.type is not FieldType.LINK:
            raise InvalidSchemaError(f"{where}: link targets on a {field.type.value} field")
        if not field.link_target_types:
            raise InvalidSchemaError(f"{where}: link field allows no target types")


class RegistryHolder:
    """
    Holds the current :class:`TypeRegistry`.

    :meth:`rebuild` constructs the replacement completely before swapping
    the reference, so readers see either the old or the new registry.
    """

    def __init__(self, registry: TypeRegistry) -> None:
        self._registry = registry

    @property
    def current(self) -> TypeRegistry:
        return self._registry

    def rebuild(self, content_types: Iterable[ContentType]) -> TypeRegistry:
        registry = TypeRegistry.build(content_types)
        self._registry = registry
        logger.info("Type registry rebuilt (%d content types)", len(registry))
        return registry
