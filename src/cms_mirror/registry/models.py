"""Static mapping of content type ids to entry model factories."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from ..domain.entry import Entry

if TYPE_CHECKING:
    from collections.abc import Callable

    from .registry import TypeRegistry

    EntryFactory = Callable[[Entry], Any]

logger = logging.getLogger("cms_mirror.registry")


class ModelRegistry:
    """
    Content type id → factory table.

    Populated at init; entries of unregistered content types are returned
    as the generic :class:`Entry`.

    Usage::

        models = ModelRegistry.for_registry(type_registry)
        models.register("article", Article.from_entry)
        article = models.build(entry)
    """

    def __init__(self) -> None:
        self._factories: dict[str, EntryFactory] = {}
        self._known: frozenset[str] = frozenset()

    @classmethod
    def for_registry(cls, registry: TypeRegistry) -> ModelRegistry:
        models = cls()
        models._known = frozenset(registry.ids)
        return models

    def rebind(self, registry: TypeRegistry) -> ModelRegistry:
        """A table for *registry* keeping the factories whose type still exists."""
        models = ModelRegistry.for_registry(registry)
        for content_type_id, factory in self._factories.items():
            if content_type_id in models._known:
                models._factories[content_type_id] = factory
            else:
                logger.warning("Dropping model for removed content type %r", content_type_id)
        return models

    def register(self, content_type_id: str, factory: EntryFactory) -> None:
        if self._known and content_type_id not in self._known:
            raise KeyError(f"Content type {content_type_id!r} is not in the registry")
        self._factories[content_type_id] = factory

    def add(self, content_type_id: str) -> Callable[[EntryFactory], EntryFactory]:
        """Decorator form of :meth:`register`."""

        def decorator(factory: EntryFactory) -> EntryFactory:
            self.register(content_type_id, factory)
            return factory

        return decorator

    def build(self, entry: Entry) -> Any:
        factory = self._factories.get(entry.content_type_id)
        return entry if factory is None else factory(entry)

    def clear(self) -> None:
        self._factories.clear()
