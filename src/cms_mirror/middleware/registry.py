"""MiddlewareRegistry: declarative stage registration with ordering."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from .definition import MiddlewareDefinition

if TYPE_CHECKING:
    from collections.abc import Callable

    from ..ports.middleware import IStoreMiddleware

logger = logging.getLogger(__name__)


class MiddlewareRegistry:
    """Collects stage definitions and produces an ordered list.

    Stages are registered with a ``priority``: lower values run first,
    i.e. sit closest to the store.
    """

    def __init__(self) -> None:
        self._definitions: list[MiddlewareDefinition] = []
        self._instances: list[IStoreMiddleware] | None = None

    # ── Registration ─────────────────────────────────────────────

    def register(
        self,
        middleware_cls: type[Any],
        *,
        priority: int = 0,
        factory: Callable[..., IStoreMiddleware] | None = None,
        **kwargs: object,
    ) -> None:
        self._definitions.append(
            MiddlewareDefinition(
                middleware_cls=middleware_cls,
                priority=priority,
                factory=factory,
                kwargs=kwargs,
            )
        )
        self._instances = None
        logger.debug(
            "Registered store middleware %s (priority=%d)",
            middleware_cls.__name__,
            priority,
        )

    def add(
        self,
        middleware_cls: type[Any] | None = None,
        *,
        priority: int = 0,
        factory: Callable[..., IStoreMiddleware] | None = None,
        **kwargs: object,
    ) -> Any:
        """Decorator-style registration.

        Usage::

            @registry.add
            class HideDrafts(StoreMiddleware): ...

            @registry.add(priority=10)
            class Localize(StoreMiddleware): ...
        """
        if middleware_cls is None:

            def wrapper(cls: type[Any]) -> type[Any]:
                self.register(cls, priority=priority, factory=factory, **kwargs)
                return cls

            return wrapper

        self.register(middleware_cls, priority=priority, factory=factory, **kwargs)
        return middleware_cls

    # ── Retrieval ────────────────────────────────────────────────

    def get_ordered_middlewares(self) -> list[IStoreMiddleware]:
        """Return stage instances sorted by priority (ascending)."""
        if self._instances is None:
            ordered = sorted(self._definitions, key=lambda d: d.priority)
            self._instances = [d.build() for d in ordered]
        return list(self._instances)

    def clear(self) -> None:
        """Remove all registrations (testing utility)."""
        self._definitions.clear()
        self._instances = None

    def __len__(self) -> int:
        return len(self._definitions)
