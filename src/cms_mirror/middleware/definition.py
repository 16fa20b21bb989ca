"""Registration record for one read pipeline stage."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from ..ports.middleware import IStoreMiddleware

if TYPE_CHECKING:
    from collections.abc import Callable


@dataclass(frozen=True)
class MiddlewareDefinition:
    """A stage class, its priority and how to construct it.

    Construction is deferred until the pipeline is assembled; *factory*,
    when given, replaces the class as the constructor.
    """

    middleware_cls: type[Any]
    priority: int = 0
    factory: Callable[..., Any] | None = None
    kwargs: dict[str, object] = field(default_factory=dict)

    def build(self) -> IStoreMiddleware:
        make = self.factory or self.middleware_cls
        stage = make(**self.kwargs)
        if not isinstance(stage, IStoreMiddleware):
            raise TypeError(f"{self.middleware_cls.__name__} is not a store middleware")
        return stage
