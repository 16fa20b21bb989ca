"""Per-request context passed read-only through the read pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

from ..domain.entry import DEFAULT_LOCALE

if TYPE_CHECKING:
    from collections.abc import Mapping

    from ..config import MirrorConfig

ALL_LOCALES = "*"


@dataclass(frozen=True)
class DeliveryParams:
    """Per-request delivery parameters (preview mode, locale, extras)."""

    preview: bool = False
    locale: str | None = None
    extra: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))


@dataclass(frozen=True)
class MiddlewareContext:
    delivery_params: DeliveryParams = field(default_factory=DeliveryParams)
    config: MirrorConfig | None = None

    @classmethod
    def create(
        cls,
        config: MirrorConfig | None = None,
        *,
        preview: bool = False,
        locale: str | None = None,
        **extra: Any,
    ) -> MiddlewareContext:
        params = DeliveryParams(
            preview=preview, locale=locale, extra=MappingProxyType(dict(extra))
        )
        return cls(delivery_params=params, config=config)

    @property
    def preview(self) -> bool:
        return self.delivery_params.preview

    @property
    def default_locale(self) -> str:
        return self.config.default_locale if self.config is not None else DEFAULT_LOCALE

    @property
    def locale(self) -> str:
        return self.delivery_params.locale or self.default_locale
