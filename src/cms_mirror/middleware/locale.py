"""LocaleMiddleware: narrows entries to the request locale."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from .base import StoreMiddleware
from .context import ALL_LOCALES

if TYPE_CHECKING:
    from ..domain.entry import Entry
    from .context import MiddlewareContext


class LocaleMiddleware(StoreMiddleware):
    """
    Rewrites ``fields`` from the all-locales shape to the request locale,
    falling back to the default locale for untranslated fields.

    Requests for ``"*"`` keep every locale.
    """

    @classmethod
    def applies(cls, context: MiddlewareContext) -> bool:
        return context.locale != ALL_LOCALES

    def transform(self, entry: Entry, context: MiddlewareContext) -> Entry:
        locale = context.locale
        if entry.sys.locale == locale:
            return entry
        fields: dict[str, dict[str, Any]] = {}
        for field_id, values in entry.fields.items():
            if locale in values:
                fields[field_id] = {locale: values[locale]}
            elif context.default_locale in values:
                fields[field_id] = {locale: values[context.default_locale]}
        return entry.model_copy(
            update={
                "fields": fields,
                "sys": entry.sys.model_copy(update={"locale": locale}),
            }
        )
