"""Paging, ordering and locale options for list reads."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from .filter import resolve_path

if TYPE_CHECKING:
    from collections.abc import Iterable

    from ..domain.entry import Entry


@dataclass(frozen=True)
class QueryOptions:
    """
    Options for :meth:`IStore.find_all`.

    ``order`` entries are dot paths (``"fields.title"``, ``"sys.updatedAt"``);
    a leading ``-`` sorts descending.
    """

    limit: int | None = None
    skip: int = 0
    order: tuple[str, ...] = ()
    locale: str | None = None

    def apply(self, entries: Iterable[Entry], default_locale: str | None = None) -> list[Entry]:
        """Sort, then page *entries* in memory."""
        result = list(entries)
        locale = self.locale or default_locale
        for key in reversed(self.order):
            descending = key.startswith("-")
            path = key.lstrip("-")
            present = [e for e in result if resolve_path(e, path, locale) is not None]
            missing = [e for e in result if resolve_path(e, path, locale) is None]
            present.sort(key=lambda e: _sort_key(resolve_path(e, path, locale)), reverse=descending)
            result = present + missing
        end = None if self.limit is None else self.skip + self.limit
        return result[self.skip : end]

    def to_query_params(self) -> dict[str, Any]:
        params: dict[str, Any] = {}
        if self.order:
            params["order"] = ",".join(self.order)
        return params


def _sort_key(value: Any) -> Any:
    if isinstance(value, (dict, list)):
        return str(value)
    return value
