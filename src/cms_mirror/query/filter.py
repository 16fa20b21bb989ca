"""
Filter language for ``find_by`` / ``find_all``.

A filter is a mapping of dot paths to either a literal (equality) or a
mapping of operator names to operands::

    {"slug": "/about"}
    {"id": {"in": ["a", "b"]}}
    {"fields.publishAt": {"lte": "2024-01-01T00:00:00Z"}, "sys.revision": {"gt": 1}}

``id`` means ``sys.id``; keys under ``sys.`` address entry metadata; any
other key is a field (``fields.`` prefix optional) read in the request
locale, with further dot segments walking into object values.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Any

from .operators import Operator, build_default_registry

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from ..domain.entry import Entry
    from .operators import FilterOperatorRegistry

DEFAULT_OPERATORS = build_default_registry()

_OPERATOR_NAMES = frozenset(op.value for op in Operator)


@dataclass(frozen=True)
class Condition:
    path: str
    operator: Operator
    value: Any

    @property
    def is_sys(self) -> bool:
        return self.path.startswith("sys.")

    @property
    def field_id(self) -> str | None:
        if self.is_sys:
            return None
        return self.path.split(".")[1]

    def matches(
        self,
        entry: Entry,
        locale: str | None = None,
        operators: FilterOperatorRegistry = DEFAULT_OPERATORS,
    ) -> bool:
        actual = resolve_path(entry, self.path, locale)
        return operators.evaluate(self.operator, actual, self.value)

    def to_query_param(self) -> tuple[str, str]:
        """Render as a delivery API query parameter."""
        key = self.path if self.operator is Operator.EQ else f"{self.path}[{self.operator.value}]"
        return key, _render(self.value)


def parse_filter(filter: Mapping[str, Any] | None) -> list[Condition]:  # noqa: A002
    conditions: list[Condition] = []
    for key, expected in (filter or {}).items():
        path = normalize_path(key)
        if isinstance(expected, dict) and expected and _OPERATOR_NAMES.intersection(expected):
            unknown = set(expected) - _OPERATOR_NAMES
            if unknown:
                raise ValueError(f"Unknown filter operators for {key!r}: {sorted(unknown)}")
            for op_name, operand in expected.items():
                conditions.append(Condition(path, Operator(op_name), operand))
        else:
            conditions.append(Condition(path, Operator.EQ, expected))
    return conditions


def matches_all(
    entry: Entry,
    conditions: Iterable[Condition],
    locale: str | None = None,
) -> bool:
    return all(condition.matches(entry, locale) for condition in conditions)


def normalize_path(key: str) -> str:
    if key in ("id", "sys.id"):
        return "sys.id"
    if key.startswith(("sys.", "fields.")):
        return key
    return f"fields.{key}"


def resolve_path(entry: Entry, path: str, locale: str | None = None) -> Any:
    """Read the value at dot *path* from *entry*, or ``None``."""
    path = normalize_path(path)
    scope, _, rest = path.partition(".")
    if scope == "sys":
        return _resolve_sys(entry, rest)
    field_id, _, sub_path = rest.partition(".")
    value = entry.field(field_id, locale)
    for segment in sub_path.split(".") if sub_path else ():
        if not isinstance(value, dict):
            return None
        value = value.get(segment)
    return value


def _resolve_sys(entry: Entry, name: str) -> Any:
    if name in ("contentType", "contentType.sys.id", "content_type_id"):
        return entry.content_type_id
    attribute = re.sub(r"(?<!^)(?=[A-Z])", "_", name).lower()
    return getattr(entry.sys, attribute, None)


def _render(value: Any) -> str:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, tuple, set, frozenset)):
        return ",".join(_render(v) for v in value)
    return str(value)
