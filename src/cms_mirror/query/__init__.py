"""Filter language and list options."""

from __future__ import annotations

from .filter import Condition, matches_all, normalize_path, parse_filter, resolve_path
from .operators import FilterOperator, FilterOperatorRegistry, Operator
from .options import QueryOptions

__all__ = [
    "Condition",
    "FilterOperator",
    "FilterOperatorRegistry",
    "Operator",
    "QueryOptions",
    "matches_all",
    "normalize_path",
    "parse_filter",
    "resolve_path",
]
