"""
In-memory filter operator evaluation.

Each operator is an isolated class with a single ``evaluate`` method,
collected in a :class:`FilterOperatorRegistry`. New operators are added by
subclassing :class:`FilterOperator` and registering an instance.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from enum import Enum
from typing import Any


class Operator(str, Enum):
    EQ = "eq"
    NE = "ne"
    IN = "in"
    NIN = "nin"
    EXISTS = "exists"
    LT = "lt"
    LTE = "lte"
    GT = "gt"
    GTE = "gte"
    MATCH = "match"


class FilterOperator(ABC):
    """Strategy interface for in-memory operator evaluation."""

    @property
    @abstractmethod
    def name(self) -> Operator:
        ...

    @abstractmethod
    def evaluate(self, field_value: Any, condition_value: Any) -> bool:
        """Return True if *field_value* satisfies the condition."""
        ...


class EqualOperator(FilterOperator):
    """Equality; against an array field it means "contains"."""

    @property
    def name(self) -> Operator:
        return Operator.EQ

    def evaluate(self, field_value: Any, condition_value: Any) -> bool:
        if isinstance(field_value, list):
            return condition_value in field_value
        left, right = _comparable(field_value, condition_value)
        return bool(left == right)


class NotEqualOperator(EqualOperator):
    @property
    def name(self) -> Operator:
        return Operator.NE

    def evaluate(self, field_value: Any, condition_value: Any) -> bool:
        return not super().evaluate(field_value, condition_value)


class InOperator(FilterOperator):
    @property
    def name(self) -> Operator:
        return Operator.IN

    def evaluate(self, field_value: Any, condition_value: Any) -> bool:
        candidates = _as_list(condition_value)
        if isinstance(field_value, list):
            return any(value in candidates for value in field_value)
        return field_value in candidates


class NotInOperator(InOperator):
    @property
    def name(self) -> Operator:
        return Operator.NIN

    def evaluate(self, field_value: Any, condition_value: Any) -> bool:
        return not super().evaluate(field_value, condition_value)


class ExistsOperator(FilterOperator):
    @property
    def name(self) -> Operator:
        return Operator.EXISTS

    def evaluate(self, field_value: Any, condition_value: Any) -> bool:
        return (field_value is not None) is bool(condition_value)


class _ComparisonOperator(FilterOperator):
    def evaluate(self, field_value: Any, condition_value: Any) -> bool:
        if field_value is None or condition_value is None:
            return False
        left, right = _comparable(field_value, condition_value)
        try:
            return self._compare(left, right)
        except TypeError:
            return False

    @abstractmethod
    def _compare(self, left: Any, right: Any) -> bool:
        ...


class LessThanOperator(_ComparisonOperator):
    @property
    def name(self) -> Operator:
        return Operator.LT

    def _compare(self, left: Any, right: Any) -> bool:
        return bool(left < right)


class LessEqualOperator(_ComparisonOperator):
    @property
    def name(self) -> Operator:
        return Operator.LTE

    def _compare(self, left: Any, right: Any) -> bool:
        return bool(left <= right)


class GreaterThanOperator(_ComparisonOperator):
    @property
    def name(self) -> Operator:
        return Operator.GT

    def _compare(self, left: Any, right: Any) -> bool:
        return bool(left > right)


class GreaterEqualOperator(_ComparisonOperator):
    @property
    def name(self) -> Operator:
        return Operator.GTE

    def _compare(self, left: Any, right: Any) -> bool:
        return bool(left >= right)


class MatchOperator(FilterOperator):
    """Case-insensitive substring match."""

    @property
    def name(self) -> Operator:
        return Operator.MATCH

    def evaluate(self, field_value: Any, condition_value: Any) -> bool:
        if field_value is None:
            return False
        return str(condition_value).lower() in str(field_value).lower()


class FilterOperatorRegistry:
    """
    Registry of FilterOperator instances keyed by :class:`Operator`.

    Usage::

        registry = build_default_registry()
        registry.evaluate(Operator.EQ, actual, expected)
    """

    def __init__(self) -> None:
        self._operators: dict[Operator, FilterOperator] = {}

    def register(self, operator: FilterOperator) -> None:
        self._operators[operator.name] = operator

    def register_all(self, *operators: FilterOperator) -> None:
        for op in operators:
            self.register(op)

    def evaluate(self, name: Operator, field_value: Any, condition_value: Any) -> bool:
        try:
            operator = self._operators[name]
        except KeyError:
            raise ValueError(f"Unsupported filter operator {name!r}") from None
        return operator.evaluate(field_value, condition_value)

    def __contains__(self, name: object) -> bool:
        return name in self._operators


def build_default_registry() -> FilterOperatorRegistry:
    registry = FilterOperatorRegistry()
    registry.register_all(
        EqualOperator(),
        NotEqualOperator(),
        InOperator(),
        NotInOperator(),
        ExistsOperator(),
        LessThanOperator(),
        LessEqualOperator(),
        GreaterThanOperator(),
        GreaterEqualOperator(),
        MatchOperator(),
    )
    return registry


def parse_datetime(value: str) -> datetime:
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    return datetime.fromisoformat(value)


def _comparable(left: Any, right: Any) -> tuple[Any, Any]:
    """Parse ISO strings when the other side is a datetime."""
    try:
        if isinstance(left, datetime) and isinstance(right, str):
            return left, parse_datetime(right)
        if isinstance(right, datetime) and isinstance(left, str):
            return parse_datetime(left), right
    except ValueError:
        pass
    return left, right


def _as_list(value: Any) -> list[Any]:
    if isinstance(value, str):
        return [part.strip() for part in value.split(",")]
    if isinstance(value, (list, tuple, set, frozenset)):
        return list(value)
    return [value]
