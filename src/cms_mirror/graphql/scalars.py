"""Custom scalars and shared input types for generated schemas.

These are module-level singletons so that schemas built separately can be
stitched together without type-name conflicts.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from graphql import (
    GraphQLArgument,
    GraphQLBoolean,
    GraphQLField,
    GraphQLFloat,
    GraphQLInputField,
    GraphQLInputObjectType,
    GraphQLInt,
    GraphQLList,
    GraphQLNonNull,
    GraphQLObjectType,
    GraphQLScalarType,
    GraphQLString,
    ValueNode,
    value_from_ast_untyped,
)
from graphql.language import StringValueNode

from ..query.operators import parse_datetime


def _serialize_datetime(value: Any) -> str:
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


def _parse_datetime_value(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    try:
        return parse_datetime(str(value))
    except ValueError as err:
        raise TypeError(f"DateTime cannot represent {value!r}") from err


def _parse_datetime_literal(node: ValueNode, _variables: Any = None) -> datetime:
    if not isinstance(node, StringValueNode):
        raise TypeError("DateTime literals must be strings")
    return _parse_datetime_value(node.value)


DateTimeScalar = GraphQLScalarType(
    name="DateTime",
    description="ISO-8601 date-time",
    serialize=_serialize_datetime,
    parse_value=_parse_datetime_value,
    parse_literal=_parse_datetime_literal,
)

JsonScalar = GraphQLScalarType(
    name="Json",
    description="Arbitrary JSON value",
    serialize=lambda value: value,
    parse_value=lambda value: value,
    parse_literal=value_from_ast_untyped,
)

CoordinatesType = GraphQLObjectType(
    name="Coordinates",
    fields={
        "lat": GraphQLField(GraphQLFloat),
        "lon": GraphQLField(GraphQLFloat),
    },
)


def _operator_input(name: str, scalar: Any, operators: tuple[str, ...]) -> GraphQLInputObjectType:
    fields: dict[str, GraphQLInputField] = {}
    for op in operators:
        if op in ("in", "nin"):
            fields[op] = GraphQLInputField(GraphQLList(GraphQLNonNull(scalar)))
        elif op == "exists":
            fields[op] = GraphQLInputField(GraphQLBoolean)
        else:
            fields[op] = GraphQLInputField(scalar)
    return GraphQLInputObjectType(name, fields)


_EQUALITY = ("eq", "ne", "in", "nin", "exists")
_ORDERED = ("eq", "ne", "in", "nin", "exists", "lt", "lte", "gt", "gte")

StringQueryOperatorInput = _operator_input(
    "StringQueryOperatorInput", GraphQLString, (*_EQUALITY, "match")
)
IntQueryOperatorInput = _operator_input("IntQueryOperatorInput", GraphQLInt, _ORDERED)
FloatQueryOperatorInput = _operator_input("FloatQueryOperatorInput", GraphQLFloat, _ORDERED)
BooleanQueryOperatorInput = _operator_input(
    "BooleanQueryOperatorInput", GraphQLBoolean, ("eq", "ne", "exists")
)
DateTimeQueryOperatorInput = _operator_input(
    "DateTimeQueryOperatorInput", DateTimeScalar, ("eq", "ne", "exists", "lt", "lte", "gt", "gte")
)

PAGING_ARGS = {
    "limit": GraphQLArgument(GraphQLInt),
    "skip": GraphQLArgument(GraphQLInt),
    "order": GraphQLArgument(GraphQLList(GraphQLNonNull(GraphQLString))),
}
