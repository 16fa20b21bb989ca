"""Additive composition of independently built schemas."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from graphql import GraphQLObjectType, GraphQLSchema

from ..primitives.exceptions import SchemaBuildError

if TYPE_CHECKING:
    from graphql import GraphQLField, GraphQLNamedType

logger = logging.getLogger(__name__)


def stitch_schemas(
    base: GraphQLSchema,
    *others: GraphQLSchema,
    namespace: str | None = None,
) -> GraphQLSchema:
    """
    Return a new schema whose query root carries the root fields of *base*
    and every schema in *others*.

    Neither input is modified. Named types are shared by identity; two
    different types with the same name, or two root fields with the same
    name, raise :class:`SchemaBuildError`. With *namespace*, root fields
    contributed by *others* are prefixed with it.
    """
    query_fields: dict[str, GraphQLField] = {}
    types: dict[str, GraphQLNamedType] = {}

    for index, schema in enumerate((base, *others)):
        prefix = namespace if index and namespace else ""
        if schema.query_type is not None:
            for name, root_field in schema.query_type.fields.items():
                key = f"{prefix}{name}"
                if key in query_fields:
                    raise SchemaBuildError(f"Root field {key!r} defined more than once")
                query_fields[key] = root_field
        for name, named_type in schema.type_map.items():
            if name.startswith("__") or named_type is schema.query_type:
                continue
            existing = types.get(name)
            if existing is not None and existing is not named_type:
                raise SchemaBuildError(f"Conflicting definitions of GraphQL type {name!r}")
            types[name] = named_type

    logger.debug("Stitched %d schemas into %d root fields", len(others) + 1, len(query_fields))
    return GraphQLSchema(
        query=GraphQLObjectType(base.query_type.name if base.query_type else "Query", query_fields),
        types=list(types.values()),
    )
