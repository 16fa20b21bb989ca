from .builder import (
    EntryNode,
    SchemaBuilder,
    SchemaContext,
    build_schema,
    execute,
    field_name,
    type_name,
)
from .federation import stitch_schemas
from .scalars import CoordinatesType, DateTimeScalar, JsonScalar

__all__ = [
    "CoordinatesType",
    "DateTimeScalar",
    "EntryNode",
    "JsonScalar",
    "SchemaBuilder",
    "SchemaContext",
    "build_schema",
    "execute",
    "field_name",
    "stitch_schemas",
    "type_name",
]
