"""SchemaBuilder: a GraphQL schema derived from the type registry."""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from graphql import (
    ExecutionResult,
    GraphQLArgument,
    GraphQLBoolean,
    GraphQLField,
    GraphQLFloat,
    GraphQLID,
    GraphQLInputField,
    GraphQLInputObjectType,
    GraphQLInt,
    GraphQLList,
    GraphQLNonNull,
    GraphQLObjectType,
    GraphQLSchema,
    GraphQLString,
    GraphQLUnionType,
    graphql,
)

from ..domain.content_type import FieldType
from ..domain.entry import ASSET_CONTENT_TYPE
from ..middleware.context import ALL_LOCALES, MiddlewareContext
from ..primitives.exceptions import SchemaBuildError
from ..query.options import QueryOptions
from .scalars import (
    PAGING_ARGS,
    BooleanQueryOperatorInput,
    CoordinatesType,
    DateTimeQueryOperatorInput,
    DateTimeScalar,
    FloatQueryOperatorInput,
    IntQueryOperatorInput,
    JsonScalar,
    StringQueryOperatorInput,
)

if TYPE_CHECKING:
    from graphql import GraphQLOutputType, GraphQLResolveInfo

    from ..domain.content_type import ContentType, FieldDefinition
    from ..domain.entry import Entry
    from ..ports.store import IStore
    from ..registry.registry import TypeRegistry

logger = logging.getLogger(__name__)

_SCALARS: dict[FieldType, Any] = {
    FieldType.STRING: GraphQLString,
    FieldType.INT: GraphQLInt,
    FieldType.FLOAT: GraphQLFloat,
    FieldType.BOOLEAN: GraphQLBoolean,
    FieldType.DATETIME: DateTimeScalar,
    FieldType.JSON: JsonScalar,
    FieldType.COORDINATES: CoordinatesType,
}

_FILTER_INPUTS: dict[FieldType, GraphQLInputObjectType] = {
    FieldType.STRING: StringQueryOperatorInput,
    FieldType.INT: IntQueryOperatorInput,
    FieldType.FLOAT: FloatQueryOperatorInput,
    FieldType.BOOLEAN: BooleanQueryOperatorInput,
    FieldType.DATETIME: DateTimeQueryOperatorInput,
}


@dataclass
class EntryNode:
    """An entry as seen by resolvers, with its link distance from the root."""

    entry: Entry
    depth: int = 0


@dataclass
class SchemaContext:
    """
    ``context_value`` for executing a generated schema.

    ``resolved`` caches every entry fetched during the query, so an id is
    looked up at most once however often it is linked.
    """

    middleware_context: MiddlewareContext = field(default_factory=MiddlewareContext)
    max_depth: int = 10
    resolved: dict[str, Entry | None] = field(default_factory=dict)
    _loading: dict[str, asyncio.Future[Entry | None]] = field(
        default_factory=dict, repr=False
    )

    async def load(self, store: IStore, entry_id: str) -> Entry | None:
        """Fetch *entry_id* once per query, sharing in-flight lookups."""
        if entry_id in self.resolved:
            return self.resolved[entry_id]
        pending = self._loading.get(entry_id)
        if pending is None:
            pending = self._loading[entry_id] = asyncio.ensure_future(
                store.find(entry_id, context=self.middleware_context)
            )
        entry = await pending
        self.resolved[entry_id] = entry
        return entry

    @property
    def locale(self) -> str:
        """Locale to read field values in; ``"*"`` reads the default locale."""
        locale = self.middleware_context.locale
        if locale == ALL_LOCALES:
            return self.middleware_context.default_locale
        return locale


def type_name(content_type_id: str, prefix: str = "") -> str:
    """``blog-post`` → ``BlogPost``."""
    parts = [p for p in re.split(r"[^0-9A-Za-z]+", content_type_id) if p]
    name = prefix + "".join(p[0].upper() + p[1:] for p in parts)
    if not name or name[0].isdigit():
        name = "_" + name
    return name


_BUILTIN_FIELDS = ("id", "_contentType")


def field_name(field_id: str) -> str:
    name = re.sub(r"[^0-9A-Za-z_]", "_", field_id)
    if not name or name[0].isdigit():
        name = "_" + name
    return name


class SchemaBuilder:
    """
    Emits one object type per content type plus root query fields.

    Link fields resolve lazily through the store at query time; a link with
    one target type resolves to that type, several become a union, and an
    unrestricted link resolves to the ``AnyEntry`` union. Resolution stops
    past ``max_depth`` link hops.

    Usage::

        schema = SchemaBuilder(registry, store).build()
        result = await execute(schema, "{ allArticle { title } }")
    """

    def __init__(
        self,
        registry: TypeRegistry,
        store: IStore,
        *,
        type_prefix: str = "",
    ) -> None:
        self._registry = registry
        self._store = store
        self._prefix = type_prefix
        self._types: dict[str, GraphQLObjectType] = {}
        self._unions: dict[str, GraphQLUnionType] = {}

    def build(self) -> GraphQLSchema:
        self._types = {}
        self._unions = {}
        names: dict[str, str] = {}
        for content_type in self._registry:
            name = type_name(content_type.id, self._prefix)
            if name in names:
                raise SchemaBuildError(
                    f"Content types {names[name]!r} and {content_type.id!r} "
                    f"both map to GraphQL type {name}"
                )
            names[name] = content_type.id
            self._check_links(content_type)
            self._check_field_names(content_type)
            self._types[content_type.id] = self._object_type(content_type, name)

        query_fields: dict[str, GraphQLField] = {}
        for content_type in self._registry:
            name = self._types[content_type.id].name
            query_fields[name] = self._single_field(content_type)
            query_fields[f"all{name}"] = self._list_field(content_type)

        schema = GraphQLSchema(
            query=GraphQLObjectType(f"{self._prefix}Query", lambda: query_fields),
            types=list(self._types.values()),
        )
        logger.debug("Built GraphQL schema with %d content types", len(self._types))
        return schema

    # ── Validation ───────────────────────────────────────────────

    def _check_links(self, content_type: ContentType) -> None:
        for definition in content_type.fields:
            for target in definition.link_target_types or ():
                if target not in self._registry:
                    raise SchemaBuildError(
                        f"{content_type.id}.{definition.id} links to unknown "
                        f"content type {target!r}"
                    )

    def _check_field_names(self, content_type: ContentType) -> None:
        seen: dict[str, str] = {name: name for name in _BUILTIN_FIELDS}
        for definition in content_type.fields:
            name = field_name(definition.id)
            if name in seen:
                raise SchemaBuildError(
                    f"{content_type.id}.{definition.id} collides with field "
                    f"{seen[name]!r} as GraphQL field {name}"
                )
            seen[name] = definition.id

    # ── Object types ─────────────────────────────────────────────

    def _object_type(self, content_type: ContentType, name: str) -> GraphQLObjectType:
        def fields() -> dict[str, GraphQLField]:
            result = {
                "id": GraphQLField(GraphQLNonNull(GraphQLID), resolve=_resolve_id),
                "_contentType": GraphQLField(
                    GraphQLNonNull(GraphQLString), resolve=_resolve_content_type
                ),
            }
            for definition in content_type.fields:
                result[field_name(definition.id)] = self._field(content_type, definition)
            return result

        return GraphQLObjectType(name, fields, description=content_type.name)

    def _field(self, content_type: ContentType, definition: FieldDefinition) -> GraphQLField:
        if definition.is_link:
            target = self._link_type(content_type, definition)
            gql_type: GraphQLOutputType = GraphQLList(target) if definition.array else target
            return GraphQLField(gql_type, resolve=self._link_resolver(definition))
        scalar = _SCALARS[definition.type]
        return GraphQLField(
            GraphQLList(scalar) if definition.array else scalar,
            resolve=_scalar_resolver(definition.id),
        )

    def _link_type(self, content_type: ContentType, definition: FieldDefinition) -> Any:
        if definition.type is FieldType.ASSET:
            return self._types[ASSET_CONTENT_TYPE]
        targets = definition.link_target_types
        if targets is None:
            return self._union(f"{self._prefix}AnyEntry", [
                ct.id for ct in self._registry if ct.id != ASSET_CONTENT_TYPE
            ] or [ASSET_CONTENT_TYPE])
        if len(targets) == 1:
            return self._types[targets[0]]
        union_name = f"{self._types[content_type.id].name}_{field_name(definition.id)}"
        return self._union(union_name, list(targets))

    def _union(self, name: str, content_type_ids: list[str]) -> GraphQLUnionType:
        union = self._unions.get(name)
        if union is None:
            members = [self._types[ct] for ct in content_type_ids]
            by_id = {ct: self._types[ct].name for ct in content_type_ids}

            def resolve_type(node: EntryNode, _info: Any, _union: Any) -> str | None:
                return by_id.get(node.entry.content_type_id)

            union = self._unions[name] = GraphQLUnionType(
                name, members, resolve_type=resolve_type
            )
        return union

    # ── Resolvers ────────────────────────────────────────────────

    def _link_resolver(self, definition: FieldDefinition) -> Any:
        store = self._store

        async def resolve(node: EntryNode, info: GraphQLResolveInfo) -> Any:
            ctx = _context(info)
            links = node.entry.links(definition.id, ctx.locale)
            if node.depth >= ctx.max_depth:
                logger.debug("Link depth %d reached at %s", node.depth, node.entry.id)
                return [] if definition.array else None
            resolved: list[EntryNode] = []
            for link in links:
                entry = await ctx.load(store, link.id)
                if entry is not None:
                    resolved.append(EntryNode(entry, node.depth + 1))
            if definition.array:
                return resolved
            return resolved[0] if resolved else None

        return resolve

    # ── Root fields ──────────────────────────────────────────────

    def _filter_args(self, content_type: ContentType) -> dict[str, GraphQLArgument]:
        args: dict[str, GraphQLArgument] = {}
        for definition in content_type.fields:
            operator_input = _FILTER_INPUTS.get(definition.type)
            if operator_input is not None:
                args[field_name(definition.id)] = GraphQLArgument(operator_input)
        return args

    def _single_field(self, content_type: ContentType) -> GraphQLField:
        store = self._store
        object_type = self._types[content_type.id]
        field_ids = {field_name(d.id): d.id for d in content_type.fields}

        async def resolve(_root: Any, info: GraphQLResolveInfo, **args: Any) -> EntryNode | None:
            ctx = _context(info)
            entry_id = args.pop("id", None)
            query = _to_filter(args, field_ids)
            if entry_id is not None and not query:
                entry = await store.find(entry_id, context=ctx.middleware_context)
                if entry is not None and entry.content_type_id != content_type.id:
                    entry = None
            else:
                if entry_id is not None:
                    query["id"] = entry_id
                entry = await store.find_by(
                    content_type.id,
                    query,
                    options=QueryOptions(locale=ctx.locale),
                    context=ctx.middleware_context,
                )
            if entry is None:
                return None
            ctx.resolved[entry.id] = entry
            return EntryNode(entry)

        return GraphQLField(
            object_type,
            args={"id": GraphQLArgument(GraphQLID), **self._filter_args(content_type)},
            resolve=resolve,
        )

    def _list_field(self, content_type: ContentType) -> GraphQLField:
        store = self._store
        object_type = self._types[content_type.id]
        field_ids = {field_name(d.id): d.id for d in content_type.fields}
        filter_type = GraphQLInputObjectType(
            f"{object_type.name}Filter",
            lambda: {
                name: GraphQLInputField(arg.type)
                for name, arg in self._filter_args(content_type).items()
            }
            | {"id": GraphQLInputField(StringQueryOperatorInput)},
        )

        async def resolve(
            _root: Any,
            info: GraphQLResolveInfo,
            filter: dict[str, Any] | None = None,  # noqa: A002
            limit: int | None = None,
            skip: int | None = None,
            order: list[str] | None = None,
        ) -> list[EntryNode]:
            ctx = _context(info)
            options = QueryOptions(
                limit=limit, skip=skip or 0, order=tuple(order or ()), locale=ctx.locale
            )
            entries = await store.find_all(
                content_type.id,
                _to_filter(filter or {}, {**field_ids, "id": "id"}),
                options=options,
                context=ctx.middleware_context,
            )
            for entry in entries:
                ctx.resolved[entry.id] = entry
            return [EntryNode(entry) for entry in entries]

        return GraphQLField(
            GraphQLNonNull(GraphQLList(GraphQLNonNull(object_type))),
            args={"filter": GraphQLArgument(filter_type), **PAGING_ARGS},
            resolve=resolve,
        )


def build_schema(
    registry: TypeRegistry,
    store: IStore,
    *,
    type_prefix: str = "",
) -> GraphQLSchema:
    return SchemaBuilder(registry, store, type_prefix=type_prefix).build()


async def execute(
    schema: GraphQLSchema,
    source: str,
    *,
    context: MiddlewareContext | None = None,
    variables: dict[str, Any] | None = None,
    max_depth: int = 10,
) -> ExecutionResult:
    """Run *source* against *schema* with a fresh per-query entry cache."""
    schema_context = SchemaContext(
        middleware_context=context or MiddlewareContext(), max_depth=max_depth
    )
    return await graphql(
        schema, source, context_value=schema_context, variable_values=variables
    )


def _context(info: GraphQLResolveInfo) -> SchemaContext:
    ctx = info.context
    if isinstance(ctx, SchemaContext):
        return ctx
    if isinstance(ctx, MiddlewareContext):
        return SchemaContext(middleware_context=ctx)
    return SchemaContext()


def _resolve_id(node: EntryNode, _info: Any) -> str:
    return node.entry.id


def _resolve_content_type(node: EntryNode, _info: Any) -> str:
    return node.entry.content_type_id


def _scalar_resolver(field_id: str) -> Any:
    def resolve(node: EntryNode, info: GraphQLResolveInfo) -> Any:
        return node.entry.field(field_id, _context(info).locale)

    return resolve


def _to_filter(args: dict[str, Any], field_ids: dict[str, str]) -> dict[str, Any]:
    """GraphQL operator inputs → store filter mapping."""
    result: dict[str, Any] = {}
    for name, operators in args.items():
        if operators is None:
            continue
        present = {op: v for op, v in operators.items() if v is not None}
        if present:
            result[field_ids.get(name, name)] = present
    return result
