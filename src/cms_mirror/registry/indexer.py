"""Indexes raw CMS content type JSON into :class:`ContentType` objects."""

from __future__ import annotations

from typing import Any

from ..domain.content_type import ContentType, FieldDefinition, FieldType
from ..domain.entry import ASSET_CONTENT_TYPE
from ..primitives.exceptions import InvalidSchemaError

_SCALAR_TYPES: dict[str, FieldType] = {
    "Symbol": FieldType.STRING,
    "Text": FieldType.STRING,
    "RichText": FieldType.JSON,
    "Integer": FieldType.INT,
    "Number": FieldType.FLOAT,
    "Date": FieldType.DATETIME,
    "Boolean": FieldType.BOOLEAN,
    "Object": FieldType.JSON,
    "Location": FieldType.COORDINATES,
}

ASSET_TYPE = ContentType(
    id=ASSET_CONTENT_TYPE,
    name="Asset",
    display_field="title",
    fields=(
        FieldDefinition(id="title", name="Title", type=FieldType.STRING, localized=True),
        FieldDefinition(
            id="description", name="Description", type=FieldType.STRING, localized=True
        ),
        FieldDefinition(id="file", name="File", type=FieldType.JSON, localized=True),
    ),
)


def index_content_type(raw: dict[str, Any]) -> ContentType:
    """Convert one content type as returned by the CMS."""
    try:
        type_id = raw["sys"]["id"]
    except (KeyError, TypeError) as err:
        raise InvalidSchemaError("Content type without sys.id") from err
    fields = tuple(_index_field(type_id, f) for f in raw.get("fields") or [])
    return ContentType(
        id=type_id,
        name=raw.get("name") or type_id,
        display_field=raw.get("displayField"),
        fields=fields,
    )


def _index_field(type_id: str, raw: dict[str, Any]) -> FieldDefinition:
    field_id = raw.get("id")
    if not field_id:
        raise InvalidSchemaError(f"{type_id}: field without id")
    raw_type = raw.get("type")
    array = raw_type == "Array"
    source = (raw.get("items") or {}) if array else raw
    if array and not source:
        raise InvalidSchemaError(f"{type_id}.{field_id}: Array field without items")

    item_type = source.get("type")
    link_targets: tuple[str, ...] | None = None
    if item_type == "Link":
        link_type = source.get("linkType")
        if link_type == "Asset":
            field_type = FieldType.ASSET
        elif link_type == "Entry":
            field_type = FieldType.LINK
            link_targets = _link_content_types(source.get("validations") or [])
        else:
            raise InvalidSchemaError(
                f"{type_id}.{field_id}: unknown link type {link_type!r}"
            )
    elif item_type in _SCALAR_TYPES:
        field_type = _SCALAR_TYPES[item_type]
    else:
        raise InvalidSchemaError(f"{type_id}.{field_id}: unknown field type {item_type!r}")

    return FieldDefinition(
        id=field_id,
        name=raw.get("name") or field_id,
        type=field_type,
        array=array,
        localized=bool(raw.get("localized")),
        required=bool(raw.get("required")),
        link_target_types=link_targets,
    )


def _link_content_types(validations: list[dict[str, Any]]) -> tuple[str, ...] | None:
    for validation in validations:
        targets = validation.get("linkContentType")
        if targets is not None:
            return tuple(targets)
    return None
