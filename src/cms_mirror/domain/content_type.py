"""Indexed representation of CMS content types."""

from __future__ import annotations

from enum import Enum

from .value_object import ValueObject


class FieldType(str, Enum):
    STRING = "String"
    INT = "Int"
    FLOAT = "Float"
    DATETIME = "DateTime"
    BOOLEAN = "Boolean"
    JSON = "Json"
    COORDINATES = "Coordinates"
    LINK = "Link"
    ASSET = "Asset"


class FieldDefinition(ValueObject):
    """
    One field of a content type.

    ``link_target_types`` restricts a ``LINK`` field to the listed content
    type ids; ``None`` means any entry may be linked.
    """

    id: str
    name: str = ""
    type: FieldType
    array: bool = False
    localized: bool = False
    required: bool = False
    link_target_types: tuple[str, ...] | None = None

    @property
    def is_link(self) -> bool:
        return self.type in (FieldType.LINK, FieldType.ASSET)


class ContentType(ValueObject):
    id: str
    name: str
    display_field: str | None = None
    fields: tuple[FieldDefinition, ...] = ()

    def field(self, field_id: str) -> FieldDefinition | None:
        for definition in self.fields:
            if definition.id == field_id:
                return definition
        return None
