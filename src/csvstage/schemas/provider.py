"""Schema provider interface and the schema model it returns."""

from __future__ import annotations

from typing import Protocol

from pydantic import BaseModel, Field

DEFAULT_FIELD_TYPE = "string"

KNOWN_TYPES = frozenset(
    {
        "date",
        "int",
        "int32",
        "long",
        "int64",
        "double",
        "number",
        "decimal",
        "string",
        "bool",
        "boolean",
        "array",
        "object",
        "document",
        "objectId",
    }
)


def normalize_type(raw: object) -> str:
    """Reduce a declared ``bsonType`` to one known type name.

    Lists (``["string", "null"]``) use their first non-null entry; anything
    unknown is treated as ``string``.
    """
    if isinstance(raw, list | tuple):
        raw = next((t for t in raw if t != "null"), None)
    if isinstance(raw, str) and raw in KNOWN_TYPES:
        return raw
    return DEFAULT_FIELD_TYPE


class FieldSpec(BaseModel):
    """One declared field of a collection."""

    name: str
    type: str = DEFAULT_FIELD_TYPE
    unique: bool = False
    short_name: str | None = None


class CollectionSchema(BaseModel):
    """Ordered field declarations of one collection."""

    collection: str
    fields: list[FieldSpec] = Field(default_factory=list)

    @property
    def field_names(self) -> list[str]:
        return [f.name for f in self.fields]

    @property
    def field_types(self) -> dict[str, str]:
        return {f.name: f.type for f in self.fields}

    @property
    def unique_fields(self) -> list[str]:
        """Fields carrying a uniqueness constraint, in schema order."""
        return [f.name for f in self.fields if f.unique]

    @property
    def short_names(self) -> dict[str, str]:
        return {f.name: f.short_name for f in self.fields if f.short_name}

    def type_of(self, name: str) -> str:
        """Declared type of a field; undeclared fields are strings."""
        for spec in self.fields:
            if spec.name == name:
                return spec.type
        return DEFAULT_FIELD_TYPE


class SchemaProvider(Protocol):
    """Source of collection schemas."""

    async def get_schema(self, collection: str) -> CollectionSchema:
        """Return the collection's schema.

        Raises:
            CollectionNotFoundError: If the collection does not exist
            SchemaProviderError: If the schema cannot be read
        """
        ...
