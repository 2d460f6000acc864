"""Collection schema providers."""

from csvstage.schemas.provider import CollectionSchema, FieldSpec, SchemaProvider
from csvstage.schemas.static import StaticSchemaProvider

__all__ = [
    "CollectionSchema",
    "FieldSpec",
    "SchemaProvider",
    "StaticSchemaProvider",
]
