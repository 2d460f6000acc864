"""Schemas declared in configuration.

YAML layout::

    collections:
      customers:
        fields:
          email: {type: string, unique: true, short_name: Email}
          age: {type: int}
          joined: date
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from csvstage.core.errors import CollectionNotFoundError, SchemaProviderError
from csvstage.core.logging import get_logger
from csvstage.schemas.provider import CollectionSchema, FieldSpec, normalize_type

logger = get_logger(__name__)


def _field_from_config(name: str, raw: Any) -> FieldSpec:
    if isinstance(raw, str) or raw is None:
        return FieldSpec(name=name, type=normalize_type(raw))
    if not isinstance(raw, dict):
        raise SchemaProviderError(f"Field '{name}' must be a type name or a mapping")
    return FieldSpec(
        name=name,
        type=normalize_type(raw.get("type")),
        unique=bool(raw.get("unique", False)),
        short_name=raw.get("short_name"),
    )


def schemas_from_config(config: dict[str, Any]) -> dict[str, CollectionSchema]:
    """Build schemas from a parsed configuration mapping."""
    collections = config.get("collections") or {}
    if not isinstance(collections, dict):
        raise SchemaProviderError("'collections' must be a mapping")

    schemas: dict[str, CollectionSchema] = {}
    for name, body in collections.items():
        raw_fields = (body or {}).get("fields") or {}
        if not isinstance(raw_fields, dict):
            raise SchemaProviderError(f"'fields' of collection '{name}' must be a mapping")
        schemas[name] = CollectionSchema(
            collection=name,
            fields=[_field_from_config(field, raw) for field, raw in raw_fields.items()],
        )
    return schemas


def load_schema_file(path: Path) -> dict[str, CollectionSchema]:
    """Load schemas from a YAML file.

    Raises:
        SchemaProviderError: If the file is missing or malformed
    """
    if not path.exists():
        raise SchemaProviderError(f"Schema file not found: {path}")
    try:
        with open(path) as f:
            config = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise SchemaProviderError(f"Cannot parse schema file {path}: {e}") from e
    if not isinstance(config, dict):
        raise SchemaProviderError(f"Schema file {path} must contain a mapping")
    return schemas_from_config(config)


class StaticSchemaProvider:
    """Schema provider backed by an in-memory mapping."""

    def __init__(self, schemas: dict[str, CollectionSchema] | None = None):
        self._schemas = dict(schemas or {})

    @classmethod
    def from_file(cls, path: Path) -> StaticSchemaProvider:
        schemas = load_schema_file(path)
        logger.info("schemas_loaded", path=str(path), collections=len(schemas))
        return cls(schemas)

    @classmethod
    def from_config(cls, config: dict[str, Any]) -> StaticSchemaProvider:
        return cls(schemas_from_config(config))

    def register(self, schema: CollectionSchema) -> None:
        self._schemas[schema.collection] = schema

    async def get_schema(self, collection: str) -> CollectionSchema:
        try:
            return self._schemas[collection]
        except KeyError:
            raise CollectionNotFoundError(
                f"Collection not found: {collection}", collection=collection
            ) from None
