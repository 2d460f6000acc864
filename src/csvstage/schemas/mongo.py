"""Schemas read from MongoDB collection validators.

Field order and types come from ``options.validator.$jsonSchema.properties``;
a property with ``unique: true`` is a unique field. Short names live in the
``ui_metadata`` collection under ``ui.short_names`` of the global (no
``user_id``) entry.
"""

from __future__ import annotations

from typing import Any

from pymongo.asynchronous.database import AsyncDatabase
from pymongo.errors import PyMongoError

from csvstage.core.errors import CollectionNotFoundError, SchemaProviderError
from csvstage.core.logging import get_logger
from csvstage.schemas.provider import CollectionSchema, FieldSpec, normalize_type

logger = get_logger(__name__)


def schema_from_collection_info(
    collection: str, info: dict[str, Any], short_names: dict[str, Any] | None = None
) -> CollectionSchema:
    """Build a schema from one ``listCollections`` entry."""
    validator = (info.get("options") or {}).get("validator") or {}
    json_schema = validator.get("$jsonSchema") or {}
    properties = json_schema.get("properties") or {}
    short_names = short_names or {}

    fields = []
    for name, prop in properties.items():
        prop = prop if isinstance(prop, dict) else {}
        short = short_names.get(name)
        fields.append(
            FieldSpec(
                name=name,
                type=normalize_type(prop.get("bsonType")),
                unique=prop.get("unique") is True,
                short_name=short if isinstance(short, str) else None,
            )
        )
    return CollectionSchema(collection=collection, fields=fields)


class MongoSchemaProvider:
    """Schema provider reading validators from a MongoDB database."""

    def __init__(self, database: AsyncDatabase, ui_metadata_collection: str = "ui_metadata"):
        self.database = database
        self.ui_metadata_collection = ui_metadata_collection

    async def _short_names(self, collection: str) -> dict[str, Any]:
        try:
            entry = await self.database[self.ui_metadata_collection].find_one(
                {"collection": collection, "user_id": {"$exists": False}}
            )
        except PyMongoError as e:
            # Headers fall back to field names
            logger.warning("ui_metadata_unavailable", collection=collection, error=str(e))
            return {}
        ui = (entry or {}).get("ui") or {}
        names = ui.get("short_names") or {}
        return names if isinstance(names, dict) else {}

    async def get_schema(self, collection: str) -> CollectionSchema:
        try:
            cursor = await self.database.list_collections(filter={"name": collection})
            infos = await cursor.to_list()
        except PyMongoError as e:
            raise SchemaProviderError(
                f"Failed to get collection info: {e}", collection=collection
            ) from e

        if not infos:
            raise CollectionNotFoundError(
                f"Collection not found: {collection}", collection=collection
            )

        short_names = await self._short_names(collection)
        return schema_from_collection_info(collection, infos[0], short_names)
