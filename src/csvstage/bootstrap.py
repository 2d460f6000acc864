"""Service construction from settings."""

from __future__ import annotations

from pymongo import AsyncMongoClient

from csvstage.authority.mongo import MongoAuthoritativeStore, create_client
from csvstage.core.config import Settings
from csvstage.schemas.mongo import MongoSchemaProvider
from csvstage.schemas.provider import SchemaProvider
from csvstage.schemas.static import StaticSchemaProvider
from csvstage.staging.service import StagingService


def build_mongo_service(settings: Settings) -> tuple[StagingService, AsyncMongoClient]:
    """Service backed by the configured MongoDB database.

    Schemas come from ``settings.schema_file`` when set, otherwise from the
    collection validators. The caller closes the returned client.
    """
    client = create_client(settings.mongo_url, settings.mongo_timeout_ms)
    database = client[settings.mongo_database]

    schemas: SchemaProvider
    if settings.schema_file is not None:
        schemas = StaticSchemaProvider.from_file(settings.schema_file)
    else:
        schemas = MongoSchemaProvider(database, settings.ui_metadata_collection)

    service = StagingService.from_settings(settings, schemas, MongoAuthoritativeStore(database))
    return service, client
