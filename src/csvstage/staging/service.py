"""Async staging service.

Wires the path registry, worker pool, schema provider and authoritative store
to the staging operations. Mutating operations on one collection hold that
collection's lock for their whole duration; different collections proceed
in parallel.

Usage:
    service = StagingService.from_settings(settings, schemas, authority)
    await service.upload("customers", valid_rows, invalid_rows)
    summary = await service.validate("customers")
    result = await service.import_rows("customers", ids)
    service.close()
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from csvstage.authority.store import AuthoritativeStore
from csvstage.core.config import Settings
from csvstage.core.connections import WorkerPool
from csvstage.core.errors import EmptyUploadError, StagingNotFoundError
from csvstage.core.logging import get_logger, log_context
from csvstage.core.models import (
    ImportSummary,
    StagingPages,
    UploadSummary,
    ValidationSummary,
)
from csvstage.schemas.provider import SchemaProvider
from csvstage.staging import exporter
from csvstage.staging.exporter import HeaderMode
from csvstage.staging.importer import import_staged
from csvstage.staging.registry import StagingPathRegistry, check_collection_name
from csvstage.staging.schema import INVALID_TABLE, VALID_TABLE
from csvstage.staging.store import StagingStore
from csvstage.staging.validator import NOT_FOUND_MESSAGE, validate_staged

logger = get_logger(__name__)


@dataclass
class StagingService:
    """Entry point for every staging operation."""

    settings: Settings
    registry: StagingPathRegistry
    schemas: SchemaProvider
    authority: AuthoritativeStore
    pool: WorkerPool

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        schemas: SchemaProvider,
        authority: AuthoritativeStore,
    ) -> StagingService:
        return cls(
            settings=settings,
            registry=StagingPathRegistry(settings.staging_root),
            schemas=schemas,
            authority=authority,
            pool=WorkerPool(max_workers=settings.worker_threads),
        )

    def _store(self, collection: str, *, create: bool = False) -> StagingStore:
        path = self.registry.resolve(collection) if create else self.registry.lookup(collection)
        return StagingStore(
            path=path,
            sqlite_timeout=self.settings.sqlite_timeout,
            type_tags=self.settings.type_tags,
            max_page_size=self.settings.max_page_size,
        )

    async def upload(
        self, collection: str, valid: Sequence[Any], invalid: Sequence[Any]
    ) -> UploadSummary:
        """Replace the collection's staging store with the uploaded rows.

        Raises:
            EmptyUploadError: If both row lists are empty
            StructuralError: If the rows cannot be staged; the previous
                store is left as it was
        """
        check_collection_name(collection)
        if not valid and not invalid:
            raise EmptyUploadError("No data provided", collection=collection)

        with log_context(collection=collection, operation="upload"):
            async with self.registry.lock(collection):
                store = self._store(collection, create=True)
                valid_count, invalid_count = await self.pool.run(store.replace, valid, invalid)

            logger.info("upload_finished", valid=valid_count, invalid=invalid_count)
        return UploadSummary(
            collection=collection, valid_count=valid_count, invalid_count=invalid_count
        )

    async def pages(
        self,
        collection: str,
        valid_page: int = 1,
        valid_page_size: int | None = None,
        invalid_page: int = 1,
        invalid_page_size: int | None = None,
    ) -> StagingPages:
        """One page of each staging table; no store yields two empty pages."""
        default_size = self.settings.default_page_size
        if valid_page_size is None:
            valid_page_size = default_size
        if invalid_page_size is None:
            invalid_page_size = default_size
        store = self._store(collection)
        valid = await self.pool.run(store.page, VALID_TABLE, valid_page, valid_page_size)
        invalid = await self.pool.run(
            store.page, INVALID_TABLE, invalid_page, invalid_page_size
        )
        return StagingPages(valid=valid, invalid=invalid)

    async def validate(self, collection: str) -> ValidationSummary:
        """Re-check staged valid rows against the authoritative store."""
        with log_context(collection=collection, operation="validate"):
            async with self.registry.lock(collection):
                return await validate_staged(
                    collection,
                    self._store(collection),
                    self.schemas,
                    self.authority,
                    self.pool,
                )

    async def import_rows(self, collection: str, ids: Sequence[str]) -> ImportSummary:
        """Commit the staged valid rows with the given ids."""
        with log_context(collection=collection, operation="import"):
            async with self.registry.lock(collection):
                return await import_staged(
                    collection,
                    ids,
                    self._store(collection),
                    self.schemas,
                    self.authority,
                    self.pool,
                )

    async def delete(self, collection: str) -> bool:
        """Remove the staging store. Deleting a missing store is a no-op.

        Returns:
            True if a store was removed
        """
        with log_context(collection=collection, operation="delete"):
            async with self.registry.lock(collection):
                removed = await self.pool.run(self._store(collection).remove)
                self.registry.release(collection)
            logger.info("staging_deleted", removed=removed)
        return removed

    async def export_staged(
        self,
        collection: str,
        ids: Sequence[str] | None = None,
        include_id: bool = True,
    ) -> tuple[str, bytes]:
        """CSV of staged valid rows, optionally restricted to ``ids``.

        Returns:
            ``(filename, content)``
        """
        store = self._store(collection)
        if not store.exists():
            raise StagingNotFoundError(NOT_FOUND_MESSAGE, collection=collection)

        layout, rows = await self.pool.run(store.rows, VALID_TABLE, ids or None)
        content = await self.pool.run(exporter.export_staged_csv, layout, rows, include_id)
        logger.info("staged_export_finished", collection=collection, rows=len(rows))
        return exporter.export_filename(f"{collection}_staged"), content

    async def export_collection(
        self,
        collection: str,
        header_mode: HeaderMode = "original",
        include_id: bool = False,
    ) -> tuple[str, bytes]:
        """CSV of every authoritative document of the collection.

        Returns:
            ``(filename, content)``
        """
        check_collection_name(collection)
        schema = await self.schemas.get_schema(collection)
        documents = [doc async for doc in self.authority.find_all(collection)]
        content = await self.pool.run(
            exporter.export_documents_csv, documents, schema, header_mode, include_id
        )
        logger.info("collection_export_finished", collection=collection, rows=len(documents))
        return exporter.export_filename(collection), content

    def close(self) -> None:
        self.pool.shutdown()
