"""Commit staged valid rows into the authoritative store."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

from csvstage.authority.store import AuthoritativeStore
from csvstage.coercion import coerce_id, coerce_value
from csvstage.core.connections import WorkerPool
from csvstage.core.errors import AuthoritativeStoreError, StagingNotFoundError
from csvstage.core.logging import get_logger
from csvstage.core.models import ImportSummary
from csvstage.schemas.provider import CollectionSchema, SchemaProvider
from csvstage.staging.schema import ID_COLUMN, KINDS_COLUMN, VALID_TABLE
from csvstage.staging.store import StagingStore
from csvstage.staging.validator import NOT_FOUND_MESSAGE

logger = get_logger(__name__)


def build_document(
    row: Mapping[str, Any], layout: Sequence[str], schema: CollectionSchema
) -> tuple[Any, dict[str, Any], list[str]]:
    """Coerce one staged row to document fields.

    Fields that fail coercion are left out and reported.

    Returns:
        ``(doc_id, fields, errors)``; ``doc_id`` is None when the row has no
        usable identifier
    """
    label = row.get(ID_COLUMN) or "?"
    doc_id: Any = None
    fields: dict[str, Any] = {}
    errors: list[str] = []

    for column in layout:
        if column == KINDS_COLUMN:
            continue
        text = row.get(column)
        if text is None:
            continue

        if column == ID_COLUMN:
            declared = schema.field_types.get(ID_COLUMN)
            if declared in (None, "objectId", "string"):
                doc_id = coerce_id(text, declared)
                continue
            result = coerce_value(text, declared)
            if result.success:
                doc_id = result.value
            else:
                errors.append(f"Row {label}: Field {column}: {result.error}")
            continue

        result = coerce_value(text, schema.type_of(column))
        if result.success:
            fields[column] = result.value
        else:
            errors.append(f"Row {label}: Field {column}: {result.error}")

    return doc_id, fields, errors


async def import_staged(
    collection: str,
    ids: Sequence[str],
    staging: StagingStore,
    schemas: SchemaProvider,
    authority: AuthoritativeStore,
    pool: WorkerPool,
) -> ImportSummary:
    """Upsert the staged valid rows with the given ids.

    Unknown ids are skipped. Coercion and per-row write failures are collected
    in ``errors``; the remaining rows are still committed.

    Raises:
        StagingNotFoundError: If nothing was uploaded for the collection
    """
    summary = ImportSummary()
    if not ids:
        return summary
    if not staging.exists():
        raise StagingNotFoundError(NOT_FOUND_MESSAGE, collection=collection)

    schema = await schemas.get_schema(collection)
    layout, rows = await pool.run(staging.rows, VALID_TABLE, ids)

    for row in rows:
        doc_id, fields, errors = build_document(row, layout, schema)
        summary.errors.extend(errors)
        if doc_id is None:
            summary.errors.append(f"Row {row.get(ID_COLUMN) or '?'}: Document missing _id")
            continue

        try:
            outcome = await authority.upsert(collection, doc_id, fields)
        except AuthoritativeStoreError as e:
            summary.errors.append(f"Row {row[ID_COLUMN]}: upsert failed: {e.message}")
            continue

        if outcome.inserted:
            summary.inserted_count += 1
        else:
            summary.modified_count += outcome.modified_count

    logger.info(
        "import_finished",
        collection=collection,
        requested=len(ids),
        found=len(rows),
        inserted=summary.inserted_count,
        modified=summary.modified_count,
        errors=len(summary.errors),
    )
    return summary
