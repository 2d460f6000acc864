"""Conflict detection against the authoritative store.

A staged valid row conflicts when its ``_id`` already exists or when one of
its unique fields holds a value some stored document already has. Conflicting
rows are moved to the invalid table with their reasons.
"""

from __future__ import annotations

from collections.abc import Hashable, Mapping, Sequence
from typing import Any

from csvstage.authority.store import AuthoritativeStore
from csvstage.coercion import coerce_value
from csvstage.core.connections import WorkerPool
from csvstage.core.errors import StagingNotFoundError
from csvstage.core.logging import get_logger
from csvstage.core.models import ValidationSummary
from csvstage.schemas.provider import CollectionSchema, SchemaProvider
from csvstage.staging.schema import ID_COLUMN, VALID_TABLE
from csvstage.staging.store import StagingStore

logger = get_logger(__name__)

ID_CONFLICT = "Existing document with the same _id"
UNIQUE_CONFLICT = "Duplicate value for unique field '{field}'"
NOT_FOUND_MESSAGE = "Temporary data not found. Please upload again."


def value_forms(text: str, field_type: str) -> list[Hashable]:
    """Forms a staged value may take in stored documents.

    The staged text itself, plus the value coerced to the declared type when
    that differs (``"42"`` and ``42`` for an ``int`` field).
    """
    forms: list[Hashable] = [text]
    coerced = coerce_value(text, field_type)
    if coerced.success and isinstance(coerced.value, Hashable) and coerced.value is not None:
        if coerced.value != text:
            forms.append(coerced.value)
    return forms


async def find_conflicts(
    collection: str,
    rows: Sequence[Mapping[str, Any]],
    schema: CollectionSchema,
    authority: AuthoritativeStore,
) -> dict[str, list[str]]:
    """Map of ``_id`` -> reasons for every conflicting row.

    One batched id lookup, then one batched lookup per unique field that has
    at least one non-empty staged value. Fields are checked one after another.
    """
    reasons: dict[str, list[str]] = {}

    ids = [row[ID_COLUMN] for row in rows if row.get(ID_COLUMN)]
    if ids:
        existing = await authority.existing_ids(collection, ids)
        for row_id in ids:
            if row_id in existing:
                reasons.setdefault(row_id, []).append(ID_CONFLICT)

    for field in schema.unique_fields:
        if field == ID_COLUMN:
            continue

        rows_by_value: dict[str, list[str]] = {}
        for row in rows:
            text = row.get(field)
            if text:
                rows_by_value.setdefault(text, []).append(row[ID_COLUMN])
        if not rows_by_value:
            continue

        field_type = schema.type_of(field)
        forms = {text: value_forms(text, field_type) for text in rows_by_value}
        candidates = list(dict.fromkeys(form for group in forms.values() for form in group))

        found = await authority.existing_values(collection, field, candidates)
        if not found:
            continue

        reason = UNIQUE_CONFLICT.format(field=field)
        for text, row_ids in rows_by_value.items():
            if any(form in found for form in forms[text]):
                for row_id in row_ids:
                    reasons.setdefault(row_id, []).append(reason)

    return reasons


async def validate_staged(
    collection: str,
    staging: StagingStore,
    schemas: SchemaProvider,
    authority: AuthoritativeStore,
    pool: WorkerPool,
) -> ValidationSummary:
    """Check staged valid rows and relocate the ones that would collide.

    Raises:
        StagingNotFoundError: If nothing was uploaded for the collection
        AuthoritativeStoreError: If a lookup fails; nothing is relocated
        StagingTransactionError: If relocation fails; nothing is relocated
    """
    if not staging.exists():
        raise StagingNotFoundError(NOT_FOUND_MESSAGE, collection=collection)

    schema = await schemas.get_schema(collection)
    _, rows = await pool.run(staging.rows, VALID_TABLE)
    if not rows:
        logger.info("validation_skipped_empty", collection=collection)
        return ValidationSummary()

    conflicts = await find_conflicts(collection, rows, schema, authority)
    if conflicts:
        await pool.run(staging.relocate, conflicts)

    summary = ValidationSummary(
        validated_count=len(rows),
        conflicts_found=len(conflicts),
        remaining_valid=len(rows) - len(conflicts),
    )
    logger.info(
        "validation_finished",
        collection=collection,
        unique_fields=schema.unique_fields,
        **summary.model_dump(),
    )
    return summary
