"""Row ingestion into staging tables.

Every cell is stored as text. Cells that were not strings carry a kind tag in
the hidden ``_value_kinds`` column so readers can rebuild the original value.
"""

from __future__ import annotations

import json
import uuid
from collections.abc import Mapping, Sequence
from typing import Any

from sqlalchemy import Connection, insert
from sqlalchemy.exc import SQLAlchemyError

from csvstage.core.errors import StructuralError
from csvstage.core.logging import get_logger
from csvstage.staging.schema import (
    ALT_ID_COLUMN,
    ERRORS_COLUMN,
    ID_COLUMN,
    INVALID_TABLE,
    KINDS_COLUMN,
    VALID_TABLE,
    build_table,
)

logger = get_logger(__name__)

KIND_NUMBER = "number"
KIND_BOOL = "bool"
KIND_JSON = "json"
KIND_OID = "oid"

DEFAULT_REJECTION = "Row rejected before upload"


def compact_json(value: Any) -> str:
    """JSON text without insignificant whitespace."""
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False)


def _object_id_text(value: Any) -> str | None:
    """Inner string of an ``{"$oid": "..."}`` wrapper."""
    if isinstance(value, Mapping) and len(value) == 1:
        inner = value.get("$oid")
        if isinstance(inner, str):
            return inner
    return None


def to_storage_value(value: Any) -> tuple[str | None, str | None]:
    """Convert one JSON-like value to ``(stored_text, kind)``.

    ``kind`` is None for plain strings and NULLs. Empty strings become NULL.
    """
    if value is None:
        return None, None
    if isinstance(value, bool):
        return ("true" if value else "false"), KIND_BOOL
    if isinstance(value, int | float):
        return json.dumps(value), KIND_NUMBER
    if isinstance(value, str):
        return (value or None), None
    oid = _object_id_text(value)
    if oid is not None:
        return oid, KIND_OID
    if isinstance(value, list | tuple | Mapping):
        return compact_json(value if not isinstance(value, tuple) else list(value)), KIND_JSON
    return str(value), None


def derive_row_id(row: Mapping[str, Any]) -> str:
    """Stable identifier for a staged row.

    ``_id`` wins when it is a non-empty string or an object-id wrapper, then a
    non-empty string or numeric ``id``. Anything else gets a fresh UUID4.
    """
    for key in (ID_COLUMN, ALT_ID_COLUMN):
        candidate = row.get(key)
        oid = _object_id_text(candidate)
        if oid:
            return oid
        if isinstance(candidate, str) and candidate:
            return candidate
        if isinstance(candidate, int | float) and not isinstance(candidate, bool):
            return json.dumps(candidate)
    return str(uuid.uuid4())


def staged_record(row: Any, data_columns: Sequence[str]) -> dict[str, Any]:
    """Build the insert parameters for one row.

    Raises:
        StructuralError: If the row is not a mapping
    """
    if not isinstance(row, Mapping):
        raise StructuralError(f"Row must be an object, got {type(row).__name__}")

    record: dict[str, Any] = {ID_COLUMN: derive_row_id(row)}
    kinds: dict[str, str] = {}
    for column in data_columns:
        text, kind = to_storage_value(row.get(column))
        record[column] = text
        if kind is not None and text is not None:
            kinds[column] = kind
    record[KINDS_COLUMN] = compact_json(kinds) if kinds else None
    return record


def errors_text(errors: Any) -> str:
    """Serialize a row's rejection reasons as a non-empty JSON array."""
    if isinstance(errors, str):
        reasons = [errors] if errors else []
    elif isinstance(errors, list | tuple):
        reasons = [e if isinstance(e, str) else compact_json(e) for e in errors]
    elif errors is None:
        reasons = []
    else:
        reasons = [compact_json(errors)]
    return compact_json(reasons or [DEFAULT_REJECTION])


def _insert_all(
    conn: Connection, table_name: str, layout: Sequence[str], records: list[dict]
) -> int:
    if not records:
        return 0
    table = build_table(table_name, layout)
    try:
        conn.execute(insert(table), records)
    except SQLAlchemyError as e:
        raise StructuralError(f"Cannot insert rows into {table_name}: {e}") from e
    logger.debug("staging_rows_inserted", table=table_name, rows=len(records))
    return len(records)


def insert_valid(conn: Connection, layout: Sequence[str], rows: Sequence[Any]) -> int:
    """Insert rows into ``valid_data`` with one prepared statement.

    Args:
        conn: Connection inside the upload transaction
        layout: Layout returned by ``create_valid_table``
        rows: Uploaded valid rows

    Returns:
        Number of rows inserted

    Raises:
        StructuralError: On a malformed row or a constraint violation
            (for example two rows with the same identifier)
    """
    data_columns = [c for c in layout if c != ID_COLUMN]
    records = [staged_record(row, data_columns) for row in rows]
    return _insert_all(conn, VALID_TABLE, layout, records)


def insert_invalid(conn: Connection, layout: Sequence[str], rows: Sequence[Any]) -> int:
    """Insert rows into ``invalid_data``; every row gets a non-empty ``errors`` array."""
    data_columns = [c for c in layout if c not in (ID_COLUMN, ERRORS_COLUMN)]
    records = []
    for row in rows:
        record = staged_record(row, data_columns)
        record[ERRORS_COLUMN] = errors_text(row.get(ERRORS_COLUMN))
        records.append(record)
    return _insert_all(conn, INVALID_TABLE, layout, records)
