"""CSV export of staged rows and authoritative documents."""

from __future__ import annotations

import csv
import io
import json
from collections.abc import Iterable, Mapping, Sequence
from datetime import UTC, datetime
from typing import Any, Literal

from bson import ObjectId

from csvstage.core.errors import ExportError
from csvstage.schemas.provider import CollectionSchema
from csvstage.staging.schema import ID_COLUMN

HeaderMode = Literal["original", "short"]

CSV_MEDIA_TYPE = "text/csv; charset=utf-8"


def export_filename(prefix: str, now: datetime | None = None) -> str:
    """``<prefix>_<YYYYmmdd_HHMMSS>.csv``"""
    stamp = (now or datetime.now(UTC)).strftime("%Y%m%d_%H%M%S")
    return f"{prefix}_{stamp}.csv"


def _json_default(value: Any) -> str:
    if isinstance(value, datetime):
        return _render_datetime(value)
    return str(value)


def _render_datetime(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.isoformat()


def render_cell(value: Any) -> str | int | float:
    """Cell value as written to CSV. Numbers stay numbers so they are left unquoted."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int | float):
        return value
    if isinstance(value, str):
        return value
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, datetime):
        return _render_datetime(value)
    if isinstance(value, list | dict):
        return json.dumps(value, separators=(",", ":"), default=_json_default, ensure_ascii=False)
    return str(value)


def _write_csv(header: Sequence[str], rows: Iterable[Sequence[Any]], quoting: int) -> bytes:
    buffer = io.StringIO(newline="")
    try:
        writer = csv.writer(buffer, quoting=quoting)
        writer.writerow(header)
        writer.writerows(rows)
    except (csv.Error, TypeError, ValueError) as e:
        raise ExportError(f"CSV serialization failed: {e}") from e
    return buffer.getvalue().encode("utf-8")


def export_staged_csv(
    layout: Sequence[str], rows: Iterable[Mapping[str, Any]], include_id: bool = True
) -> bytes:
    """Staged rows as CSV, cells exactly as stored (NULL as empty).

    Args:
        layout: Table layout, ``_id`` first
        rows: Raw stored rows
        include_id: Keep the ``_id`` column
    """
    columns = [c for c in layout if include_id or c != ID_COLUMN]
    body = ([row.get(c) or "" for c in columns] for row in rows)
    return _write_csv(columns, body, csv.QUOTE_MINIMAL)


def document_fields(schema: CollectionSchema, include_id: bool) -> list[str]:
    """Export columns: schema property order, ``_id`` first when requested."""
    fields = schema.field_names
    if include_id and ID_COLUMN not in fields:
        fields = [ID_COLUMN, *fields]
    return fields


def export_documents_csv(
    documents: Iterable[Mapping[str, Any]],
    schema: CollectionSchema,
    header_mode: HeaderMode = "original",
    include_id: bool = False,
) -> bytes:
    """Authoritative documents as CSV.

    ``short`` headers use the schema's short names, falling back to the field
    name. Non-numeric cells are quoted.
    """
    fields = document_fields(schema, include_id)
    if header_mode == "short":
        short_names = schema.short_names
        header = [short_names.get(f, f) for f in fields]
    else:
        header = list(fields)

    body = ([render_cell(doc.get(f)) for f in fields] for doc in documents)
    return _write_csv(header, body, csv.QUOTE_NONNUMERIC)
