"""Typed reads from staging tables."""

from __future__ import annotations

import json
import re
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from sqlalchemy import Connection, func, literal_column, select

from csvstage.core.logging import get_logger
from csvstage.staging.ingest import KIND_BOOL, KIND_JSON, KIND_NUMBER, KIND_OID
from csvstage.staging.schema import (
    ALT_ID_COLUMN,
    ERRORS_COLUMN,
    ID_COLUMN,
    INVALID_TABLE,
    KINDS_COLUMN,
    staging_table,
)

logger = get_logger(__name__)

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100

# SQLite caps bound parameters per statement; stay well below it
ID_CHUNK_SIZE = 500

_JSON_NUMBER = re.compile(r"-?(?:0|[1-9]\d*)(?:\.\d+)?(?:[eE][+-]?\d+)?")


def clamp_page(page: int, page_size: int, max_page_size: int = MAX_PAGE_SIZE) -> tuple[int, int]:
    """Clamp page to >= 1 and page size to ``[1, max_page_size]``."""
    return max(page, 1), min(max(page_size, 1), max(max_page_size, 1))


def _load_json(text: str) -> Any:
    try:
        return json.loads(text)
    except ValueError:
        return text


def sniff_cell(text: str) -> Any:
    """Guess a value from its text: JSON containers, literals and numbers."""
    if (
        (text.startswith("{") and text.endswith("}"))
        or (text.startswith("[") and text.endswith("]"))
        or text in ("true", "false", "null")
        or _JSON_NUMBER.fullmatch(text)
    ):
        return _load_json(text)
    return text


def decode_cell(text: str | None, kind: str | None, *, type_tags: bool = True) -> Any:
    """Rebuild a cell value from stored text.

    With ``type_tags`` the recorded kind decides; untagged text stays a string.
    Without it the value is sniffed from the text.
    """
    if text is None:
        return None
    if not type_tags:
        return sniff_cell(text)
    if kind == KIND_NUMBER or kind == KIND_JSON:
        return _load_json(text)
    if kind == KIND_BOOL:
        return text == "true"
    if kind == KIND_OID:
        return {"$oid": text}
    return text


def parse_kinds(raw: str | None) -> dict[str, str]:
    """Decode the hidden kinds column."""
    if not raw:
        return {}
    try:
        kinds = json.loads(raw)
    except ValueError:
        logger.warning("value_kinds_unreadable", raw=raw)
        return {}
    return kinds if isinstance(kinds, dict) else {}


def decode_row(
    row: Mapping[str, Any],
    layout: Sequence[str],
    table_name: str,
    *,
    type_tags: bool = True,
) -> dict[str, Any]:
    """Turn one stored row into its API form.

    ``_id`` becomes ``{"$oid": ...}`` and is repeated under ``id``. The
    ``errors`` column of the invalid table is always parsed as JSON.
    """
    kinds = parse_kinds(row.get(KINDS_COLUMN))
    decoded: dict[str, Any] = {}
    for column in layout:
        text = row.get(column)
        if column == ID_COLUMN:
            decoded[column] = {"$oid": text} if isinstance(text, str) else text
        elif table_name == INVALID_TABLE and column == ERRORS_COLUMN and text is not None:
            decoded[column] = _load_json(text)
        else:
            decoded[column] = decode_cell(text, kinds.get(column), type_tags=type_tags)

    if isinstance(decoded.get(ID_COLUMN), dict):
        decoded[ALT_ID_COLUMN] = decoded[ID_COLUMN]
    return decoded


def load_page(
    conn: Connection,
    table_name: str,
    page: int,
    page_size: int,
    *,
    max_page_size: int = MAX_PAGE_SIZE,
    type_tags: bool = True,
) -> tuple[list[dict[str, Any]], int]:
    """Read one page ordered by ``_id``.

    Returns:
        ``(rows, total)``; ``([], 0)`` when the table does not exist
    """
    table = staging_table(conn, table_name)
    if table is None:
        return [], 0

    page, page_size = clamp_page(page, page_size, max_page_size)
    total = conn.execute(select(func.count()).select_from(table)).scalar_one()

    stmt = (
        select(table)
        .order_by(table.c[ID_COLUMN])
        .limit(page_size)
        .offset((page - 1) * page_size)
    )
    layout = [c.name for c in table.columns if c.name != KINDS_COLUMN]
    rows = [
        decode_row(row, layout, table_name, type_tags=type_tags)
        for row in conn.execute(stmt).mappings()
    ]
    return rows, total


def _chunks(values: Sequence[str], size: int) -> Iterable[Sequence[str]]:
    for start in range(0, len(values), size):
        yield values[start : start + size]


def read_rows(
    conn: Connection, table_name: str, ids: Sequence[str] | None = None
) -> tuple[list[str], list[dict[str, Any]]]:
    """Raw stored rows in insertion order.

    Args:
        conn: Open staging connection
        table_name: Staging table to read
        ids: Restrict to these ``_id`` values; unknown ids are skipped

    Returns:
        ``(layout, rows)``. Rows hold stored text and the hidden kinds column.
        A missing table gives ``([], [])``.
    """
    table = staging_table(conn, table_name)
    if table is None:
        return [], []

    layout = [c.name for c in table.columns if c.name != KINDS_COLUMN]
    rowid = literal_column("rowid")

    if ids is None:
        stmt = select(table).order_by(rowid)
        return layout, [dict(row) for row in conn.execute(stmt).mappings()]

    wanted = list(dict.fromkeys(i for i in ids if i))
    found: list[tuple[int, dict[str, Any]]] = []
    for chunk in _chunks(wanted, ID_CHUNK_SIZE):
        stmt = select(rowid.label("_rowid"), table).where(table.c[ID_COLUMN].in_(chunk))
        for row in conn.execute(stmt).mappings():
            record = dict(row)
            found.append((record.pop("_rowid"), record))
    found.sort(key=lambda item: item[0])
    return layout, [record for _, record in found]
