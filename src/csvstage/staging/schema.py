"""Staging table synthesis.

Both staging tables are created from the first row of an upload: every key
becomes a TEXT column, ``_id`` is the primary key, and the invalid table ends
with an ``errors`` column. The resulting layout is written to
``_staging_layout`` so readers never need to introspect the database.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

from sqlalchemy import (
    Column,
    Connection,
    Integer,
    MetaData,
    Table,
    Text,
    delete,
    inspect,
    insert,
    select,
)
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.schema import CreateTable, DropTable

from csvstage.core.errors import StructuralError
from csvstage.core.logging import get_logger

logger = get_logger(__name__)

VALID_TABLE = "valid_data"
INVALID_TABLE = "invalid_data"
LAYOUT_TABLE = "_staging_layout"

ID_COLUMN = "_id"
ALT_ID_COLUMN = "id"
ERRORS_COLUMN = "errors"
KINDS_COLUMN = "_value_kinds"

STAGING_TABLES = (VALID_TABLE, INVALID_TABLE)

# SQLite resolves these to the implicit row id unless a column shadows them
ROWID_ALIASES = frozenset({"rowid", "oid", "_rowid_"})

_layout_metadata = MetaData()
staging_layout = Table(
    LAYOUT_TABLE,
    _layout_metadata,
    Column("table_name", Text, primary_key=True),
    Column("position", Integer, primary_key=True),
    Column("column_name", Text, nullable=False),
)


def _check_column_name(name: Any) -> str:
    if not isinstance(name, str) or not name.strip():
        raise StructuralError(f"Invalid column name: {name!r}")
    lowered = name.lower()
    if lowered in (KINDS_COLUMN, LAYOUT_TABLE) or lowered in ROWID_ALIASES:
        raise StructuralError(f"Column name {name!r} is reserved")
    return name


def first_row_columns(rows: Sequence[Any], *, exclude: tuple[str, ...]) -> list[str]:
    """Column names taken from the first row's keys, in key order.

    Raises:
        StructuralError: If the first row is not a mapping or a key is unusable
    """
    if not rows:
        return []
    first = rows[0]
    if not isinstance(first, Mapping):
        raise StructuralError(
            f"First row must be an object, got {type(first).__name__}"
        )
    return [_check_column_name(key) for key in first if key not in exclude]


def valid_columns(rows: Sequence[Any]) -> list[str]:
    """Data columns of ``valid_data`` (identifier keys excluded)."""
    return first_row_columns(rows, exclude=(ID_COLUMN, ALT_ID_COLUMN))


def invalid_columns(rows: Sequence[Any]) -> list[str]:
    """Data columns of ``invalid_data`` (identifier keys and ``errors`` excluded)."""
    return first_row_columns(rows, exclude=(ID_COLUMN, ALT_ID_COLUMN, ERRORS_COLUMN))


def build_table(name: str, columns: Sequence[str], *, with_kinds: bool = True) -> Table:
    """SQLAlchemy table object for a staging table layout.

    ``columns`` is the full layout as recorded (``_id`` first, ``errors`` last
    for the invalid table). The hidden kinds column is appended unless
    ``with_kinds`` is False.
    """
    metadata = MetaData()
    table_columns = [
        Column(ID_COLUMN, Text, primary_key=True)
        if col == ID_COLUMN
        else Column(col, Text)
        for col in columns
    ]
    if with_kinds:
        table_columns.append(Column(KINDS_COLUMN, Text))
    return Table(name, metadata, *table_columns)


def _replace_table(conn: Connection, name: str, layout: list[str]) -> list[str]:
    table = build_table(name, layout)
    try:
        conn.execute(DropTable(table, if_exists=True))
        conn.execute(CreateTable(table))
    except SQLAlchemyError as e:
        raise StructuralError(f"Cannot create table {name}: {e}") from e

    _write_layout(conn, name, layout)
    logger.debug("staging_table_created", table=name, columns=len(layout))
    return layout


def create_valid_table(conn: Connection, rows: Sequence[Any]) -> list[str]:
    """Drop and recreate ``valid_data`` from the first row.

    Empty ``rows`` yields a table with only ``_id``.

    Returns:
        The recorded layout, ``_id`` first
    """
    return _replace_table(conn, VALID_TABLE, [ID_COLUMN, *valid_columns(rows)])


def create_invalid_table(conn: Connection, columns: Sequence[str]) -> list[str]:
    """Drop and recreate ``invalid_data`` with the given data columns.

    Identifier keys and ``errors`` are removed from ``columns``; ``_id`` is
    placed first and ``errors`` last.

    Returns:
        The recorded layout
    """
    data_columns = [
        _check_column_name(col)
        for col in columns
        if col not in (ID_COLUMN, ALT_ID_COLUMN, ERRORS_COLUMN)
    ]
    return _replace_table(conn, INVALID_TABLE, [ID_COLUMN, *data_columns, ERRORS_COLUMN])


def _write_layout(conn: Connection, name: str, layout: Sequence[str]) -> None:
    staging_layout.create(conn, checkfirst=True)
    conn.execute(delete(staging_layout).where(staging_layout.c.table_name == name))
    conn.execute(
        insert(staging_layout),
        [
            {"table_name": name, "position": position, "column_name": column}
            for position, column in enumerate(layout)
        ],
    )


def table_layout(conn: Connection, name: str) -> list[str] | None:
    """Recorded column layout of a staging table, or None if it does not exist.

    Stores written without layout metadata fall back to reflection.
    """
    inspector = inspect(conn)
    if not inspector.has_table(name):
        return None

    if inspector.has_table(LAYOUT_TABLE):
        stmt = (
            select(staging_layout.c.column_name)
            .where(staging_layout.c.table_name == name)
            .order_by(staging_layout.c.position)
        )
        recorded = list(conn.execute(stmt).scalars())
        if recorded:
            return recorded

    return [col["name"] for col in inspector.get_columns(name) if col["name"] != KINDS_COLUMN]


def staging_table(conn: Connection, name: str) -> Table | None:
    """Table object for an existing staging table, or None if absent."""
    layout = table_layout(conn, name)
    if layout is None:
        return None
    reflected = {col["name"] for col in inspect(conn).get_columns(name)}
    return build_table(name, layout, with_kinds=KINDS_COLUMN in reflected)
