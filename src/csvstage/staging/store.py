"""Per-collection staging store.

Thread-safe in the sense that every method opens its own connection; callers
serialize mutations on the same collection with the registry lock.

Usage:
    store = StagingStore(path)
    store.replace(valid_rows, invalid_rows)
    page = store.page("valid_data", page=1, page_size=20)
"""

from __future__ import annotations

import shutil
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from sqlalchemy import delete, insert
from sqlalchemy.exc import SQLAlchemyError

from csvstage.core.connections import staging_connection
from csvstage.core.errors import StagingIOError, StagingTransactionError
from csvstage.core.logging import get_logger
from csvstage.core.models import TablePage
from csvstage.staging import ingest, reader, schema
from csvstage.staging.ingest import compact_json
from csvstage.staging.schema import (
    ERRORS_COLUMN,
    ID_COLUMN,
    INVALID_TABLE,
    KINDS_COLUMN,
    VALID_TABLE,
)

logger = get_logger(__name__)


@dataclass
class StagingStore:
    """SQLite file holding ``valid_data`` and ``invalid_data`` for one collection.

    Attributes:
        path: Staging file location
        sqlite_timeout: SQLite busy timeout in seconds
        type_tags: Use recorded value kinds when decoding reads
        max_page_size: Upper bound for page sizes
    """

    path: Path
    sqlite_timeout: float = 30.0
    type_tags: bool = True
    max_page_size: int = reader.MAX_PAGE_SIZE

    def exists(self) -> bool:
        return self.path.is_file()

    def replace(self, valid_rows: Sequence[Any], invalid_rows: Sequence[Any]) -> tuple[int, int]:
        """Recreate both tables and load the rows in one transaction.

        Any failure leaves the previous contents in place.

        Returns:
            ``(valid_inserted, invalid_inserted)``

        Raises:
            StructuralError: Unusable first row, malformed row or DDL failure
            StagingIOError: The file cannot be opened
        """
        with staging_connection(self.path, self.sqlite_timeout, write=True) as conn:
            valid_layout = schema.create_valid_table(conn, valid_rows)
            valid_count = ingest.insert_valid(conn, valid_layout, valid_rows)

            invalid_layout = schema.create_invalid_table(conn, schema.invalid_columns(invalid_rows))
            invalid_count = ingest.insert_invalid(conn, invalid_layout, invalid_rows)

        return valid_count, invalid_count

    def page(self, table_name: str, page: int, page_size: int) -> TablePage:
        """One decoded page of a table; an absent file or table gives an empty page."""
        page, page_size = reader.clamp_page(page, page_size, self.max_page_size)
        if not self.exists():
            return TablePage(page=page, page_size=page_size)

        with staging_connection(self.path, self.sqlite_timeout) as conn:
            rows, total = reader.load_page(
                conn,
                table_name,
                page,
                page_size,
                max_page_size=self.max_page_size,
                type_tags=self.type_tags,
            )
        return TablePage(data=rows, total=total, page=page, page_size=page_size)

    def rows(
        self, table_name: str = VALID_TABLE, ids: Sequence[str] | None = None
    ) -> tuple[list[str], list[dict[str, Any]]]:
        """Raw stored rows, optionally restricted to ``ids``."""
        if not self.exists():
            return [], []
        with staging_connection(self.path, self.sqlite_timeout) as conn:
            return reader.read_rows(conn, table_name, ids)

    def relocate(self, conflicts: Mapping[str, Sequence[str]]) -> int:
        """Move conflicting rows from ``valid_data`` to ``invalid_data``.

        All upserts into the invalid table happen before all deletions from
        the valid table, inside one transaction. Valid-only columns that the
        invalid table lacks are dropped.

        Args:
            conflicts: ``_id`` -> rejection reasons

        Returns:
            Number of rows moved

        Raises:
            StagingTransactionError: If any statement fails; nothing is changed
        """
        if not conflicts:
            return 0

        ids = list(conflicts)
        try:
            with staging_connection(self.path, self.sqlite_timeout, write=True) as conn:
                _, rows = reader.read_rows(conn, VALID_TABLE, ids)

                invalid = schema.staging_table(conn, INVALID_TABLE)
                if invalid is None:
                    valid_layout = schema.table_layout(conn, VALID_TABLE) or [ID_COLUMN]
                    schema.create_invalid_table(conn, valid_layout)
                    invalid = schema.staging_table(conn, INVALID_TABLE)
                assert invalid is not None

                records = [
                    _relocated_record(row, invalid.columns.keys(), conflicts[row[ID_COLUMN]])
                    for row in rows
                ]
                if records:
                    conn.execute(insert(invalid).prefix_with("OR REPLACE"), records)

                valid = schema.staging_table(conn, VALID_TABLE)
                assert valid is not None
                for start in range(0, len(ids), reader.ID_CHUNK_SIZE):
                    chunk = ids[start : start + reader.ID_CHUNK_SIZE]
                    conn.execute(delete(valid).where(valid.c[ID_COLUMN].in_(chunk)))
        except SQLAlchemyError as e:
            raise StagingTransactionError(f"Relocating conflicting rows failed: {e}") from e

        logger.info("conflicts_relocated", path=str(self.path), rows=len(records))
        return len(records)

    def remove(self) -> bool:
        """Delete the staging file together with its directory.

        Returns:
            True if something was removed

        Raises:
            StagingIOError: If the directory exists but cannot be removed
        """
        directory = self.path.parent
        if not directory.exists():
            return False
        try:
            shutil.rmtree(directory)
        except OSError as e:
            raise StagingIOError(f"Cannot remove staging directory {directory}: {e}") from e
        return True


def _relocated_record(
    row: Mapping[str, Any], invalid_columns: Sequence[str], reasons: Sequence[str]
) -> dict[str, Any]:
    kinds = reader.parse_kinds(row.get(KINDS_COLUMN))
    record = {
        col: row.get(col)
        for col in invalid_columns
        if col not in (ERRORS_COLUMN, KINDS_COLUMN)
    }
    record[ERRORS_COLUMN] = compact_json(list(reasons))
    if KINDS_COLUMN in invalid_columns:
        kept = {col: kind for col, kind in kinds.items() if col in record}
        record[KINDS_COLUMN] = compact_json(kept) if kept else None
    return record
