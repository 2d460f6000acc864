"""Pages command - browse staged rows."""

from __future__ import annotations

import json
from typing import Annotated, Any

import typer
from rich.table import Table as RichTable

from csvstage.cli.common import CollectionArg, DataDirOption, JsonFlag, console, load_settings
from csvstage.core.models import TablePage
from csvstage.staging.registry import StagingPathRegistry
from csvstage.staging.schema import INVALID_TABLE, VALID_TABLE
from csvstage.staging.store import StagingStore


def pages(
    collection: CollectionArg,
    page: Annotated[int, typer.Option("--page", "-p", help="Page number")] = 1,
    page_size: Annotated[int, typer.Option("--size", "-s", help="Rows per page")] = 20,
    invalid: Annotated[bool, typer.Option("--invalid", help="Show rejected rows")] = False,
    data_dir: DataDirOption = None,
    json_output: JsonFlag = False,
) -> None:
    """Show one page of a collection's staged rows.

    Examples:

        csvstage pages customers

        csvstage pages customers --invalid --page 2

        csvstage pages customers --json
    """
    settings = load_settings(data_dir)
    registry = StagingPathRegistry(settings.staging_root)
    store = StagingStore(
        path=registry.lookup(collection),
        sqlite_timeout=settings.sqlite_timeout,
        type_tags=settings.type_tags,
        max_page_size=settings.max_page_size,
    )
    table_name = INVALID_TABLE if invalid else VALID_TABLE

    result = store.page(table_name, page, page_size)

    if json_output:
        print(json.dumps(result.model_dump(), indent=2, default=str))
        return

    if not store.exists():
        console.print(f"[yellow]Nothing staged for {collection}[/yellow]")
        return
    _print_page(table_name, result)


def _cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, dict) and set(value) == {"$oid"}:
        return str(value["$oid"])
    if isinstance(value, dict | list):
        return json.dumps(value)
    return str(value)


def _print_page(table_name: str, result: TablePage) -> None:
    last_page = max((result.total + result.page_size - 1) // result.page_size, 1)
    table = RichTable(title=f"{table_name} - page {result.page}/{last_page} ({result.total} rows)")
    if not result.data:
        console.print(table)
        return

    columns = [c for c in result.data[0] if c != "id"]
    for column in columns:
        table.add_column(column, overflow="fold")
    for row in result.data:
        table.add_row(*(_cell(row.get(c)) for c in columns))
    console.print(table)
