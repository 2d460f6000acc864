"""Validate command - check staged rows against MongoDB."""

from __future__ import annotations

import asyncio
import json

from csvstage.bootstrap import build_mongo_service
from csvstage.cli.common import CollectionArg, DataDirOption, JsonFlag, console, load_settings
from csvstage.core.config import Settings
from csvstage.core.errors import StagingError
from csvstage.core.models import ValidationSummary


async def _run_validation(settings: Settings, collection: str) -> ValidationSummary:
    service, client = build_mongo_service(settings)
    try:
        return await service.validate(collection)
    finally:
        service.close()
        await client.close()


def validate(
    collection: CollectionArg,
    data_dir: DataDirOption = None,
    json_output: JsonFlag = False,
) -> None:
    """Move staged rows that collide with stored documents to the invalid set.

    Examples:

        csvstage validate customers
    """
    settings = load_settings(data_dir)
    try:
        summary = asyncio.run(_run_validation(settings, collection))
    except StagingError as e:
        console.print(f"[red]Validation failed:[/red] {e.message}")
        raise SystemExit(1) from e

    if json_output:
        print(json.dumps(summary.model_dump(), indent=2))
        return

    console.print(f"[bold]{collection}[/bold]")
    console.print(f"  Validated:  {summary.validated_count}")
    console.print(f"  Conflicts:  [yellow]{summary.conflicts_found}[/yellow]")
    console.print(f"  Remaining:  [green]{summary.remaining_valid}[/green]")
