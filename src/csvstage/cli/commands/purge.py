"""Purge command - delete a collection's staging store."""

from __future__ import annotations

from typing import Annotated

import typer

from csvstage.cli.common import CollectionArg, DataDirOption, console, load_settings
from csvstage.staging.registry import StagingPathRegistry
from csvstage.staging.store import StagingStore


def purge(
    collection: CollectionArg,
    data_dir: DataDirOption = None,
    force: Annotated[bool, typer.Option("--force", "-f", help="Skip confirmation")] = False,
) -> None:
    """Delete the staged rows of a collection.

    Examples:

        csvstage purge customers --force
    """
    settings = load_settings(data_dir)
    registry = StagingPathRegistry(settings.staging_root)
    store = StagingStore(path=registry.lookup(collection), sqlite_timeout=settings.sqlite_timeout)

    if not store.path.parent.exists():
        console.print(f"[yellow]Nothing staged for {collection}[/yellow]")
        return

    if not force and not typer.confirm(f"Delete staged rows of {collection}?"):
        raise typer.Abort()

    store.remove()
    console.print(f"[green]Removed staging store for {collection}[/green]")
