"""Serve command - run the HTTP API."""

from __future__ import annotations

from typing import Annotated

import typer

from csvstage.cli.common import DataDirOption, console, load_settings


def serve(
    host: Annotated[str | None, typer.Option(help="Bind address")] = None,
    port: Annotated[int | None, typer.Option(help="Port")] = None,
    data_dir: DataDirOption = None,
) -> None:
    """Start the staging API server.

    Examples:

        csvstage serve

        csvstage serve --port 9000 --data-dir ./staging
    """
    import uvicorn

    from csvstage.api.main import create_app

    settings = load_settings(data_dir)
    host = host or settings.api_host
    port = port or settings.api_port

    console.print("[bold]Starting csvstage API[/bold]")
    console.print(f"  Listening: {host}:{port}")
    console.print(f"  Data dir:  {settings.data_dir}")
    console.print(f"  MongoDB:   {settings.mongo_database}")

    uvicorn.run(create_app(settings=settings), host=host, port=port)
