"""Main CLI application entry point."""

from __future__ import annotations

import typer

from csvstage.cli.commands import pages, purge, serve, validate

app = typer.Typer(
    name="csvstage",
    help="csvstage - stage, validate and import CSV rows into MongoDB collections.",
    no_args_is_help=True,
)

app.command()(serve.serve)
app.command()(pages.pages)
app.command()(validate.validate)
app.command()(purge.purge)


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
