"""Shared CLI utilities and constants."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console

from csvstage.core.config import Settings, get_settings
from csvstage.core.logging import configure_logging

# Shared console instance
console = Console()

CollectionArg = Annotated[str, typer.Argument(help="Collection name")]

DataDirOption = Annotated[
    Path | None,
    typer.Option(
        "--data-dir",
        "-d",
        help="Root data directory (default: CSVSTAGE_DATA_DIR or the platform app-data dir)",
        file_okay=False,
        resolve_path=True,
    ),
]

JsonFlag = Annotated[
    bool,
    typer.Option(
        "--json",
        help="Output as JSON for scripting",
    ),
]


def load_settings(data_dir: Path | None = None) -> Settings:
    """Settings from the environment, with CLI overrides applied."""
    settings = get_settings()
    if data_dir is not None:
        settings = settings.model_copy(update={"data_dir": data_dir})
    configure_logging(log_level=settings.log_level, log_format=settings.log_format)
    return settings
