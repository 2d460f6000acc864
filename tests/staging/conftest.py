"""Fixtures for staging-layer tests."""

from collections.abc import Generator
from pathlib import Path

import pytest
from sqlalchemy import Connection

from csvstage.core.connections import staging_connection


@pytest.fixture
def staging_path(tmp_path: Path) -> Path:
    return tmp_path / "temp_data.sqlite"


@pytest.fixture
def conn(staging_path: Path) -> Generator[Connection]:
    """Write connection to a fresh staging file, committed at teardown."""
    with staging_connection(staging_path, write=True) as connection:
        yield connection
