"""Pytest fixtures for CLI tests."""

from collections.abc import Generator

import pytest
import structlog

from csvstage.core.logging import configure_logging


@pytest.fixture(autouse=True)
def restore_logging() -> Generator[None]:
    """Point logging back at the real stderr after each command.

    Commands configure logging while CliRunner has swapped the streams;
    later tests would otherwise write to the runner's closed stream.
    """
    yield
    structlog.reset_defaults()
    configure_logging()
