"""Core infrastructure: configuration, logging, errors and shared models."""

from csvstage.core.config import Settings, get_settings
from csvstage.core.connections import WorkerPool
from csvstage.core.errors import StagingError
from csvstage.core.models import Result

__all__ = ["Result", "Settings", "StagingError", "WorkerPool", "get_settings"]
