"""Staging pipeline: per-collection SQLite stores for uploaded rows."""

from csvstage.staging.registry import StagingPathRegistry
from csvstage.staging.service import StagingService
from csvstage.staging.store import StagingStore

__all__ = ["StagingPathRegistry", "StagingService", "StagingStore"]
