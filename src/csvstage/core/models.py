"""Base models shared across modules."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from pydantic import BaseModel, Field


class Result[T](BaseModel):
    """Result type for operations that can fail.

    Use this instead of exceptions for expected failures.
    Exceptions are reserved for failures that abort the whole operation.
    """

    success: bool
    value: T | None = None
    error: str | None = None
    warnings: list[str] = Field(default_factory=list)

    @classmethod
    def ok(cls, value: T, warnings: list[str] | None = None) -> Result[T]:
        """Create a successful result."""
        return cls(success=True, value=value, warnings=warnings or [])

    @classmethod
    def fail(cls, error: str) -> Result[T]:
        """Create a failed result."""
        return cls(success=False, error=error)

    def unwrap(self) -> T:
        """Get the value or raise if failed.

        A successful result may carry ``None`` (a null cell), so only the
        success flag is checked.
        """
        if not self.success:
            raise ValueError(f"Result failed: {self.error}")
        return self.value  # type: ignore[return-value]

    def map(self, fn: Callable[[T], Any]) -> Result[Any]:
        """Transform the value if successful."""
        if self.success and self.value is not None:
            return Result.ok(fn(self.value), self.warnings)
        return self


class UploadSummary(BaseModel):
    """Outcome of replacing a collection's staging store."""

    collection: str
    valid_count: int
    invalid_count: int


class TablePage(BaseModel):
    """One page of a staging table."""

    data: list[dict[str, Any]] = Field(default_factory=list)
    total: int = 0
    page: int = 1
    page_size: int = 20


class StagingPages(BaseModel):
    """Pages of both staging tables."""

    valid: TablePage
    invalid: TablePage


class ValidationSummary(BaseModel):
    """Counts produced by a validation run.

    ``validated_count == conflicts_found + remaining_valid``.
    """

    validated_count: int = 0
    conflicts_found: int = 0
    remaining_valid: int = 0


class ImportSummary(BaseModel):
    """Aggregated outcome of committing staged rows."""

    inserted_count: int = 0
    modified_count: int = 0
    errors: list[str] = Field(default_factory=list)


class UpsertOutcome(BaseModel):
    """What the authoritative store did for one upsert."""

    inserted: bool = False
    modified_count: int = 0
