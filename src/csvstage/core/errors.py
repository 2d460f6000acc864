"""Exception hierarchy for staging operations.

Exceptions are for failures that abort an operation. Per-field coercion
problems and per-row upsert failures are expected and travel as ``Result``
values / error strings instead.
"""

from __future__ import annotations


class StagingError(Exception):
    """Base class for all staging failures.

    ``status_code`` is the HTTP status the API layer answers with.
    """

    status_code: int = 500

    def __init__(self, message: str, *, collection: str | None = None):
        super().__init__(message)
        self.message = message
        self.collection = collection


class StagingIOError(StagingError):
    """Directory creation, file removal or opening the staging file failed."""


class InvalidCollectionError(StagingError):
    """Collection name is unusable as a staging directory name."""

    status_code = 400


class StructuralError(StagingError):
    """Input rows cannot be turned into staging tables or inserted."""

    status_code = 400


class EmptyUploadError(StagingError):
    """Upload carried neither valid nor invalid rows."""

    status_code = 400


class StagingNotFoundError(StagingError):
    """No staging store exists for the collection."""

    status_code = 404


class StagingTransactionError(StagingError):
    """Relocation of conflicting rows failed and was rolled back."""


class AuthoritativeStoreError(StagingError):
    """The authoritative document store failed a lookup or read."""

    status_code = 502


class SchemaProviderError(StagingError):
    """Collection schema could not be obtained."""

    status_code = 502


class ExportError(StagingError):
    """CSV serialization failed."""


class CollectionNotFoundError(SchemaProviderError):
    """The authoritative store has no such collection."""

    status_code = 404
