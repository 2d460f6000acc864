"""Pydantic schemas for API request bodies.

Responses reuse the models in ``csvstage.core.models``.
"""

from typing import Any

from pydantic import BaseModel, Field, field_validator


class UploadRequest(BaseModel):
    """Rows pre-split by the client.

    Items are not checked here; malformed rows are reported by the staging
    layer as a structural error.
    """

    valid: list[Any] = Field(default_factory=list)
    invalid: list[Any] = Field(default_factory=list)


class ImportRequest(BaseModel):
    """Staged rows to commit."""

    collection: str
    ids: list[str] = Field(default_factory=list)

    @field_validator("collection", mode="before")
    @classmethod
    def single_collection(cls, value: Any) -> Any:
        # Older clients send the name as a one-element list
        if isinstance(value, list):
            if len(value) != 1:
                raise ValueError(
                    "Collection name is required"
                    if not value
                    else "Expected single collection name"
                )
            return value[0]
        return value


class ExportRequest(BaseModel):
    """Staged rows to export; empty means all."""

    ids: list[str] = Field(default_factory=list)
