"""Authoritative store interface.

The staging pipeline only needs batched existence checks, per-document
upserts and a full read for export.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Mapping, Sequence
from typing import Any, Protocol

from csvstage.core.models import UpsertOutcome


class AuthoritativeStore(Protocol):
    """Document store that owns the committed data."""

    async def existing_ids(self, collection: str, ids: Sequence[str]) -> set[str]:
        """Subset of ``ids`` that already exist, as strings.

        Raises:
            AuthoritativeStoreError: If the lookup fails
        """
        ...

    async def existing_values(
        self, collection: str, field: str, values: Sequence[Any]
    ) -> set[Any]:
        """Values of ``field`` among ``values`` held by at least one document.

        Raises:
            AuthoritativeStoreError: If the lookup fails
        """
        ...

    async def upsert(
        self, collection: str, doc_id: Any, fields: Mapping[str, Any]
    ) -> UpsertOutcome:
        """Set ``fields`` on the document with ``doc_id``, creating it if absent.

        Raises:
            AuthoritativeStoreError: If the write fails
        """
        ...

    def find_all(self, collection: str) -> AsyncIterator[dict[str, Any]]:
        """Every document of the collection."""
        ...
