"""MongoDB authoritative store (pymongo async API)."""

from __future__ import annotations

from collections.abc import AsyncIterator, Hashable, Mapping, Sequence
from typing import Any

from pymongo import AsyncMongoClient
from pymongo.asynchronous.database import AsyncDatabase
from pymongo.errors import PyMongoError

from csvstage.coercion import id_candidates
from csvstage.core.errors import AuthoritativeStoreError
from csvstage.core.logging import get_logger
from csvstage.core.models import UpsertOutcome

logger = get_logger(__name__)

# Upper bound on $in list length per query
LOOKUP_BATCH_SIZE = 1000


def _batches(values: Sequence[Any], size: int = LOOKUP_BATCH_SIZE) -> list[Sequence[Any]]:
    return [values[i : i + size] for i in range(0, len(values), size)]


def _hashable_values(value: Any) -> list[Any]:
    """Values a stored field contributes to an ``$in`` match."""
    if isinstance(value, list):
        return [v for v in value if isinstance(v, Hashable)]
    return [value] if isinstance(value, Hashable) else []


def create_client(url: str, timeout_ms: int = 5000) -> AsyncMongoClient:
    return AsyncMongoClient(url, serverSelectionTimeoutMS=timeout_ms, tz_aware=True)


class MongoAuthoritativeStore:
    """Authoritative store on one MongoDB database."""

    def __init__(self, database: AsyncDatabase):
        self.database = database

    async def existing_ids(self, collection: str, ids: Sequence[str]) -> set[str]:
        candidates = [form for text in dict.fromkeys(ids) if text for form in id_candidates(text)]
        found: set[str] = set()
        try:
            for batch in _batches(candidates):
                cursor = self.database[collection].find(
                    {"_id": {"$in": list(batch)}}, projection={"_id": 1}
                )
                async for doc in cursor:
                    found.add(str(doc["_id"]))
        except PyMongoError as e:
            raise AuthoritativeStoreError(
                f"Id lookup failed: {e}", collection=collection
            ) from e
        return found

    async def existing_values(
        self, collection: str, field: str, values: Sequence[Any]
    ) -> set[Any]:
        found: set[Any] = set()
        try:
            for batch in _batches(list(values)):
                cursor = self.database[collection].find(
                    {field: {"$in": list(batch)}}, projection={field: 1, "_id": 0}
                )
                async for doc in cursor:
                    found.update(_hashable_values(doc.get(field)))
        except PyMongoError as e:
            raise AuthoritativeStoreError(
                f"Lookup on field '{field}' failed: {e}", collection=collection
            ) from e
        return found

    async def upsert(
        self, collection: str, doc_id: Any, fields: Mapping[str, Any]
    ) -> UpsertOutcome:
        update = {"$set": dict(fields)} if fields else {"$setOnInsert": {"_id": doc_id}}
        try:
            result = await self.database[collection].update_one(
                {"_id": doc_id}, update, upsert=True
            )
        except PyMongoError as e:
            raise AuthoritativeStoreError(str(e), collection=collection) from e
        if result.upserted_id is not None:
            return UpsertOutcome(inserted=True)
        return UpsertOutcome(modified_count=result.modified_count)

    async def find_all(self, collection: str) -> AsyncIterator[dict[str, Any]]:
        try:
            async for doc in self.database[collection].find({}):
                yield doc
        except PyMongoError as e:
            raise AuthoritativeStoreError(
                f"Reading documents failed: {e}", collection=collection
            ) from e
