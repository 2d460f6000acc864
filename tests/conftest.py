"""Shared pytest fixtures for all tests."""

from collections.abc import AsyncIterator, Generator, Hashable, Mapping, Sequence
from pathlib import Path
from types import SimpleNamespace
from typing import Any

import pytest
from pymongo.errors import PyMongoError

from csvstage.core.config import Settings
from csvstage.core.connections import WorkerPool
from csvstage.core.errors import AuthoritativeStoreError
from csvstage.core.models import UpsertOutcome
from csvstage.schemas.provider import CollectionSchema, FieldSpec
from csvstage.schemas.static import StaticSchemaProvider
from csvstage.staging.registry import StagingPathRegistry
from csvstage.staging.service import StagingService
from csvstage.staging.store import StagingStore


class InMemoryAuthoritativeStore:
    """Authoritative store holding documents in dictionaries.

    Records every lookup so tests can assert on batching. Set
    ``fail_lookups`` or add ids to ``fail_upserts`` to simulate errors.
    """

    def __init__(self, documents: dict[str, list[dict[str, Any]]] | None = None):
        self.collections: dict[str, list[dict[str, Any]]] = {
            name: [dict(d) for d in docs] for name, docs in (documents or {}).items()
        }
        self.lookups: list[tuple[str, list[Any]]] = []
        self.fail_lookups = False
        self.fail_upserts: set[Any] = set()

    def documents(self, collection: str) -> list[dict[str, Any]]:
        return self.collections.setdefault(collection, [])

    async def existing_ids(self, collection: str, ids: Sequence[str]) -> set[str]:
        self.lookups.append(("_id", list(ids)))
        if self.fail_lookups:
            raise AuthoritativeStoreError("lookup failed", collection=collection)
        stored = {str(d["_id"]) for d in self.documents(collection)}
        return {i for i in ids if i in stored}

    async def existing_values(
        self, collection: str, field: str, values: Sequence[Any]
    ) -> set[Any]:
        self.lookups.append((field, list(values)))
        if self.fail_lookups:
            raise AuthoritativeStoreError("lookup failed", collection=collection)
        stored = {
            d[field]
            for d in self.documents(collection)
            if field in d and isinstance(d[field], Hashable)
        }
        return {v for v in values if v in stored}

    async def upsert(
        self, collection: str, doc_id: Any, fields: Mapping[str, Any]
    ) -> UpsertOutcome:
        if doc_id in self.fail_upserts:
            raise AuthoritativeStoreError("document failed validation", collection=collection)
        for doc in self.documents(collection):
            if doc["_id"] == doc_id:
                changed = any(doc.get(k) != v for k, v in fields.items())
                doc.update(fields)
                return UpsertOutcome(modified_count=1 if changed else 0)
        self.documents(collection).append({"_id": doc_id, **fields})
        return UpsertOutcome(inserted=True)

    async def find_all(self, collection: str) -> AsyncIterator[dict[str, Any]]:
        for doc in list(self.documents(collection)):
            yield dict(doc)



class FakeCursor:
    """Async cursor over a fixed list of documents."""

    def __init__(self, docs: list[dict[str, Any]], error: Exception | None = None):
        self.docs = docs
        self.error = error

    async def __aiter__(self) -> AsyncIterator[dict[str, Any]]:
        if self.error is not None:
            raise self.error
        for doc in self.docs:
            yield doc

    async def to_list(self) -> list[dict[str, Any]]:
        return [doc async for doc in self]


def _matches(doc: Mapping[str, Any], query: Mapping[str, Any]) -> bool:
    for key, condition in query.items():
        stored = doc.get(key)
        if isinstance(condition, dict) and "$in" in condition:
            options = condition["$in"]
            values = stored if isinstance(stored, list) else [stored]
            if key not in doc or not any(v in options for v in values):
                return False
        elif isinstance(condition, dict) and "$exists" in condition:
            if (key in doc) != condition["$exists"]:
                return False
        elif stored != condition:
            return False
    return True


def _project(doc: Mapping[str, Any], projection: Mapping[str, Any] | None) -> dict[str, Any]:
    if not projection:
        return dict(doc)
    keep = {k for k, v in projection.items() if v}
    if projection.get("_id", 1):
        keep.add("_id")
    return {k: v for k, v in doc.items() if k in keep}


class FakeMongoCollection:
    """Subset of the pymongo async collection API used by the adapters.

    Records every ``find`` filter and ``update_one`` update. Set ``error`` to
    make every call fail.
    """

    def __init__(self, docs: list[dict[str, Any]] | None = None):
        self.docs = [dict(d) for d in docs or []]
        self.queries: list[dict[str, Any]] = []
        self.updates: list[dict[str, Any]] = []
        self.error: Exception | None = None

    def find(
        self, query: dict[str, Any], projection: dict[str, Any] | None = None
    ) -> FakeCursor:
        self.queries.append(query)
        docs = [_project(d, projection) for d in self.docs if _matches(d, query)]
        return FakeCursor(docs, self.error)

    async def find_one(self, query: dict[str, Any]) -> dict[str, Any] | None:
        if self.error is not None:
            raise self.error
        return next((dict(d) for d in self.docs if _matches(d, query)), None)

    async def update_one(
        self, query: dict[str, Any], update: dict[str, Any], upsert: bool = False
    ) -> SimpleNamespace:
        if self.error is not None:
            raise self.error
        self.updates.append(update)
        doc = next((d for d in self.docs if _matches(d, query)), None)
        if doc is None:
            assert upsert
            new = {**query, **update.get("$setOnInsert", {}), **update.get("$set", {})}
            self.docs.append(new)
            return SimpleNamespace(upserted_id=new["_id"], modified_count=0)
        fields = update.get("$set", {})
        changed = any(doc.get(k) != v for k, v in fields.items())
        doc.update(fields)
        return SimpleNamespace(upserted_id=None, modified_count=1 if changed else 0)


class FakeMongoDatabase:
    """Database of fake collections; ``infos`` backs ``list_collections``."""

    def __init__(self) -> None:
        self.collections: dict[str, FakeMongoCollection] = {}
        self.infos: list[dict[str, Any]] = []
        self.list_error: Exception | None = None

    def __getitem__(self, name: str) -> FakeMongoCollection:
        return self.collections.setdefault(name, FakeMongoCollection())

    async def list_collections(self, filter: dict[str, Any] | None = None) -> FakeCursor:
        if self.list_error is not None:
            raise self.list_error
        return FakeCursor([i for i in self.infos if _matches(i, filter or {})])

@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings pointing at a temporary data directory."""
    return Settings(data_dir=tmp_path / "data", worker_threads=2)


@pytest.fixture
def customers_schema() -> CollectionSchema:
    """Schema with a unique email and a few typed fields."""
    return CollectionSchema(
        collection="customers",
        fields=[
            FieldSpec(name="name", type="string", short_name="Name"),
            FieldSpec(name="email", type="string", unique=True, short_name="E-mail"),
            FieldSpec(name="age", type="int"),
            FieldSpec(name="joined", type="date"),
            FieldSpec(name="active", type="bool"),
        ],
    )


@pytest.fixture
def schema_provider(customers_schema: CollectionSchema) -> StaticSchemaProvider:
    return StaticSchemaProvider({"customers": customers_schema})


@pytest.fixture
def authority() -> InMemoryAuthoritativeStore:
    return InMemoryAuthoritativeStore()


@pytest.fixture
def worker_pool() -> Generator[WorkerPool]:
    pool = WorkerPool(max_workers=2)
    yield pool
    pool.shutdown()


@pytest.fixture
def registry(settings: Settings) -> StagingPathRegistry:
    return StagingPathRegistry(settings.staging_root)


@pytest.fixture
def staging_store(registry: StagingPathRegistry) -> StagingStore:
    """Store for the customers collection; its directory exists, the file does not."""
    return StagingStore(path=registry.resolve("customers"))


@pytest.fixture
def service(
    settings: Settings,
    schema_provider: StaticSchemaProvider,
    authority: InMemoryAuthoritativeStore,
) -> Generator[StagingService]:
    svc = StagingService.from_settings(settings, schema_provider, authority)
    yield svc
    svc.close()


@pytest.fixture
def mongo_database() -> FakeMongoDatabase:
    return FakeMongoDatabase()


@pytest.fixture
def mongo_error() -> PyMongoError:
    return PyMongoError("connection closed")
