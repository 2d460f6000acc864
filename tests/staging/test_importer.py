"""Tests for committing staged rows."""

from datetime import UTC, datetime

import pytest
from bson import ObjectId

from csvstage.core.errors import StagingNotFoundError
from csvstage.schemas.provider import CollectionSchema, FieldSpec
from csvstage.schemas.static import StaticSchemaProvider
from csvstage.staging.importer import build_document, import_staged


@pytest.fixture
def staged(staging_store):
    staging_store.replace(
        [
            {"_id": "a", "name": "Ada", "age": "36", "joined": "2024-01-02", "active": "yes"},
            {"_id": "b", "name": "Bob", "age": "old", "joined": "", "active": "n"},
        ],
        [],
    )
    return staging_store


class TestImportStaged:
    """Tests for import_staged."""

    async def test_coerces_and_inserts(self, staged, schema_provider, authority, worker_pool):
        summary = await import_staged(
            "customers", ["a"], staged, schema_provider, authority, worker_pool
        )

        assert summary.inserted_count == 1
        assert summary.modified_count == 0
        assert summary.errors == []
        assert authority.documents("customers") == [
            {
                "_id": "a",
                "name": "Ada",
                "age": 36,
                "joined": datetime(2024, 1, 2, tzinfo=UTC),
                "active": True,
            }
        ]

    async def test_bad_field_is_reported_and_skipped(
        self, staged, schema_provider, authority, worker_pool
    ):
        summary = await import_staged(
            "customers", ["b"], staged, schema_provider, authority, worker_pool
        )

        assert summary.inserted_count == 1
        assert summary.errors == ["Row b: Field age: Invalid integer: old"]
        doc = authority.documents("customers")[0]
        assert "age" not in doc
        assert "joined" not in doc
        assert doc["active"] is False

    async def test_unknown_ids_skipped(self, staged, schema_provider, authority, worker_pool):
        summary = await import_staged(
            "customers", ["ghost", "a"], staged, schema_provider, authority, worker_pool
        )

        assert summary.inserted_count == 1
        assert summary.errors == []

    async def test_existing_documents_are_updated(
        self, staged, schema_provider, authority, worker_pool
    ):
        authority.documents("customers").append({"_id": "a", "name": "Old"})

        summary = await import_staged(
            "customers", ["a"], staged, schema_provider, authority, worker_pool
        )

        assert summary.inserted_count == 0
        assert summary.modified_count == 1
        assert authority.documents("customers")[0]["name"] == "Ada"

    async def test_upsert_failure_continues(self, staged, schema_provider, authority, worker_pool):
        authority.fail_upserts.add("a")

        summary = await import_staged(
            "customers", ["a", "b"], staged, schema_provider, authority, worker_pool
        )

        assert summary.inserted_count == 1
        assert "Row a: upsert failed: document failed validation" in summary.errors

    async def test_empty_ids(self, staging_store, schema_provider, authority, worker_pool):
        summary = await import_staged(
            "customers", [], staging_store, schema_provider, authority, worker_pool
        )

        assert summary.model_dump() == {"inserted_count": 0, "modified_count": 0, "errors": []}

    async def test_no_store(self, staging_store, schema_provider, authority, worker_pool):
        with pytest.raises(StagingNotFoundError):
            await import_staged(
                "customers", ["a"], staging_store, schema_provider, authority, worker_pool
            )

    async def test_staged_rows_are_kept(self, staged, schema_provider, authority, worker_pool):
        await import_staged("customers", ["a"], staged, schema_provider, authority, worker_pool)

        assert staged.page("valid_data", 1, 20).total == 2


class TestBuildDocument:
    """Tests for build_document."""

    def test_object_id(self, customers_schema):
        oid = "65a1b2c3d4e5f6a7b8c9d0e1"
        doc_id, fields, errors = build_document(
            {"_id": oid, "name": "x"}, ["_id", "name"], customers_schema
        )

        assert doc_id == ObjectId(oid)
        assert fields == {"name": "x"}
        assert errors == []

    def test_undeclared_hex_id_becomes_object_id(self):
        schema = CollectionSchema(collection="c", fields=[FieldSpec(name="name")])
        oid = "65a1b2c3d4e5f6a7b8c9d0e1"

        doc_id, fields, errors = build_document({"_id": oid, "name": "x"}, ["_id", "name"], schema)

        assert doc_id == ObjectId(oid)
        assert fields == {"name": "x"}
        assert errors == []

    def test_undeclared_plain_id_stays_string(self):
        schema = CollectionSchema(collection="c", fields=[FieldSpec(name="name")])

        doc_id, _, _ = build_document({"_id": "cust-1"}, ["_id"], schema)

        assert doc_id == "cust-1"

    def test_declared_string_id_stays_string(self):
        schema = CollectionSchema(collection="c", fields=[FieldSpec(name="_id", type="string")])
        oid = "65a1b2c3d4e5f6a7b8c9d0e1"

        doc_id, _, _ = build_document({"_id": oid}, ["_id"], schema)

        assert doc_id == oid

    def test_declared_int_id(self):
        schema = CollectionSchema(collection="c", fields=[FieldSpec(name="_id", type="int")])

        doc_id, _, errors = build_document({"_id": "x1"}, ["_id"], schema)

        assert doc_id is None
        assert errors == ["Row x1: Field _id: Invalid integer: x1"]

    def test_undeclared_columns_are_strings(self, customers_schema):
        _, fields, _ = build_document(
            {"_id": "r", "notes": "007", "_value_kinds": '{"notes":"number"}'},
            ["_id", "notes"],
            customers_schema,
        )

        assert fields == {"notes": "007"}


async def test_declared_int_id_missing_reported(staging_store, authority, worker_pool):
    """A row whose identifier cannot be coerced is not written."""
    schema = CollectionSchema(collection="nums", fields=[FieldSpec(name="_id", type="int")])
    staging_store.replace([{"_id": "x1", "v": "1"}], [])

    provider = StaticSchemaProvider({"nums": schema})

    summary = await import_staged(
        "nums", ["x1"], staging_store, provider, authority, worker_pool
    )

    assert summary.inserted_count == 0
    assert summary.errors == [
        "Row x1: Field _id: Invalid integer: x1",
        "Row x1: Document missing _id",
    ]
    assert authority.documents("nums") == []
