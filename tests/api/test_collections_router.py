"""Tests for collections router endpoints."""

import csv
import io

from fastapi.testclient import TestClient

from csvstage.core.errors import AuthoritativeStoreError


class TestExportCollection:
    """Tests for GET /api/v1/collections/{collection}/export."""

    def test_original_headers(self, test_client: TestClient, authority):
        """Schema field order, without _id by default."""
        authority.documents("customers").append(
            {"_id": "a", "email": "ada@example.com", "name": "Ada", "age": 36}
        )

        response = test_client.get("/api/v1/collections/customers/export")
        assert response.status_code == 200
        assert 'filename="customers_' in response.headers["content-disposition"]

        rows = list(csv.reader(io.StringIO(response.text)))
        assert rows[0] == ["name", "email", "age", "joined", "active"]
        assert rows[1] == ["Ada", "ada@example.com", "36", "", ""]

    def test_short_headers_with_id(self, test_client: TestClient, authority):
        """Short names replace field names where declared."""
        authority.documents("customers").append({"_id": "a", "name": "Ada"})

        response = test_client.get(
            "/api/v1/collections/customers/export",
            params={"headers": "short", "include_id": "true"},
        )
        assert response.status_code == 200

        rows = list(csv.reader(io.StringIO(response.text)))
        assert rows[0] == ["_id", "Name", "E-mail", "age", "joined", "active"]
        assert rows[1][0] == "a"

    def test_unknown_header_mode(self, test_client: TestClient):
        response = test_client.get(
            "/api/v1/collections/customers/export", params={"headers": "long"}
        )
        assert response.status_code == 422

    def test_unknown_collection(self, test_client: TestClient):
        """Collections the schema provider does not know are a 404."""
        response = test_client.get("/api/v1/collections/orders/export")
        assert response.status_code == 404

    def test_authoritative_store_failure(self, test_client: TestClient, authority):
        """Store failures map to a bad-gateway response."""

        async def broken(collection):
            raise AuthoritativeStoreError("connection refused", collection=collection)
            yield  # pragma: no cover

        authority.find_all = broken

        response = test_client.get("/api/v1/collections/customers/export")
        assert response.status_code == 502
        assert response.json()["detail"] == "connection refused"
