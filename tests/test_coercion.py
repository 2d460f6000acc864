"""Tests for value coercion."""

from datetime import UTC, datetime, timedelta, timezone

import pytest
from bson import Int64, ObjectId

from csvstage.coercion import coerce_id, coerce_value, id_candidates


class TestCoerceValue:
    """Tests for coerce_value per declared type."""

    @pytest.mark.parametrize(
        ("text", "field_type", "expected"),
        [
            ("", "int", None),
            (None, "date", None),
            ("abc", "string", "abc"),
            ("abc", "mystery", "abc"),
            ("42", "int", 42),
            ("-7", "int32", -7),
            ("9000000000", "long", 9000000000),
            ("3.25", "double", 3.25),
            ("1e3", "number", 1000.0),
            ("Yes", "bool", True),
            ("t", "boolean", True),
            ("0", "bool", False),
            ("N", "bool", False),
            ("[1, 2]", "array", [1, 2]),
            ('{"a": 1}', "object", {"a": 1}),
            ('{"a": 1}', "document", {"a": 1}),
        ],
    )
    def test_success(self, text, field_type, expected):
        result = coerce_value(text, field_type)

        assert result.success
        assert result.value == expected

    def test_long_is_int64(self):
        assert isinstance(coerce_value("5", "long").value, Int64)

    def test_object_id(self):
        result = coerce_value("65a1b2c3d4e5f6a7b8c9d0e1", "objectId")

        assert result.value == ObjectId("65a1b2c3d4e5f6a7b8c9d0e1")

    @pytest.mark.parametrize(
        ("text", "expected"),
        [
            ("2024-01-02T03:04:05Z", datetime(2024, 1, 2, 3, 4, 5, tzinfo=UTC)),
            (
                "2024-01-02T05:04:05+02:00",
                datetime(2024, 1, 2, 3, 4, 5, tzinfo=UTC),
            ),
            ("2024-01-02 03:04:05", datetime(2024, 1, 2, 3, 4, 5, tzinfo=UTC)),
            ("2024-01-02 03:04", datetime(2024, 1, 2, 3, 4, tzinfo=UTC)),
            ("2024-01-02", datetime(2024, 1, 2, tzinfo=UTC)),
        ],
    )
    def test_dates(self, text, expected):
        result = coerce_value(text, "date")

        assert result.value == expected
        assert result.value.utcoffset() == timedelta(0)

    def test_date_offset_normalized(self):
        value = coerce_value("2024-06-01T12:00:00-05:00", "date").value

        assert value.tzinfo == UTC
        assert value == datetime(2024, 6, 1, 12, tzinfo=timezone(timedelta(hours=-5)))

    @pytest.mark.parametrize(
        ("text", "field_type", "message"),
        [
            ("abc", "int", "Invalid integer: abc"),
            ("1.5", "int", "Invalid integer: 1.5"),
            ("2147483648", "int", "out of range"),
            ("1_000", "long", "Invalid long integer"),
            ("x", "double", "Invalid double: x"),
            ("maybe", "bool", "Invalid boolean value: maybe"),
            ("12/31/2024", "date", "Invalid date format: 12/31/2024"),
            ("{}", "array", "Invalid array"),
            ("[1", "array", "Invalid array"),
            ("[]", "object", "Invalid object"),
            ("xyz", "objectId", "Invalid ObjectId: xyz"),
        ],
    )
    def test_failure(self, text, field_type, message):
        result = coerce_value(text, field_type)

        assert not result.success
        assert message in result.error


class TestIds:
    def test_hex_becomes_object_id(self):
        assert coerce_id("65a1b2c3d4e5f6a7b8c9d0e1", None) == ObjectId("65a1b2c3d4e5f6a7b8c9d0e1")

    def test_declared_string_kept(self):
        assert coerce_id("65a1b2c3d4e5f6a7b8c9d0e1", "string") == "65a1b2c3d4e5f6a7b8c9d0e1"

    def test_other_text_kept(self):
        assert coerce_id("row-1", "objectId") == "row-1"

    def test_candidates(self):
        oid = "65a1b2c3d4e5f6a7b8c9d0e1"

        assert id_candidates(oid) == [ObjectId(oid), oid]
        assert id_candidates("row-1") == ["row-1"]
