"""Staged text to typed document values.

Each declared schema type has one parser. Failures are returned as
``Result.fail`` so the importer can record them per field and carry on.
"""

from __future__ import annotations

import json
import re
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

from bson import Int64, ObjectId

from csvstage.core.models import Result

INT32_MIN, INT32_MAX = -(2**31), 2**31 - 1
INT64_MIN, INT64_MAX = -(2**63), 2**63 - 1

TRUE_TOKENS = frozenset({"true", "yes", "1", "t", "y"})
FALSE_TOKENS = frozenset({"false", "no", "0", "f", "n"})

# Tried in order after ISO-8601/RFC-3339
DATE_FORMATS = ("%Y-%m-%d %H:%M:%S", "%Y-%m-%d %H:%M", "%Y-%m-%d")

_INTEGER = re.compile(r"[+-]?\d+")
_FLOAT = re.compile(r"[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?|[+-]?(?:inf|infinity|nan)", re.I)


def _parse_object_id(text: str) -> Result[Any]:
    if not ObjectId.is_valid(text):
        return Result.fail(f"Invalid ObjectId: {text}")
    return Result.ok(ObjectId(text))


def _parse_date(text: str) -> Result[Any]:
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        parsed = None
    if parsed is None:
        for fmt in DATE_FORMATS:
            try:
                parsed = datetime.strptime(text, fmt)
                break
            except ValueError:
                continue
    if parsed is None:
        return Result.fail(f"Invalid date format: {text}")
    if parsed.tzinfo is None:
        return Result.ok(parsed.replace(tzinfo=UTC))
    return Result.ok(parsed.astimezone(UTC))


def _parse_bounded_int(text: str, low: int, high: int, label: str) -> Result[int]:
    if not _INTEGER.fullmatch(text):
        return Result.fail(f"Invalid {label}: {text}")
    value = int(text)
    if not low <= value <= high:
        return Result.fail(f"Invalid {label}: {text} is out of range")
    return Result.ok(value)


def _parse_int32(text: str) -> Result[Any]:
    return _parse_bounded_int(text, INT32_MIN, INT32_MAX, "integer")


def _parse_int64(text: str) -> Result[Any]:
    return _parse_bounded_int(text, INT64_MIN, INT64_MAX, "long integer").map(Int64)


def _parse_double(text: str) -> Result[Any]:
    if not _FLOAT.fullmatch(text):
        return Result.fail(f"Invalid double: {text}")
    return Result.ok(float(text))


def _parse_bool(text: str) -> Result[Any]:
    token = text.lower()
    if token in TRUE_TOKENS:
        return Result.ok(True)
    if token in FALSE_TOKENS:
        return Result.ok(False)
    return Result.fail(f"Invalid boolean value: {text}")


def _parse_json_as(kind: type, label: str) -> Callable[[str], Result[Any]]:
    def parse(text: str) -> Result[Any]:
        try:
            value = json.loads(text)
        except ValueError as e:
            return Result.fail(f"Invalid {label}: {e}")
        if not isinstance(value, kind):
            return Result.fail(f"Invalid {label}: expected a JSON {label}")
        return Result.ok(value)

    return parse


def _keep_text(text: str) -> Result[Any]:
    return Result.ok(text)


PARSERS: dict[str, Callable[[str], Result[Any]]] = {
    "objectId": _parse_object_id,
    "date": _parse_date,
    "int": _parse_int32,
    "int32": _parse_int32,
    "long": _parse_int64,
    "int64": _parse_int64,
    "double": _parse_double,
    "number": _parse_double,
    "decimal": _parse_double,
    "bool": _parse_bool,
    "boolean": _parse_bool,
    "array": _parse_json_as(list, "array"),
    "object": _parse_json_as(dict, "object"),
    "document": _parse_json_as(dict, "object"),
    "string": _keep_text,
}


def coerce_value(text: str | None, field_type: str | None) -> Result[Any]:
    """Coerce staged text to the declared type.

    Empty text and NULL become ``None``. Unknown types keep the text.
    """
    if text is None or text == "":
        return Result.ok(None)
    parser = PARSERS.get(field_type or "string", _keep_text)
    return parser(text)


def coerce_id(text: str, declared_type: str | None) -> Any:
    """Identifier value used for the authoritative document.

    A 24-hex id becomes an ObjectId unless the schema declares ``_id`` as
    something other than ``objectId``; everything else stays a string.
    """
    if declared_type in (None, "objectId") and ObjectId.is_valid(text):
        return ObjectId(text)
    return text


def id_candidates(text: str) -> list[Any]:
    """Forms an identifier may take in the authoritative store."""
    if ObjectId.is_valid(text):
        return [ObjectId(text), text]
    return [text]
