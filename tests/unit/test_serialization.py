"""Unit tests for BSON serialization."""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

from bson import ObjectId
from bson.decimal128 import Decimal128

from mongo_controller.serialization import (
    doc_to_fields,
    fields_to_doc,
    from_bson,
    to_bson,
)


def test_fields_to_doc_id_mapping() -> None:
    oid = ObjectId()
    doc = fields_to_doc({"id": oid, "name": "test"})
    assert doc["_id"] == oid
    assert "id" not in doc


def test_doc_to_fields_id_mapping() -> None:
    oid = ObjectId()
    data = doc_to_fields({"_id": oid, "name": "test"})
    assert data == {"id": oid, "name": "test"}


def test_decimal_nested_in_lists_and_dicts() -> None:
    value = {"total": Decimal("10.50"), "lines": [{"amount": Decimal("1.25")}]}
    encoded = to_bson(value)
    assert isinstance(encoded["total"], Decimal128)
    assert isinstance(encoded["lines"][0]["amount"], Decimal128)

    decoded = from_bson(encoded)
    assert decoded == {
        "total": Decimal("10.50"),
        "lines": [{"amount": Decimal("1.25")}],
    }


def test_native_types_pass_through() -> None:
    created = datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)
    doc = fields_to_doc({"id": "x-1", "created_at": created, "tags": ("a", "b")})
    assert doc["created_at"] is created
    assert doc["tags"] == ["a", "b"]
