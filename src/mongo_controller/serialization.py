"""Document field values <-> BSON-ready values (Decimal, nested documents)."""

from __future__ import annotations

from decimal import Decimal
from typing import Any

from bson.decimal128 import Decimal128


def to_bson(value: Any) -> Any:
    """Convert Python values to BSON-safe values.

    PyMongo handles datetime, UUID (with a uuid representation) and ObjectId
    natively; only Decimal needs an explicit conversion.
    """
    if isinstance(value, Decimal):
        return Decimal128(str(value))
    if isinstance(value, dict):
        return {k: to_bson(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_bson(v) for v in value]
    return value


def from_bson(value: Any) -> Any:
    """Convert BSON values back to Python values."""
    if isinstance(value, Decimal128):
        return value.to_decimal()
    if isinstance(value, dict):
        return {k: from_bson(v) for k, v in value.items()}
    if isinstance(value, list):
        return [from_bson(v) for v in value]
    return value


def doc_to_fields(doc: dict[str, Any], *, id_field: str = "id") -> dict[str, Any]:
    """Map a stored document to model field values (``_id`` -> ``id_field``)."""
    data = dict(doc)
    if "_id" in data:
        data[id_field] = data.pop("_id")
    return from_bson(data)


def fields_to_doc(data: dict[str, Any], *, id_field: str = "id") -> dict[str, Any]:
    """Map model field values to a storable document (``id_field`` -> ``_id``)."""
    data = dict(data)
    if id_field in data:
        data["_id"] = data.pop(id_field)
    return to_bson(data)
