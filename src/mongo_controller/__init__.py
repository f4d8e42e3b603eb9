"""Generic CRUD controller over MongoDB document models.

A :class:`Controller` wraps one :class:`Document` model and translates
condition records (``skip``, ``limit``, ``sort``, ``select``, ``populate``,
``where``) into :class:`Query` calls, with an optional whitelist, blacklist and
per-key custom handlers.
"""

from __future__ import annotations

from .conditions import (
    SUPPORTED,
    ConditionKey,
    ControllerOptions,
    QueryHandler,
    build_query,
)
from .connection import MongoConnectionManager
from .controller import Controller
from .document import Document, Reference, get_model, is_document_model
from .exceptions import (
    ControllerError,
    InvalidModelError,
    MissingIdError,
    MongoConnectionError,
    MongoPersistenceError,
    MongoQueryError,
    UnsupportedConditionError,
)
from .hooks import HookEvent, HookRegistry
from .query import Query, QueryOp

__all__ = [
    # Controller
    "Controller",
    "ControllerOptions",
    "ConditionKey",
    "QueryHandler",
    "SUPPORTED",
    "build_query",
    # Mapper
    "Document",
    "Reference",
    "Query",
    "QueryOp",
    "HookEvent",
    "HookRegistry",
    "MongoConnectionManager",
    "get_model",
    "is_document_model",
    # Exceptions
    "ControllerError",
    "InvalidModelError",
    "MissingIdError",
    "UnsupportedConditionError",
    "MongoPersistenceError",
    "MongoConnectionError",
    "MongoQueryError",
]
