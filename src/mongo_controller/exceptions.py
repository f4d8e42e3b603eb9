"""Exceptions for mongo-controller."""

from __future__ import annotations


class ControllerError(Exception):
    """Root exception for the mongo-controller package."""


class InvalidModelError(ControllerError, TypeError):
    """Raised when a Controller is built around something that is not a Document model."""


class UnsupportedConditionError(ControllerError, ValueError):
    """Raised when a whitelisted condition key has no way to be applied to a query."""


class MissingIdError(ControllerError):
    """Raised by update/destroy when ``conditions["where"]["_id"]`` is absent."""

    def __init__(self) -> None:
        super().__init__("MissingId")


class MongoPersistenceError(ControllerError):
    """Base for document-mapper errors."""


class MongoConnectionError(MongoPersistenceError):
    """Raised when connection to MongoDB fails or is missing."""


class MongoQueryError(MongoPersistenceError):
    """Raised when a query is built with invalid arguments."""
