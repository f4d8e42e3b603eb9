"""Shared fixtures: an in-memory Motor client bound to every Document model."""

from __future__ import annotations

import pytest

from mongo_controller import Document, MongoConnectionManager


@pytest.fixture
def mock_client():
    """Create a mock MongoDB client."""
    mongomock_motor = pytest.importorskip("mongomock_motor")
    return mongomock_motor.AsyncMongoMockClient()


@pytest.fixture
def connection(mock_client):
    """Bind all Document models to a fresh mock database for one test."""
    connection = MongoConnectionManager.from_client(mock_client, database="test_db")
    Document.bind(connection, database="test_db")
    yield connection
    Document.unbind()
