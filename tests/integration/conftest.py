"""Real MongoDB fixtures (testcontainers)."""

from __future__ import annotations

import pytest

from mongo_controller import Document, MongoConnectionManager


@pytest.fixture(scope="module")
def mongo_container():
    """Create a MongoDB container using testcontainers."""
    pytest.importorskip("testcontainers")

    from testcontainers.mongodb import MongoDbContainer

    try:
        container = MongoDbContainer("mongo:7.0")
        container.start()
    except Exception as exc:  # noqa: BLE001
        pytest.skip(f"MongoDB container unavailable: {exc}")
    yield container
    container.stop()


@pytest.fixture
async def real_connection(mongo_container):
    """
    Bind every Document model to a real MongoDB database.

    Function scope avoids "Event loop is closed" when tests run in different
    loops. The database is dropped before each test for isolation.
    """
    connection = MongoConnectionManager(
        url=mongo_container.get_connection_url(), database="controller_it"
    )
    client = await connection.connect()
    await client.drop_database("controller_it")
    Document.bind(connection, database="controller_it")

    yield connection

    Document.unbind()
    connection.close()
