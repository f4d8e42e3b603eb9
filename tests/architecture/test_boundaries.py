from pytest_archon import archrule


def test_mapper_independence() -> None:
    """
    The document mapper (document, query, hooks, connection, serialization)
    must not know about the controller layer built on top of it.
    """
    (
        archrule("mapper_is_independent")
        .match("mongo_controller.document")
        .match("mongo_controller.query")
        .match("mongo_controller.hooks")
        .match("mongo_controller.connection")
        .match("mongo_controller.serialization")
        .should_not_import("mongo_controller.controller")
        .should_not_import("mongo_controller.conditions")
        .check("mongo_controller")
    )


def test_query_does_not_import_document() -> None:
    """
    Query works on whatever model class it is given; only type hints refer to
    Document, which keeps the document -> query import one-way.
    """
    (
        archrule("query_is_model_agnostic")
        .match("mongo_controller.query")
        .should_not_import("mongo_controller.document")
        .check("mongo_controller", skip_type_checking=True)
    )


def test_exceptions_are_leaf() -> None:
    """Exceptions must not import anything else from the package."""
    (
        archrule("exceptions_are_leaf")
        .match("mongo_controller.exceptions")
        .should_not_import("mongo_controller.*")
        .check("mongo_controller")
    )


def test_controller_does_not_touch_the_driver() -> None:
    """
    The controller talks to the store only through Document and Query.
    """
    (
        archrule("controller_driver_free")
        .match("mongo_controller.controller")
        .match("mongo_controller.conditions")
        .should_not_import("motor*")
        .should_not_import("pymongo*")
        .should_not_import("bson*")
        .check("mongo_controller", only_direct_imports=True)
    )
