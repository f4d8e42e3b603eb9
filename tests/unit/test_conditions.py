"""Unit tests for ControllerOptions and build_query."""

from __future__ import annotations

import logging

import pytest

from mongo_controller import (
    SUPPORTED,
    ConditionKey,
    ControllerOptions,
    Document,
    MongoQueryError,
    UnsupportedConditionError,
    build_query,
)
from mongo_controller.conditions import normalise_conditions


class ConditionItem(Document):
    name: str = ""
    rank: int = 0


def test_supported_keys_match_condition_enum() -> None:
    assert SUPPORTED == {"skip", "populate", "limit", "sort", "select", "where"}
    assert {k.value for k in ConditionKey} == SUPPORTED


class TestControllerOptions:
    def test_defaults_allow_exactly_supported(self) -> None:
        assert ControllerOptions().allowed_keys == SUPPORTED

    def test_blacklist_removes_supported_keys(self) -> None:
        options = ControllerOptions(blacklist=["sort", "populate"])
        assert options.allowed_keys == SUPPORTED - {"sort", "populate"}

    def test_whitelist_adds_keys_with_handlers(self) -> None:
        options = ControllerOptions(
            whitelist=["search"], queries={"search": lambda q, v: None}
        )
        assert options.allowed_keys == SUPPORTED | {"search"}

    def test_whitelist_overrides_blacklist(self) -> None:
        options = ControllerOptions(whitelist=["sort"], blacklist=["sort"])
        assert "sort" in options.allowed_keys

    def test_whitelisted_key_without_handler_is_rejected(self) -> None:
        with pytest.raises(UnsupportedConditionError, match="search"):
            ControllerOptions(whitelist=["search"])

    def test_is_immutable(self) -> None:
        handlers = {"where": lambda q, v: None}
        options = ControllerOptions(blacklist=["sort"], queries=handlers)
        handlers["sort"] = lambda q, v: None

        assert isinstance(options.blacklist, frozenset)
        assert "sort" not in options.queries
        with pytest.raises(TypeError):
            options.queries["limit"] = lambda q, v: None  # type: ignore[index]
        with pytest.raises(AttributeError):
            options.blacklist = frozenset()  # type: ignore[misc]


class TestBuildQuery:
    def test_applies_every_supported_key(self) -> None:
        query = build_query(
            ConditionItem.find(),
            {
                "where": {"name": "a"},
                "sort": "-rank",
                "skip": 2,
                "limit": 3,
                "select": "name",
            },
        )
        assert query.filter == {"name": "a"}
        assert query.sort_order == [("rank", -1)]
        assert query.skip_value == 2
        assert query.limit_value == 3
        assert query.projection == {"name": 1}

    def test_drops_unknown_keys(self, caplog) -> None:
        caplog.set_level(logging.DEBUG, logger="mongo_controller.conditions")
        query = build_query(
            ConditionItem.find(), {"where": {"name": "a"}, "$where": "sleep(1)"}
        )
        assert query.filter == {"name": "a"}
        assert "$where" in caplog.text

    def test_blacklisted_keys_never_reach_the_query(self) -> None:
        options = ControllerOptions(blacklist=["sort", "limit"])
        query = build_query(
            ConditionItem.find(),
            {"sort": "-rank", "limit": 1, "skip": 1},
            options,
        )
        assert query.sort_order == []
        assert query.limit_value is None
        assert query.skip_value == 1

    def test_custom_handler_receives_query_and_value(self) -> None:
        calls = []

        def search(query, value):
            calls.append((query, value))
            query.where({"$or": [{"name": value}, {"rank": len(value)}]})

        options = ControllerOptions(whitelist=["search"], queries={"search": search})
        query = ConditionItem.find()
        result = build_query(query, {"search": "abc"}, options)

        assert result is query
        assert calls == [(query, "abc")]
        assert query.filter == {"$or": [{"name": "abc"}, {"rank": 3}]}

    def test_custom_handler_replaces_supported_key(self) -> None:
        options = ControllerOptions(
            queries={"sort": lambda q, v: q.sort({v: "desc"})}
        )
        query = build_query(ConditionItem.find(), {"sort": "rank"}, options)
        assert query.sort_order == [("rank", -1)]

    def test_handler_for_disallowed_key_is_not_called(self) -> None:
        def boom(query, value):
            raise AssertionError("must not be called")

        options = ControllerOptions(blacklist=["sort"], queries={"sort": boom})
        build_query(ConditionItem.find(), {"sort": "rank"}, options)

    def test_invalid_values_raise(self) -> None:
        with pytest.raises(MongoQueryError):
            build_query(ConditionItem.find(), {"limit": -1})


def test_normalise_conditions_copies() -> None:
    original = {"populate": "x"}
    copy = normalise_conditions(original)
    copy.pop("populate")
    assert original == {"populate": "x"}
    assert normalise_conditions(None) == {}
    with pytest.raises(MongoQueryError):
        normalise_conditions(["where"])  # type: ignore[arg-type]
