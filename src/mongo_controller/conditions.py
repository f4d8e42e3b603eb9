"""Condition records and their translation onto a :class:`Query`.

A condition record is a mapping such as::

    {"where": {"status": "open"}, "sort": "-created", "limit": 20}

Only the keys allowed by :class:`ControllerOptions` reach the query; the rest
are dropped. Allowed keys either go through a custom handler registered in
``queries`` or through the same-named :class:`Query` method.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any

from .exceptions import MongoQueryError, UnsupportedConditionError
from .query import Query

logger = logging.getLogger(__name__)

QueryHandler = Callable[[Query, Any], Any]


class ConditionKey(str, Enum):
    """Condition keys a query knows how to apply."""

    SKIP = "skip"
    POPULATE = "populate"
    LIMIT = "limit"
    SORT = "sort"
    SELECT = "select"
    WHERE = "where"


SUPPORTED: frozenset[str] = frozenset(key.value for key in ConditionKey)

_APPLIERS: dict[ConditionKey, Callable[[Query, Any], Query]] = {
    ConditionKey.SKIP: Query.skip,
    ConditionKey.POPULATE: Query.populate,
    ConditionKey.LIMIT: Query.limit,
    ConditionKey.SORT: Query.sort,
    ConditionKey.SELECT: Query.select,
    ConditionKey.WHERE: Query.where,
}


@dataclass(frozen=True)
class ControllerOptions:
    """
    Filtering policy for condition keys.

    Attributes:
        whitelist: Keys allowed in addition to the supported ones. A key outside
            the supported set must come with a handler in ``queries``.
        blacklist: Supported keys callers may not use.
        queries: Custom handlers ``(query, value) -> None`` replacing the
            default application of a key.
    """

    whitelist: frozenset[str] = frozenset()
    blacklist: frozenset[str] = frozenset()
    queries: Mapping[str, QueryHandler] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "whitelist", frozenset(self.whitelist))
        object.__setattr__(self, "blacklist", frozenset(self.blacklist))
        object.__setattr__(self, "queries", MappingProxyType(dict(self.queries)))
        unusable = sorted(
            key for key in self.whitelist - SUPPORTED if key not in self.queries
        )
        if unusable:
            raise UnsupportedConditionError(
                f"Whitelisted keys {unusable} are not supported and have no handler "
                "in 'queries'"
            )

    @property
    def allowed_keys(self) -> frozenset[str]:
        """Keys that may reach a query: (supported - blacklist) | whitelist."""
        return (SUPPORTED - self.blacklist) | self.whitelist


DEFAULT_OPTIONS = ControllerOptions()


def normalise_conditions(conditions: Mapping[str, Any] | None) -> dict[str, Any]:
    """Return a private copy of ``conditions`` (``None`` means no conditions)."""
    if conditions is None:
        return {}
    if not isinstance(conditions, Mapping):
        raise MongoQueryError(f"Conditions must be a mapping, got {conditions!r}")
    return dict(conditions)


def build_query(
    query: Query,
    conditions: Mapping[str, Any],
    options: ControllerOptions = DEFAULT_OPTIONS,
) -> Query:
    """Apply the allowed condition keys to ``query`` in mapping order.

    Returns the same query, not yet executed.
    """
    allowed = options.allowed_keys
    dropped = [key for key in conditions if key not in allowed]
    if dropped:
        logger.debug(
            "Dropping condition keys %s for %s", dropped, query.model.__name__
        )
    for key, value in conditions.items():
        if key not in allowed:
            continue
        handler = options.queries.get(key)
        if handler is not None:
            handler(query, value)
        else:
            _APPLIERS[ConditionKey(key)](query, value)
    return query
