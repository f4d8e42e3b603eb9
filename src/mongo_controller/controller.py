"""Controller — generic CRUD over one Document model."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import replace
from typing import Any, Generic, TypeVar

from .conditions import (
    ConditionKey,
    ControllerOptions,
    QueryHandler,
    build_query,
    normalise_conditions,
)
from .document import Document, is_document_model
from .exceptions import InvalidModelError, MissingIdError

logger = logging.getLogger(__name__)

TDocument = TypeVar("TDocument", bound=Document)


def _require_id(conditions: Mapping[str, Any]) -> None:
    where = conditions.get(ConditionKey.WHERE.value)
    if not isinstance(where, Mapping) or not where.get("_id"):
        raise MissingIdError()


class Controller(Generic[TDocument]):
    """CRUD operations driven by condition records.

    Every operation is a coroutine; errors from the store, hooks or validation
    surface unchanged when it is awaited. Absence of a match is not an error:
    ``find_one``, ``update`` and ``destroy`` return ``None`` and ``find`` an
    empty list.

    Usage::

        posts = Controller(Post, {"blacklist": {"populate"}})
        page = await posts.find({"where": {"author": "ada"}, "limit": 10})
        await posts.update({"where": {"_id": post_id}}, {"title": "new"})
    """

    def __init__(
        self,
        model: type[TDocument],
        options: ControllerOptions | Mapping[str, Any] | None = None,
        *,
        whitelist: Iterable[str] = (),
        blacklist: Iterable[str] = (),
        queries: Mapping[str, QueryHandler] | None = None,
    ) -> None:
        if not is_document_model(model):
            raise InvalidModelError(
                f"Model must be a Document subclass, got {model!r}"
            )
        if options is None:
            options = ControllerOptions()
        elif isinstance(options, Mapping):
            options = ControllerOptions(**options)
        if whitelist or blacklist or queries:
            options = replace(
                options,
                whitelist=options.whitelist | frozenset(whitelist),
                blacklist=options.blacklist | frozenset(blacklist),
                queries={**options.queries, **(queries or {})},
            )
        self._model = model
        self._options = options

    def __repr__(self) -> str:
        return f"Controller({self._model.__name__})"

    @property
    def model(self) -> type[TDocument]:
        return self._model

    @property
    def options(self) -> ControllerOptions:
        return self._options

    async def count(self, conditions: Mapping[str, Any] | None = None) -> int:
        """Count matching documents; ``populate`` is ignored."""
        data = normalise_conditions(conditions)
        data.pop(ConditionKey.POPULATE.value, None)
        query = build_query(self._model.count(), data, self._options)
        return await query.exec()

    async def create(self, doc: Mapping[str, Any] | None = None) -> TDocument:
        """Insert a new document and return it with its assigned id."""
        return await self._model(**(doc or {})).save()

    async def find(
        self, conditions: Mapping[str, Any] | None = None
    ) -> list[TDocument]:
        data = normalise_conditions(conditions)
        query = build_query(self._model.find(), data, self._options)
        return await query.exec()

    async def find_one(
        self, conditions: Mapping[str, Any] | None = None
    ) -> TDocument | None:
        data = normalise_conditions(conditions)
        query = build_query(self._model.find_one(), data, self._options)
        return await query.exec()

    async def _find_by_id(self, data: Mapping[str, Any]) -> TDocument | None:
        query = build_query(self._model.find_one(), data, self._options)
        # The target is always pinned to where._id, whatever the policy did.
        query.where({"_id": data[ConditionKey.WHERE.value]["_id"]})
        result: TDocument | None = await query.exec()
        return result

    async def update(
        self,
        conditions: Mapping[str, Any] | None = None,
        doc: Mapping[str, Any] | None = None,
    ) -> TDocument | None:
        """Merge ``doc`` into the document matched by ``conditions["where"]["_id"]``.

        Raises:
            MissingIdError: if the where clause carries no ``_id``.
        """
        data = normalise_conditions(conditions)
        _require_id(data)
        found = await self._find_by_id(data)
        if found is None:
            logger.debug("%s.update matched no document", self._model.__name__)
            return None
        return await found.set(doc).save()

    async def destroy(
        self,
        conditions: Mapping[str, Any] | None = None,
        doc: Mapping[str, Any] | None = None,  # noqa: ARG002
    ) -> TDocument | None:
        """Remove the document matched by ``conditions["where"]["_id"]``.

        Returns the removed document as it was before removal.

        Raises:
            MissingIdError: if the where clause carries no ``_id``.
        """
        data = normalise_conditions(conditions)
        _require_id(data)
        found = await self._find_by_id(data)
        if found is None:
            logger.debug("%s.destroy matched no document", self._model.__name__)
            return None
        return await found.remove()
