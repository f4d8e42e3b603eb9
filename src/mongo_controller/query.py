"""Query — chainable builder over a Document model's collection."""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from enum import Enum
from typing import TYPE_CHECKING, Any

from bson import ObjectId

from .exceptions import MongoQueryError

if TYPE_CHECKING:
    from .document import Document

logger = logging.getLogger(__name__)

_SPLIT = re.compile(r"[\s,]+")

_DIRECTIONS: dict[Any, int] = {
    1: 1,
    -1: -1,
    "1": 1,
    "-1": -1,
    "asc": 1,
    "ascending": 1,
    "desc": -1,
    "descending": -1,
}


class QueryOp(str, Enum):
    """Kind of query; also the name of the pre-hook it runs."""

    COUNT = "count"
    FIND = "find"
    FIND_ONE = "find_one"


def _tokens(spec: str) -> list[str]:
    return [t for t in _SPLIT.split(spec.strip()) if t]


def _direction(field: str, value: Any) -> int:
    key = value.lower() if isinstance(value, str) else value
    if isinstance(key, bool) or key not in _DIRECTIONS:
        raise MongoQueryError(f"Invalid sort direction {value!r} for {field!r}")
    return _DIRECTIONS[key]


def build_sort(spec: Any) -> list[tuple[str, int]]:
    """Build MongoDB sort tuples.

    Accepts ``"-created name"``, ``["-created", "name"]``,
    ``[("created", "desc")]`` or ``{"created": -1, "name": "asc"}``.
    """
    if spec is None:
        return []
    if isinstance(spec, str):
        spec = _tokens(spec)
    if isinstance(spec, Mapping):
        return [(str(field), _direction(field, d)) for field, d in spec.items()]
    if not isinstance(spec, (list, tuple)):
        raise MongoQueryError(f"Invalid sort specification {spec!r}")
    result: list[tuple[str, int]] = []
    for item in spec:
        if isinstance(item, (list, tuple)) and len(item) == 2:
            result.append((str(item[0]), _direction(item[0], item[1])))
        elif isinstance(item, str) and item.startswith("-"):
            result.append((item[1:], -1))
        elif isinstance(item, str):
            result.append((item.lstrip("+"), 1))
        else:
            raise MongoQueryError(f"Invalid sort item {item!r}")
    return result


def build_projection(spec: Any) -> dict[str, int]:
    """Build a ``{field: 0|1}`` projection from ``"a -b"``, a list or a mapping."""
    if spec is None:
        return {}
    if isinstance(spec, str):
        spec = _tokens(spec)
    if isinstance(spec, Mapping):
        projection = {str(field): 1 if value else 0 for field, value in spec.items()}
    elif isinstance(spec, (list, tuple)) and all(isinstance(f, str) for f in spec):
        projection = {
            (f[1:] if f.startswith("-") else f.lstrip("+")): (
                0 if f.startswith("-") else 1
            )
            for f in spec
        }
    else:
        raise MongoQueryError(f"Invalid select specification {spec!r}")
    return projection


def build_populate(spec: Any) -> list[str]:
    """Build the populate paths from ``"a b"``, a list or ``{"path": ...}``."""
    if spec is None:
        return []
    if isinstance(spec, str):
        return _tokens(spec)
    if isinstance(spec, Mapping):
        if "path" not in spec:
            raise MongoQueryError(f"Populate mapping needs a 'path': {spec!r}")
        return build_populate(spec["path"])
    if isinstance(spec, (list, tuple)):
        return [path for item in spec for path in build_populate(item)]
    raise MongoQueryError(f"Invalid populate specification {spec!r}")


def _cast_id(value: Any) -> Any:
    if isinstance(value, str) and len(value) == 24 and ObjectId.is_valid(value):
        return ObjectId(value)
    if isinstance(value, Mapping):
        return {k: _cast_id(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_cast_id(v) for v in value]
    return value


def cast_filter(conditions: Mapping[str, Any]) -> dict[str, Any]:
    """Copy a filter, casting hex-string ``_id`` values to ``ObjectId``."""
    return {
        key: _cast_id(value) if key == "_id" else value
        for key, value in conditions.items()
    }


def _bound(name: str, value: Any) -> int:
    if isinstance(value, str) and value.isdigit():
        value = int(value)
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise MongoQueryError(f"{name} must be a non-negative integer, got {value!r}")
    return value


class Query:
    """Mutable, single-use query over one Document model.

    Filter methods return the query so calls can be chained; nothing touches
    the store until :meth:`exec` is awaited.
    """

    def __init__(self, model: type[Document], op: QueryOp | str) -> None:
        self.model = model
        self.op = QueryOp(op)
        self._filter: dict[str, Any] = {}
        self._sort: dict[str, int] = {}
        self._projection: dict[str, int] = {}
        self._skip: int | None = None
        self._limit: int | None = None
        self._populate: list[str] = []
        self._executed = False

    def __repr__(self) -> str:
        return (
            f"Query({self.model.__name__}.{self.op.value}, filter={self._filter!r}, "
            f"sort={self._sort!r}, skip={self._skip!r}, limit={self._limit!r})"
        )

    # ── Inspection ───────────────────────────────────────────────

    @property
    def filter(self) -> dict[str, Any]:
        return dict(self._filter)

    @property
    def sort_order(self) -> list[tuple[str, int]]:
        return list(self._sort.items())

    @property
    def projection(self) -> dict[str, int] | None:
        return dict(self._projection) or None

    @property
    def skip_value(self) -> int | None:
        return self._skip

    @property
    def limit_value(self) -> int | None:
        return self._limit

    @property
    def populate_paths(self) -> list[str]:
        return list(self._populate)

    # ── Builders ─────────────────────────────────────────────────

    def where(
        self, conditions: Mapping[str, Any] | None = None, **kwargs: Any
    ) -> Query:
        """Merge field conditions into the filter; later keys win."""
        if conditions is not None and not isinstance(conditions, Mapping):
            raise MongoQueryError(f"where() expects a mapping, got {conditions!r}")
        self._filter.update(cast_filter({**(conditions or {}), **kwargs}))
        return self

    def sort(self, spec: Any) -> Query:
        for field, direction in build_sort(spec):
            self._sort.pop(field, None)
            self._sort[field] = direction
        return self

    def skip(self, value: Any) -> Query:
        self._skip = _bound("skip", value)
        return self

    def limit(self, value: Any) -> Query:
        self._limit = _bound("limit", value)
        return self

    def select(self, spec: Any) -> Query:
        projection = {**self._projection, **build_projection(spec)}
        modes = {v for k, v in projection.items() if k != "_id"}
        if len(modes) > 1:
            raise MongoQueryError(
                f"Cannot mix inclusion and exclusion in projection {projection!r}"
            )
        self._projection = projection
        return self

    def populate(self, spec: Any) -> Query:
        refs = self.model.reference_fields()
        for path in build_populate(spec):
            if path not in refs:
                raise MongoQueryError(
                    f"Cannot populate {path!r}: not a reference field of "
                    f"{self.model.__name__}"
                )
            if path not in self._populate:
                self._populate.append(path)
        return self

    # ── Execution ────────────────────────────────────────────────

    def _find_kwargs(self) -> dict[str, Any]:
        kwargs: dict[str, Any] = {}
        if self._sort:
            kwargs["sort"] = list(self._sort.items())
        if self._skip:
            kwargs["skip"] = self._skip
        if self._limit and self.op is QueryOp.FIND:
            kwargs["limit"] = self._limit
        return kwargs

    async def exec(self) -> Any:
        """Run pre-hooks then the query.

        Returns an ``int`` for count, a list of documents for find and a
        document or ``None`` for find_one.
        """
        if self._executed:
            raise MongoQueryError(f"{self!r} has already been executed")
        self._executed = True
        await self.model.run_hooks(self.op.value, self)
        collection = self.model.get_collection()
        logger.debug("Executing %r", self)

        if self.op is QueryOp.COUNT:
            kwargs: dict[str, Any] = {}
            if self._skip:
                kwargs["skip"] = self._skip
            if self._limit:
                kwargs["limit"] = self._limit
            return await collection.count_documents(self._filter, **kwargs)

        projection = self.projection
        if self.op is QueryOp.FIND_ONE:
            raw = await collection.find_one(
                self._filter, projection, **self._find_kwargs()
            )
            if raw is None:
                return None
            found = [self.model.from_document(raw, partial=projection is not None)]
            await self._apply_populate(found)
            return found[0]

        cursor = collection.find(self._filter, projection, **self._find_kwargs())
        docs = [
            self.model.from_document(raw, partial=projection is not None)
            async for raw in cursor
        ]
        await self._apply_populate(docs)
        return docs

    async def _apply_populate(self, docs: list[Document]) -> None:
        refs = self.model.reference_fields()
        for path in self._populate:
            target = refs[path].target
            ids: list[Any] = []
            for doc in docs:
                value = getattr(doc, path, None)
                ids.extend(value if isinstance(value, list) else [value])
            ids = [i for i in ids if i is not None]
            if not ids:
                continue
            related = await target.find().where({"_id": {"$in": ids}}).exec()
            by_id = {r.id: r for r in related}
            for doc in docs:
                value = getattr(doc, path, None)
                if isinstance(value, list):
                    setattr(doc, path, [by_id[i] for i in value if i in by_id])
                elif value is not None:
                    setattr(doc, path, by_id.get(value))
