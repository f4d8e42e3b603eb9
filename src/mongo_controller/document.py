"""Document — pydantic model persisted in a MongoDB collection.

A ``Document`` subclass is the model a :class:`~mongo_controller.Controller`
wraps. It knows its collection, builds :class:`~mongo_controller.query.Query`
objects, runs pre-hooks and converts itself to and from stored documents.

Usage::

    class Tag(Document):
        name: str

    class Post(Document):
        title: str
        tags: Annotated[list[ObjectId], Reference("Tag")] = Field(
            default_factory=list
        )

    Document.bind(connection, database="blog")

    @Post.pre("save")
    def touch(post: Post) -> None: ...

    post = await Post(title="hello").save()
    posts = await Post.find().where({"title": "hello"}).populate("tags").exec()
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, ClassVar, TypeVar

from bson import ObjectId
from pydantic import BaseModel, ConfigDict, Field, PrivateAttr

from .connection import MongoConnectionManager
from .exceptions import MongoConnectionError, MongoPersistenceError
from .hooks import HookEvent, HookRegistry
from .query import Query, QueryOp
from .serialization import doc_to_fields, fields_to_doc

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

    from motor.motor_asyncio import AsyncIOMotorCollection

    from .hooks import Hook

logger = logging.getLogger(__name__)

TDocument = TypeVar("TDocument", bound="Document")

_REGISTRY: dict[str, type[Document]] = {}


class Reference:
    """``Annotated`` marker for fields holding ids of another Document model.

    ``target`` is either the model class or its registered name, so models can
    reference each other before both are defined.
    """

    def __init__(self, target: type[Document] | str) -> None:
        self._target = target

    @property
    def target(self) -> type[Document]:
        if isinstance(self._target, str):
            return get_model(self._target)
        return self._target

    def __repr__(self) -> str:
        name = self._target if isinstance(self._target, str) else self._target.__name__
        return f"Reference({name!r})"


def _registry_key(model: type[Document]) -> str:
    return f"{model.__module__}.{model.__qualname__}"


def get_model(name: str) -> type[Document]:
    """Return the Document model registered under ``name``.

    ``name`` is either the class name or the dotted ``module.QualName`` path;
    a class name shared by several models must be given as the dotted path.
    """
    if name in _REGISTRY:
        return _REGISTRY[name]
    matches = [model for model in _REGISTRY.values() if model.__name__ == name]
    if not matches:
        raise MongoPersistenceError(f"Unknown document model {name!r}")
    if len(matches) > 1:
        paths = sorted(_registry_key(model) for model in matches)
        raise MongoPersistenceError(
            f"Document model name {name!r} is ambiguous; use one of {paths}"
        )
    return matches[0]


def is_document_model(model: object) -> bool:
    """True when ``model`` is a concrete Document model class."""
    return (
        isinstance(model, type)
        and issubclass(model, Document)
        and model is not Document
    )


def _reference_ids(value: Any) -> Any:
    if isinstance(value, Document):
        return value.id
    if isinstance(value, list):
        return [_reference_ids(v) for v in value]
    return value


class Document(BaseModel):
    """Base class for persisted models.

    ``id`` maps to the stored ``_id`` and is generated at construction time.
    The collection name defaults to the lower-cased class name; set
    ``__collection__`` to override it.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    __collection__: ClassVar[str | None] = None
    _connection: ClassVar[MongoConnectionManager | None] = None
    _database: ClassVar[str | None] = None
    _hooks: ClassVar[HookRegistry] = HookRegistry()

    id: ObjectId = Field(default_factory=ObjectId)
    _is_new: bool = PrivateAttr(default=True)
    _partial: bool = PrivateAttr(default=False)

    @classmethod
    def __pydantic_init_subclass__(cls, **kwargs: Any) -> None:
        super().__pydantic_init_subclass__(**kwargs)
        cls._hooks = HookRegistry()
        _REGISTRY[_registry_key(cls)] = cls

    # ── Binding ──────────────────────────────────────────────────

    @classmethod
    def bind(
        cls, connection: MongoConnectionManager, *, database: str | None = None
    ) -> None:
        """Bind this model (or every model, when called on ``Document``)."""
        cls._connection = connection
        cls._database = database

    @classmethod
    def unbind(cls) -> None:
        """Drop this model's own binding so it falls back to its base's."""
        if cls is Document:
            cls._connection = None
            cls._database = None
            return
        for name in ("_connection", "_database"):
            if name in cls.__dict__:
                delattr(cls, name)

    @classmethod
    def get_collection_name(cls) -> str:
        return cls.__collection__ or cls.__name__.lower()

    @classmethod
    def get_collection(cls) -> AsyncIOMotorCollection[Any]:
        if cls._connection is None:
            raise MongoConnectionError(
                f"{cls.__name__} is not bound to a connection; call bind() first"
            )
        database = cls._connection.get_database(cls._database)
        return database[cls.get_collection_name()]

    # ── Hooks ────────────────────────────────────────────────────

    @classmethod
    def pre(cls, event: HookEvent | str) -> Callable[[Hook], Hook]:
        """Decorator registering a hook to run before ``event``."""

        def decorator(hook: Hook) -> Hook:
            cls._hooks.register(event, hook)
            return hook

        return decorator

    @classmethod
    async def run_hooks(cls, event: HookEvent | str, target: Any) -> None:
        """Run ``event`` hooks of every model in the MRO, base classes first."""
        for klass in reversed(cls.__mro__):
            hooks = vars(klass).get("_hooks")
            if isinstance(hooks, HookRegistry):
                await hooks.run(event, target)

    # ── Queries ──────────────────────────────────────────────────

    @classmethod
    def count(cls) -> Query:
        return Query(cls, QueryOp.COUNT)

    @classmethod
    def find(cls) -> Query:
        return Query(cls, QueryOp.FIND)

    @classmethod
    def find_one(cls) -> Query:
        return Query(cls, QueryOp.FIND_ONE)

    @classmethod
    def reference_fields(cls) -> dict[str, Reference]:
        """Fields annotated with :class:`Reference`, keyed by field name."""
        refs: dict[str, Reference] = {}
        for name, info in cls.model_fields.items():
            for meta in info.metadata:
                if isinstance(meta, Reference):
                    refs[name] = meta
        return refs

    # ── Conversion ───────────────────────────────────────────────

    @classmethod
    def from_document(
        cls: type[TDocument], raw: Mapping[str, Any], *, partial: bool = False
    ) -> TDocument:
        """Build an instance from a stored document.

        Projected (``partial``) documents may lack required fields and are built
        without validation. Saving one only writes the fields it was loaded
        with or has since been given.
        """
        data = doc_to_fields(dict(raw))
        doc = cls.model_construct(**data) if partial else cls.model_validate(data)
        doc._is_new = False
        doc._partial = partial
        return doc

    def _field_values(self, include: set[str] | None = None) -> dict[str, Any]:
        refs = {
            name: ref
            for name, ref in self.reference_fields().items()
            if include is None or name in include
        }
        data = self.model_dump(mode="python", include=include, exclude=set(refs))
        for name in refs:
            data[name] = _reference_ids(getattr(self, name, None))
        return data

    def to_document(self) -> dict[str, Any]:
        """Return the BSON-ready document; populated references become ids."""
        return fields_to_doc(self._field_values())

    @property
    def is_new(self) -> bool:
        """True until the document has been saved or loaded from the store."""
        return self._is_new

    @property
    def is_partial(self) -> bool:
        """True for documents loaded through a projection."""
        return self._partial

    # ── Persistence ──────────────────────────────────────────────

    def set(self: TDocument, values: Mapping[str, Any] | None = None) -> TDocument:
        """Merge ``values`` into this document and re-validate.

        Unknown keys are ignored and the id is never changed. Partial documents
        validate each assigned field on its own.
        """
        if not values:
            return self
        cls = type(self)
        updates = {
            k: v
            for k, v in values.items()
            if k not in ("id", "_id") and k in cls.model_fields
        }
        if self._partial:
            for name, value in updates.items():
                self.__pydantic_validator__.validate_assignment(self, name, value)
                self.__pydantic_fields_set__.add(name)
            return self
        data = self._field_values()
        data.update(updates)
        fresh = cls.model_validate(data)
        for name in cls.model_fields:
            setattr(self, name, getattr(fresh, name))
        return self

    async def save(self: TDocument) -> TDocument:
        """Insert a new document or replace the stored one.

        A partial document is never replaced; its known fields are ``$set``.
        """
        cls = type(self)
        await cls.run_hooks(HookEvent.SAVE, self)
        collection = cls.get_collection()
        if self._is_new:
            await collection.insert_one(self.to_document())
            self._is_new = False
            logger.debug("Inserted %s %s", cls.__name__, self.id)
        elif self._partial:
            known = set(self.model_fields_set) - {"id"}
            changes = fields_to_doc(self._field_values(include=known))
            if changes:
                await collection.update_one({"_id": self.id}, {"$set": changes})
            logger.debug(
                "Updated %s %s fields %s", cls.__name__, self.id, sorted(known)
            )
        else:
            await collection.replace_one({"_id": self.id}, self.to_document())
            logger.debug("Replaced %s %s", cls.__name__, self.id)
        return self

    async def remove(self: TDocument) -> TDocument:
        """Delete the stored document and return this (now detached) instance."""
        cls = type(self)
        await cls.run_hooks(HookEvent.REMOVE, self)
        await cls.get_collection().delete_one({"_id": self.id})
        logger.debug("Removed %s %s", cls.__name__, self.id)
        return self
