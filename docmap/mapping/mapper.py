"""Mapper - binds one model type to one collection.

The mapper orchestrates the store adapter, the property mapper, the event
hub, scopes and relations. Every public operation creates its own pending
chain and resolves its predicate from an immutable ScopedQuery, so
concurrent calls on one mapper never share per-call state.
"""

from __future__ import annotations

import functools
from collections.abc import Awaitable, Callable, Iterable, Mapping
from typing import Any, Generic, TypeVar

import structlog

from docmap.core.enums import LifecycleEvent, RelationKind
from docmap.core.events import EventHub, Listener, MappingEvent
from docmap.core.exceptions import (
    DocMapError,
    ModelConstructionError,
    PendingStepError,
    ScopeNameError,
    StoreOperationError,
)
from docmap.core.pending import PendingChain, gather_all
from docmap.core.scope import QueryBuilder, ScopedQuery, ScopeEngine
from docmap.mapping.properties import PropertyMapper, set_attribute
from docmap.mapping.relations import Relation, bind_relation, default_foreign_key

T = TypeVar("T")
R = TypeVar("R")

Callback = Callable[[Exception | None, Any], None]

logger = structlog.get_logger(__name__)


class Mapper(Generic[T]):
    """Maps a declared set of properties between models and documents.

    Args:
        model_type: Class being mapped.
        collection: Store collection handle (see adapters.protocol.Collection).
        props: Properties written to the store. The identity is never one of them.
        identity: Identity attribute on the model, assigned by the store on first
            insert. It is translated to and from the collection's own
            ``identity_field`` when the two differ.
    """

    def __init__(
        self,
        model_type: type[T],
        collection: Any,
        props: Iterable[str],
        *,
        identity: str = "_id",
    ) -> None:
        self._properties: PropertyMapper[T] = PropertyMapper(model_type, props, identity)
        self._collection = collection
        self._store_identity: str = collection.identity_field
        self.events = EventHub()
        self.scopes = ScopeEngine()
        self._relations: list[Relation] = []
        self._overridden: set[str] = set()

    # --- introspection ---

    @property
    def model_type(self) -> type[T]:
        return self._properties.model_type

    @property
    def collection(self) -> Any:
        return self._collection

    @property
    def collection_name(self) -> str:
        return str(getattr(self._collection, "name", "?"))

    @property
    def props(self) -> list[str]:
        return self._properties.props

    @property
    def identity(self) -> str:
        return self._properties.identity

    @property
    def relations(self) -> list[Relation]:
        return list(self._relations)

    def add_property(self, name: str) -> None:
        self._properties.add_property(name)

    def identity_of(self, model: Any) -> Any:
        """Return the model's identity, or None if it was never persisted."""
        return self._properties.identity_of(model)

    def on(self, name: str | LifecycleEvent, listener: Listener | None = None) -> Any:
        """Subscribe to a lifecycle event (usable as a decorator)."""
        return self.events.on(name, listener)

    # --- queries ---

    async def find(
        self,
        id_or_query: Any,
        *,
        callback: Callback | None = None,
        scope: ScopedQuery | None = None,
    ) -> T | None:
        """Find one model by identity or by predicate.

        Returns None when nothing matches.
        """
        return await self._deliver(self._find(id_or_query, scope or ScopedQuery(self)), callback)

    async def all(
        self,
        query: Mapping[str, Any] | None = None,
        options: Mapping[str, Any] | None = None,
        *,
        callback: Callback | None = None,
        scope: ScopedQuery | None = None,
    ) -> list[T]:
        """Find every matching model, in store order.

        ``options`` is passed to the store cursor (``sort``, ``limit``, ``skip``).
        """
        return await self._deliver(
            self._all(query, options, scope or ScopedQuery(self)), callback
        )

    async def count(
        self,
        query: Mapping[str, Any] | None = None,
        *,
        scope: ScopedQuery | None = None,
    ) -> int:
        predicate = self._store_predicate((scope or ScopedQuery(self)).resolve(query))
        return int(await self._call_store("count", self._collection.count, predicate))

    async def save(self, model_or_data: Any, *, callback: Callback | None = None) -> T:
        """Insert or update a model and resolve its relations.

        Plain data is converted to a model first.
        """
        return await self._deliver(self._save(model_or_data), callback)

    async def destroy(self, model: T, *, callback: Callback | None = None) -> int:
        """Remove a model by identity. Returns the removed count."""
        return await self._deliver(self._destroy(model), callback)

    async def destroy_all(self, *, callback: Callback | None = None) -> int:
        """Remove every document in the collection. Returns the removed count."""
        return await self._deliver(self._destroy_all(), callback)

    async def _find(self, id_or_query: Any, scope: ScopedQuery) -> T | None:
        predicate = self._store_predicate(scope.resolve(self._as_predicate(id_or_query)))
        logger.debug("mapper.find", collection=self.collection_name, predicate=predicate)

        doc = await self._call_store("find_one", self._collection.find_one, predicate)
        if doc is None:
            return None
        return await self._resolve_document(doc)

    async def _all(
        self,
        query: Mapping[str, Any] | None,
        options: Mapping[str, Any] | None,
        scope: ScopedQuery,
    ) -> list[T]:
        predicate = self._store_predicate(scope.resolve(query))
        docs = await self._call_store("find", self._collect, predicate, dict(options or {}))
        logger.debug(
            "mapper.all", collection=self.collection_name, predicate=predicate, count=len(docs)
        )
        if not docs:
            return []
        return await gather_all(*(self._resolve_document(doc) for doc in docs))

    async def _collect(
        self, predicate: dict[str, Any], options: dict[str, Any]
    ) -> list[dict[str, Any]]:
        return [doc async for doc in self._collection.find(predicate, options)]

    async def _resolve_document(self, doc: Mapping[str, Any]) -> T:
        chain = PendingChain()
        model = self.to_model(doc, chain)
        return await self._drain(chain, model)

    async def _save(self, model_or_data: Any) -> T:
        model = self._coerce(model_or_data)
        chain = PendingChain()
        doc = self.to_doc(model)
        self._emit(LifecycleEvent.SAVING, model, doc, chain)

        identity = self.identity_of(model)
        if identity is not None:
            self._emit(LifecycleEvent.UPDATING, model, doc, chain)
            await self._call_store("update_by_id", self._collection.update_by_id, identity, doc)
            logger.debug("mapper.updated", collection=self.collection_name, identity=identity)
            self._emit(LifecycleEvent.UPDATED, model, doc, chain)
        else:
            self._emit(LifecycleEvent.CREATING, model, doc, chain)
            stored = await self._call_store("insert", self._collection.insert, doc)
            identity = stored[self._store_identity]
            set_attribute(model, self.identity, identity)
            logger.debug("mapper.created", collection=self.collection_name, identity=identity)
            self._emit(LifecycleEvent.CREATED, model, doc, chain)

        self._emit(LifecycleEvent.SAVED, model, doc, chain)
        return await self._drain(chain, model)

    async def _destroy(self, model: T) -> int:
        self._emit(LifecycleEvent.DESTROYING, model)
        identity = self.identity_of(model)
        removed = 0
        # A model that was never saved has nothing to remove
        if identity is not None:
            removed = int(
                await self._call_store("remove_by_id", self._collection.remove_by_id, identity)
            )
        logger.debug(
            "mapper.destroyed", collection=self.collection_name, identity=identity, removed=removed
        )
        self._emit(LifecycleEvent.DESTROYED, model)
        return removed

    async def _destroy_all(self) -> int:
        removed = int(await self._call_store("remove", self._collection.remove, {}))
        logger.debug("mapper.destroy_all", collection=self.collection_name, removed=removed)
        return removed

    # --- scopes ---

    def scope(self, name: str, query: Mapping[str, Any] | QueryBuilder) -> None:
        """Register a named scope reachable as ``mapper.<name>(*args)``.

        The scope is also reachable on the Repository handle and on every
        ScopedQuery view, so it may not shadow their attributes either.

        Raises:
            ScopeNameError: If ``name`` would shadow a mapper, repository or
                scoped query attribute.
        """
        from docmap.repository.base import Repository

        if (
            name.startswith("_")
            or name in vars(self)
            or any(hasattr(cls, name) for cls in (type(self), Repository, ScopedQuery))
        ):
            raise ScopeNameError(name)
        self.scopes.register(name, query)

    def scope_default(self, query: Mapping[str, Any]) -> None:
        """Merge ``query`` into the default scope applied to every find/all."""
        self.scopes.merge_default(query)

    def scoped(self, name: str, *args: Any, **kwargs: Any) -> ScopedQuery:
        """Start a scope chain with the named scope."""
        return ScopedQuery(self).scoped(name, *args, **kwargs)

    def query(self) -> ScopedQuery:
        """An empty scope chain (default scope only)."""
        return ScopedQuery(self)

    def unscoped(self) -> ScopedQuery:
        """A scope chain that ignores the default scope."""
        return ScopedQuery(self, use_default=False)

    def __getattr__(self, name: str) -> Any:
        scopes = self.__dict__.get("scopes")
        if not name.startswith("_") and scopes is not None and scopes.has(name):
            return functools.partial(self.scoped, name)
        raise AttributeError(f"{type(self).__name__!r} object has no attribute or scope {name!r}")

    # --- relations ---

    def contains_one(self, target: Mapper[Any], prop: str) -> Relation:
        """Embed one ``target`` document under ``prop``."""
        return self._relate(RelationKind.CONTAINS_ONE, target, prop)

    def contains_many(self, target: Mapper[Any], prop: str) -> Relation:
        """Embed a list of ``target`` documents under ``prop``."""
        return self._relate(RelationKind.CONTAINS_MANY, target, prop)

    def finds_one(self, target: Mapper[Any], prop: str, foreign_key: str | None = None) -> Relation:
        """One ``target`` document that stores this model's identity in ``foreign_key``."""
        return self._relate(RelationKind.FINDS_ONE, target, prop, foreign_key)

    def finds_many(
        self, target: Mapper[Any], prop: str, foreign_key: str | None = None
    ) -> Relation:
        """Many ``target`` documents that store this model's identity in ``foreign_key``."""
        return self._relate(RelationKind.FINDS_MANY, target, prop, foreign_key)

    def has_one(self, target: Mapper[Any], prop: str) -> Relation:
        """This document stores one ``target`` identity under ``prop``."""
        return self._relate(RelationKind.HAS_ONE, target, prop)

    def has_many(self, target: Mapper[Any], prop: str) -> Relation:
        """This document stores a list of ``target`` identities under ``prop``."""
        return self._relate(RelationKind.HAS_MANY, target, prop)

    def _relate(
        self,
        kind: RelationKind,
        target: Mapper[Any],
        prop: str,
        foreign_key: str | None = None,
    ) -> Relation:
        if kind in (RelationKind.FINDS_ONE, RelationKind.FINDS_MANY) and foreign_key is None:
            foreign_key = default_foreign_key(self.model_type)
        relation = bind_relation(Relation(kind, self, target, prop, foreign_key))
        if relation.is_embedded:
            self._overridden.add(prop)
        self._relations.append(relation)
        return relation

    # --- mapping (synchronous) ---

    def new(self, doc: Mapping[str, Any] | None = None) -> T:
        """Return an empty model instance (exists mainly to be overridden)."""
        return self._properties.new(doc)

    def to_model(self, doc: Any, chain: PendingChain | None = None) -> T | None:
        """Map a document to a model.

        Relation lookups queued while building go onto ``chain``; without a
        chain they are dropped. Instances of the model type pass through.
        """
        if doc is None:
            return None
        if isinstance(doc, self.model_type):
            return doc
        if self._store_identity != self.identity and self._store_identity in doc:
            doc = dict(doc)
            doc[self.identity] = doc.pop(self._store_identity)

        chain = chain if chain is not None else PendingChain()
        self.events.emit(MappingEvent(LifecycleEvent.BUILDING.value, doc=doc, chain=chain))
        model = self._properties.copy_into(doc, self.new(doc), exclude=self._overridden)
        self.events.emit(MappingEvent(LifecycleEvent.BUILT.value, model, doc, chain))
        return model

    def to_doc(self, model: T | None) -> dict[str, Any] | None:
        """Map a model to a document holding only the declared properties."""
        if model is None:
            return None
        return self._properties.to_doc(model)

    # --- helpers ---

    def _as_predicate(self, id_or_query: Any) -> dict[str, Any]:
        if isinstance(id_or_query, Mapping):
            return dict(id_or_query)
        return {self.identity: id_or_query}

    def _store_predicate(self, predicate: dict[str, Any]) -> dict[str, Any]:
        """Rename the model identity key to the collection's identity field."""
        if self.identity == self._store_identity or self.identity not in predicate:
            return predicate
        translated = dict(predicate)
        translated[self._store_identity] = translated.pop(self.identity)
        return translated

    async def _call_store(
        self, operation: str, method: Callable[..., Awaitable[R]], *args: Any
    ) -> R:
        """Await a collection call, wrapping foreign errors in StoreOperationError."""
        try:
            return await method(*args)
        except DocMapError:
            raise
        except Exception as e:
            raise StoreOperationError(operation, self.collection_name, str(e)) from e

    async def _drain(self, chain: PendingChain, model: Any) -> T:
        """Drain ``chain``, wrapping foreign step errors in PendingStepError."""
        try:
            return await chain.drain(model)  # type: ignore[no-any-return]
        except DocMapError:
            raise
        except Exception as e:
            raise PendingStepError(self.collection_name, str(e)) from e

    def _coerce(self, model_or_data: Any) -> T:
        if isinstance(model_or_data, self.model_type):
            return model_or_data
        if model_or_data is None:
            raise ModelConstructionError(self.model_type.__name__, "nothing to save")

        # Lookups queued while building caller data are not resolved
        scratch = PendingChain()
        model = self.to_model(model_or_data, scratch)
        scratch.discard()
        return model  # type: ignore[return-value]

    def _emit(
        self,
        name: LifecycleEvent,
        model: Any,
        doc: dict[str, Any] | None = None,
        chain: PendingChain | None = None,
    ) -> None:
        self.events.emit(MappingEvent(name.value, model, doc, chain))

    @staticmethod
    async def _deliver(operation: Awaitable[R], callback: Callback | None) -> R:
        """Await ``operation``; with a callback, hand it ``(error, result)`` instead.

        Store and pending-step failures arrive here as DocMapError. Anything
        else, listener errors included, propagates.
        """
        if callback is None:
            return await operation
        try:
            result = await operation
        except DocMapError as e:
            callback(e, None)
            return None  # type: ignore[return-value]
        callback(None, result)
        return result

    def __repr__(self) -> str:
        return f"Mapper({self.model_type.__name__}, {self.collection_name!r}, props={self.props!r})"
