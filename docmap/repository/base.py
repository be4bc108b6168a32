"""Repository handle.

Thin typed wrapper over a Mapper, returned by ``Service.map``. Callers use
the handle instead of methods patched onto their model classes.
"""

from __future__ import annotations

import functools
from collections.abc import Mapping
from typing import Any, Generic, TypeVar

from docmap.core.enums import LifecycleEvent
from docmap.core.events import Listener
from docmap.core.exceptions import ScopeNameError
from docmap.core.scope import QueryBuilder, ScopedQuery
from docmap.mapping.mapper import Callback, Mapper
from docmap.mapping.relations import Relation

T = TypeVar("T")


def _mapper_of(target: Repository[Any] | Mapper[Any]) -> Mapper[Any]:
    if isinstance(target, Repository):
        return target.mapper
    return target


class Repository(Generic[T]):
    """Data access handle for one mapped model type."""

    def __init__(self, mapper: Mapper[T]) -> None:
        self.mapper = mapper

    @property
    def model_type(self) -> type[T]:
        return self.mapper.model_type

    # --- class-level operations ---

    async def find(self, id_or_query: Any, *, callback: Callback | None = None) -> T | None:
        return await self.mapper.find(id_or_query, callback=callback)

    async def all(
        self,
        query: Mapping[str, Any] | None = None,
        options: Mapping[str, Any] | None = None,
        *,
        callback: Callback | None = None,
    ) -> list[T]:
        return await self.mapper.all(query, options, callback=callback)

    async def count(self, query: Mapping[str, Any] | None = None) -> int:
        return await self.mapper.count(query)

    async def create(self, model_or_data: Any, *, callback: Callback | None = None) -> T:
        """Save a model or plain data as a new document."""
        return await self.mapper.save(model_or_data, callback=callback)

    async def destroy_all(self, *, callback: Callback | None = None) -> int:
        return await self.mapper.destroy_all(callback=callback)

    # --- instance-level operations ---

    async def save(self, model: T, *, callback: Callback | None = None) -> T:
        return await self.mapper.save(model, callback=callback)

    async def destroy(self, model: T, *, callback: Callback | None = None) -> int:
        return await self.mapper.destroy(model, callback=callback)

    def id(self, model: T) -> Any:
        """Identity of ``model``, None until it is first saved."""
        return self.mapper.identity_of(model)

    # --- hooks, scopes, relations ---

    def on(self, name: str | LifecycleEvent, listener: Listener | None = None) -> Any:
        return self.mapper.on(name, listener)

    def scope(self, name: str, query: Mapping[str, Any] | QueryBuilder) -> None:
        if hasattr(type(self), name) or name in vars(self):
            raise ScopeNameError(name)
        self.mapper.scope(name, query)

    def scope_default(self, query: Mapping[str, Any]) -> None:
        self.mapper.scope_default(query)

    def scoped(self, name: str, *args: Any, **kwargs: Any) -> ScopedQuery:
        return self.mapper.scoped(name, *args, **kwargs)

    def query(self) -> ScopedQuery:
        return self.mapper.query()

    def unscoped(self) -> ScopedQuery:
        return self.mapper.unscoped()

    def contains_one(self, target: Repository[Any] | Mapper[Any], prop: str) -> Relation:
        return self.mapper.contains_one(_mapper_of(target), prop)

    def contains_many(self, target: Repository[Any] | Mapper[Any], prop: str) -> Relation:
        return self.mapper.contains_many(_mapper_of(target), prop)

    def finds_one(
        self, target: Repository[Any] | Mapper[Any], prop: str, foreign_key: str | None = None
    ) -> Relation:
        return self.mapper.finds_one(_mapper_of(target), prop, foreign_key)

    def finds_many(
        self, target: Repository[Any] | Mapper[Any], prop: str, foreign_key: str | None = None
    ) -> Relation:
        return self.mapper.finds_many(_mapper_of(target), prop, foreign_key)

    def has_one(self, target: Repository[Any] | Mapper[Any], prop: str) -> Relation:
        return self.mapper.has_one(_mapper_of(target), prop)

    def has_many(self, target: Repository[Any] | Mapper[Any], prop: str) -> Relation:
        return self.mapper.has_many(_mapper_of(target), prop)

    def __getattr__(self, name: str) -> Any:
        mapper = self.__dict__.get("mapper")
        if not name.startswith("_") and mapper is not None and mapper.scopes.has(name):
            return functools.partial(mapper.scoped, name)
        raise AttributeError(f"{type(self).__name__!r} object has no attribute or scope {name!r}")

    def __repr__(self) -> str:
        return f"Repository({self.mapper!r})"
