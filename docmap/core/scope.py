"""Query scoping.

A mapper owns a ScopeEngine holding its named scopes and its standing
default scope. Invoking a named scope never mutates the mapper: it returns
an immutable ScopedQuery carrying the accumulated transient predicate, so
each query sees only the scopes chained onto it.

Effective predicate for a query, shallow-merged with later keys winning:

    default scope -> chained scopes (in call order) -> caller predicate
"""

from __future__ import annotations

import functools
from collections.abc import Callable, Mapping
from typing import TYPE_CHECKING, Any

from docmap.core.exceptions import ScopeNotFoundError

if TYPE_CHECKING:
    from docmap.mapping.mapper import Mapper

QueryBuilder = Callable[..., Mapping[str, Any]]


def merge_predicates(*predicates: Mapping[str, Any] | None) -> dict[str, Any]:
    """Shallow-merge predicates; keys from later predicates win."""
    merged: dict[str, Any] = {}
    for predicate in predicates:
        if predicate:
            merged.update(predicate)
    return merged


class ScopeEngine:
    """Named predicate builders plus the standing default scope."""

    def __init__(self) -> None:
        self._builders: dict[str, QueryBuilder] = {}
        self._default: dict[str, Any] = {}

    def register(self, name: str, query: Mapping[str, Any] | QueryBuilder) -> None:
        """Register a literal predicate or a builder called with the scope's arguments."""
        if callable(query):
            self._builders[name] = query
        else:
            literal = dict(query)
            self._builders[name] = lambda *args, **kwargs: literal

    def has(self, name: str) -> bool:
        return name in self._builders

    @property
    def names(self) -> list[str]:
        return sorted(self._builders)

    def build(self, name: str, *args: Any, **kwargs: Any) -> dict[str, Any]:
        """Return the predicate produced by a named scope.

        Raises:
            ScopeNotFoundError: If no scope is registered under ``name``.
        """
        try:
            builder = self._builders[name]
        except KeyError:
            raise ScopeNotFoundError(name) from None
        return dict(builder(*args, **kwargs))

    def merge_default(self, query: Mapping[str, Any]) -> None:
        """Merge ``query`` into the standing default scope."""
        self._default = merge_predicates(self._default, query)

    def reset_default(self) -> None:
        self._default = {}

    @property
    def default(self) -> dict[str, Any]:
        return dict(self._default)


class ScopedQuery:
    """Immutable view of a mapper with an accumulated scope predicate.

    Named scopes are reachable as attributes and return a new view, so
    chains such as ``mapper.low().good().all()`` compose by AND-ing keys.
    """

    def __init__(
        self,
        mapper: Mapper[Any],
        predicate: Mapping[str, Any] | None = None,
        *,
        use_default: bool = True,
    ) -> None:
        self._mapper = mapper
        self._predicate = dict(predicate or {})
        self._use_default = use_default

    @property
    def predicate(self) -> dict[str, Any]:
        """The transient predicate accumulated by chained scopes."""
        return dict(self._predicate)

    def scoped(self, name: str, *args: Any, **kwargs: Any) -> ScopedQuery:
        """Return a new view with the named scope merged in."""
        query = self._mapper.scopes.build(name, *args, **kwargs)
        return ScopedQuery(
            self._mapper,
            merge_predicates(self._predicate, query),
            use_default=self._use_default,
        )

    def where(self, query: Mapping[str, Any]) -> ScopedQuery:
        """Return a new view with an ad-hoc predicate merged in."""
        return ScopedQuery(
            self._mapper,
            merge_predicates(self._predicate, query),
            use_default=self._use_default,
        )

    def unscoped(self) -> ScopedQuery:
        """Return a view that ignores the default scope."""
        return ScopedQuery(self._mapper, self._predicate, use_default=False)

    def resolve(self, query: Mapping[str, Any] | None = None) -> dict[str, Any]:
        """Compute the effective predicate for one query."""
        default = self._mapper.scopes.default if self._use_default else None
        return merge_predicates(default, self._predicate, query)

    def __getattr__(self, name: str) -> Callable[..., ScopedQuery]:
        if name.startswith("_"):
            raise AttributeError(name)
        if self._mapper.scopes.has(name):
            return functools.partial(self.scoped, name)
        raise AttributeError(f"{type(self).__name__!r} object has no attribute or scope {name!r}")

    async def find(self, id_or_query: Any, *, callback: Any = None) -> Any:
        return await self._mapper.find(id_or_query, callback=callback, scope=self)

    async def all(
        self,
        query: Mapping[str, Any] | None = None,
        options: Mapping[str, Any] | None = None,
        *,
        callback: Any = None,
    ) -> Any:
        return await self._mapper.all(query, options, callback=callback, scope=self)

    async def count(self, query: Mapping[str, Any] | None = None) -> int:
        return await self._mapper.count(query, scope=self)

    def __repr__(self) -> str:
        return f"ScopedQuery({self._mapper.collection_name!r}, {self._predicate!r})"
