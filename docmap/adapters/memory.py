"""In-memory adapter - dict-backed collections for tests and prototyping.

Documents are deep-copied on the way in and out so callers can never mutate
stored state. Predicates support plain equality plus a small operator set:
$eq, $ne, $gt, $gte, $lt, $lte, $in, $nin, $exists. Dotted keys address
nested documents.
"""

from __future__ import annotations

import copy
import uuid
from collections.abc import AsyncIterator, Callable
from typing import Any

from docmap.core.connection import StoreConfig
from docmap.core.exceptions import StoreOperationError

_MISSING = object()


def _resolve(doc: dict[str, Any], key: str) -> Any:
    """Look up a possibly dotted key in a document."""
    value: Any = doc
    for part in key.split("."):
        if not isinstance(value, dict) or part not in value:
            return _MISSING
        value = value[part]
    return value


def _equals(value: Any, expected: Any) -> bool:
    if value is _MISSING:
        return expected is None
    if value == expected:
        return True
    # Array fields match when any element matches
    return isinstance(value, list) and not isinstance(expected, list) and expected in value


def _compare(test: Callable[[Any, Any], bool]) -> Callable[[Any, Any], bool]:
    def check(value: Any, arg: Any) -> bool:
        if value is _MISSING or value is None:
            return False
        try:
            return test(value, arg)
        except TypeError:
            return False

    return check


def _in(value: Any, arg: Any) -> bool:
    return any(_equals(value, candidate) for candidate in arg)


_OPERATORS: dict[str, Callable[[Any, Any], bool]] = {
    "$eq": _equals,
    "$ne": lambda value, arg: not _equals(value, arg),
    "$gt": _compare(lambda value, arg: value > arg),
    "$gte": _compare(lambda value, arg: value >= arg),
    "$lt": _compare(lambda value, arg: value < arg),
    "$lte": _compare(lambda value, arg: value <= arg),
    "$in": _in,
    "$nin": lambda value, arg: not _in(value, arg),
    "$exists": lambda value, arg: (value is not _MISSING) == bool(arg),
}


def _is_operator_expression(condition: Any) -> bool:
    return (
        isinstance(condition, dict)
        and bool(condition)
        and all(isinstance(key, str) and key.startswith("$") for key in condition)
    )


def matches(doc: dict[str, Any], predicate: dict[str, Any]) -> bool:
    """Return True if ``doc`` satisfies every condition in ``predicate``.

    Raises:
        ValueError: If the predicate uses an unsupported operator.
    """
    for key, condition in predicate.items():
        value = _resolve(doc, key)
        if _is_operator_expression(condition):
            for op, arg in condition.items():
                if op not in _OPERATORS:
                    raise ValueError(f"Unsupported query operator: {op}")
                if not _OPERATORS[op](value, arg):
                    return False
        elif not _equals(value, condition):
            return False
    return True


def _normalize_sort(sort: Any) -> list[tuple[str, int]]:
    """Accept a key, a mapping, or a list of (key, direction) pairs."""
    if sort is None:
        return []
    if isinstance(sort, str):
        return [(sort, 1)]
    if isinstance(sort, dict):
        return [(key, int(direction)) for key, direction in sort.items()]
    return [(key, int(direction)) for key, direction in sort]


def _sort_documents(docs: list[dict[str, Any]], sort: Any) -> list[dict[str, Any]]:
    # Stable sorts applied from the least significant key backwards
    for key, direction in reversed(_normalize_sort(sort)):

        def sort_key(doc: dict[str, Any], key: str = key) -> tuple[bool, Any]:
            value = _resolve(doc, key)
            present = value is not _MISSING and value is not None
            return (present, value if present else 0)

        docs.sort(key=sort_key, reverse=direction < 0)
    return docs


class MemoryCollection:
    """A single in-memory collection keyed by identity in insertion order."""

    def __init__(self, name: str, identity_field: str = "_id") -> None:
        self._name = name
        self._identity_field = identity_field
        self._documents: dict[Any, dict[str, Any]] = {}

    @property
    def name(self) -> str:
        return self._name

    @property
    def identity_field(self) -> str:
        return self._identity_field

    def _select(self, predicate: dict[str, Any] | None) -> list[dict[str, Any]]:
        try:
            return [doc for doc in self._documents.values() if matches(doc, predicate or {})]
        except ValueError as e:
            raise StoreOperationError("find", self._name, str(e)) from e

    async def find_one(self, predicate: dict[str, Any]) -> dict[str, Any] | None:
        selected = self._select(predicate)
        if not selected:
            return None
        return copy.deepcopy(selected[0])

    async def find(
        self,
        predicate: dict[str, Any],
        options: dict[str, Any] | None = None,
    ) -> AsyncIterator[dict[str, Any]]:
        options = options or {}
        selected = _sort_documents(self._select(predicate), options.get("sort"))

        skip = int(options.get("skip") or 0)
        limit = int(options.get("limit") or 0)
        selected = selected[skip:]
        if limit > 0:
            selected = selected[:limit]

        for doc in selected:
            yield copy.deepcopy(doc)

    async def insert(self, doc: dict[str, Any]) -> dict[str, Any]:
        stored = copy.deepcopy(doc)
        identity = stored.get(self._identity_field)
        if identity is None:
            identity = uuid.uuid4().hex
            stored[self._identity_field] = identity
        if identity in self._documents:
            raise StoreOperationError("insert", self._name, f"duplicate identity {identity!r}")
        self._documents[identity] = stored
        return copy.deepcopy(stored)

    async def update_by_id(self, identity: Any, doc: dict[str, Any]) -> int:
        if identity not in self._documents:
            return 0
        stored = copy.deepcopy(doc)
        stored[self._identity_field] = identity
        self._documents[identity] = stored
        return 1

    async def remove_by_id(self, identity: Any) -> int:
        if self._documents.pop(identity, None) is None:
            return 0
        return 1

    async def remove(self, predicate: dict[str, Any] | None = None) -> int:
        doomed = [doc[self._identity_field] for doc in self._select(predicate)]
        for identity in doomed:
            del self._documents[identity]
        return len(doomed)

    async def count(self, predicate: dict[str, Any] | None = None) -> int:
        return len(self._select(predicate))


class MemoryClient:
    """Holds the collections of one in-memory database."""

    def __init__(self, name: str) -> None:
        self.name = name
        self.collections: dict[str, MemoryCollection] = {}


class MemoryAdapter:
    """Dict-backed store adapter. Identities are uuid4 hex strings."""

    @property
    def identity_field(self) -> str:
        return "_id"

    def create_client(self, config: StoreConfig) -> MemoryClient:
        """Create an empty in-memory database."""
        return MemoryClient(config.name)

    def get_collection(self, client: MemoryClient, name: str) -> MemoryCollection:
        """Return the named collection, creating it on first use."""
        if name not in client.collections:
            client.collections[name] = MemoryCollection(name, self.identity_field)
        return client.collections[name]

    async def close_client(self, client: MemoryClient) -> None:
        """Drop all collections."""
        client.collections.clear()
