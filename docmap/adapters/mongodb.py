"""MongoDB adapter - async, using pymongo's AsyncMongoClient."""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Any

from docmap.core.connection import StoreConfig
from docmap.core.exceptions import ConnectionError, StoreOperationError  # noqa: A004


def _driver_errors() -> tuple[type[Exception], ...]:
    """Driver and BSON encoding errors, wrapped as StoreOperationError."""
    from bson.errors import BSONError
    from pymongo.errors import PyMongoError

    return (PyMongoError, BSONError)


def _coerce_id(value: Any) -> Any:
    """Convert 24-char hex strings to ObjectId, leaving everything else alone."""
    from bson import ObjectId

    if isinstance(value, str) and ObjectId.is_valid(value):
        return ObjectId(value)
    return value


def _coerce_predicate(predicate: dict[str, Any] | None) -> dict[str, Any]:
    """Apply ObjectId coercion to ``_id`` conditions in a predicate."""
    result = dict(predicate or {})
    if "_id" not in result:
        return result

    condition = result["_id"]
    if isinstance(condition, dict):
        coerced: dict[str, Any] = {}
        for op, arg in condition.items():
            if isinstance(arg, (list, tuple)):
                coerced[op] = [_coerce_id(item) for item in arg]
            else:
                coerced[op] = _coerce_id(arg)
        result["_id"] = coerced
    else:
        result["_id"] = _coerce_id(condition)
    return result


def _sort_spec(sort: Any) -> list[tuple[str, int]] | None:
    if sort is None:
        return None
    if isinstance(sort, str):
        return [(sort, 1)]
    if isinstance(sort, dict):
        return [(key, int(direction)) for key, direction in sort.items()]
    return [(key, int(direction)) for key, direction in sort]


class MongoCollection:
    """Collection handle wrapping an AsyncCollection."""

    def __init__(self, collection: Any) -> None:
        self._collection = collection

    @property
    def name(self) -> str:
        return str(self._collection.name)

    @property
    def identity_field(self) -> str:
        return "_id"

    def _error(self, operation: str, error: Exception) -> StoreOperationError:
        return StoreOperationError(operation, self.name, str(error))

    async def find_one(self, predicate: dict[str, Any]) -> dict[str, Any] | None:
        driver_errors = _driver_errors()

        try:
            return await self._collection.find_one(_coerce_predicate(predicate))
        except driver_errors as e:
            raise self._error("find_one", e) from e

    async def find(
        self,
        predicate: dict[str, Any],
        options: dict[str, Any] | None = None,
    ) -> AsyncIterator[dict[str, Any]]:
        driver_errors = _driver_errors()

        options = dict(options or {})
        kwargs: dict[str, Any] = {}
        sort = _sort_spec(options.pop("sort", None))
        if sort:
            kwargs["sort"] = sort
        for key in ("skip", "limit"):
            if options.get(key):
                kwargs[key] = int(options.pop(key))

        try:
            cursor = self._collection.find(_coerce_predicate(predicate), **kwargs)
            async for doc in cursor:
                yield doc
        except driver_errors as e:
            raise self._error("find", e) from e

    async def insert(self, doc: dict[str, Any]) -> dict[str, Any]:
        driver_errors = _driver_errors()

        stored = dict(doc)
        if stored.get("_id") is None:
            stored.pop("_id", None)
        try:
            result = await self._collection.insert_one(stored)
        except driver_errors as e:
            raise self._error("insert", e) from e
        stored["_id"] = result.inserted_id
        return stored

    async def update_by_id(self, identity: Any, doc: dict[str, Any]) -> int:
        driver_errors = _driver_errors()

        replacement = {key: value for key, value in doc.items() if key != "_id"}
        try:
            result = await self._collection.replace_one({"_id": _coerce_id(identity)}, replacement)
        except driver_errors as e:
            raise self._error("update_by_id", e) from e
        return int(result.matched_count)

    async def remove_by_id(self, identity: Any) -> int:
        driver_errors = _driver_errors()

        try:
            result = await self._collection.delete_one({"_id": _coerce_id(identity)})
        except driver_errors as e:
            raise self._error("remove_by_id", e) from e
        return int(result.deleted_count)

    async def remove(self, predicate: dict[str, Any] | None = None) -> int:
        driver_errors = _driver_errors()

        try:
            result = await self._collection.delete_many(_coerce_predicate(predicate))
        except driver_errors as e:
            raise self._error("remove", e) from e
        return int(result.deleted_count)

    async def count(self, predicate: dict[str, Any] | None = None) -> int:
        driver_errors = _driver_errors()

        try:
            return int(await self._collection.count_documents(_coerce_predicate(predicate)))
        except driver_errors as e:
            raise self._error("count", e) from e


class MongoAdapter:
    """Asynchronous MongoDB adapter using pymongo (4.13+)."""

    @property
    def identity_field(self) -> str:
        return "_id"

    def create_client(self, config: StoreConfig) -> Any:
        """Create an AsyncMongoClient. Connections are opened lazily by the driver."""
        try:
            from pymongo import AsyncMongoClient
        except ImportError as e:
            raise ConnectionError(f"pymongo is required for the mongodb driver: {e}") from e

        client = AsyncMongoClient(config.build_uri(), **config.options)
        # A database named in the URI wins over config.name
        return (client, client.get_default_database(default=config.name))

    def get_collection(self, client: Any, name: str) -> MongoCollection:
        _, database = client
        return MongoCollection(database[name])

    async def close_client(self, client: Any) -> None:
        mongo_client, _ = client
        await mongo_client.close()
