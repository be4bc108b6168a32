"""Document store adapter protocols.

Every adapter module MUST implement these protocols. The mapper only ever
talks to a Collection; the StoreAdapter owns the client lifecycle.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Any, Protocol, runtime_checkable

from docmap.core.connection import StoreConfig


@runtime_checkable
class Collection(Protocol):
    """A handle on one collection of documents."""

    @property
    def name(self) -> str:
        """Collection name."""
        ...

    @property
    def identity_field(self) -> str:
        """Key under which the store keeps each document's identity."""
        ...

    async def find_one(self, predicate: dict[str, Any]) -> dict[str, Any] | None:
        """Return the first matching document, or None."""
        ...

    def find(
        self,
        predicate: dict[str, Any],
        options: dict[str, Any] | None = None,
    ) -> AsyncIterator[dict[str, Any]]:
        """Return a lazy cursor over matching documents.

        Recognised options: ``sort``, ``limit``, ``skip``.
        """
        ...

    async def insert(self, doc: dict[str, Any]) -> dict[str, Any]:
        """Insert a document and return it with its identity assigned."""
        ...

    async def update_by_id(self, identity: Any, doc: dict[str, Any]) -> int:
        """Replace the document with the given identity. Returns matched count."""
        ...

    async def remove_by_id(self, identity: Any) -> int:
        """Remove the document with the given identity. Returns 0 or 1."""
        ...

    async def remove(self, predicate: dict[str, Any] | None = None) -> int:
        """Remove all matching documents (all documents for an empty predicate)."""
        ...

    async def count(self, predicate: dict[str, Any] | None = None) -> int:
        """Count matching documents."""
        ...


@runtime_checkable
class StoreAdapter(Protocol):
    """Store adapter protocol: client lifecycle plus collection lookup."""

    @property
    def identity_field(self) -> str:
        """Name of the identity key the store assigns on insert."""
        ...

    def create_client(self, config: StoreConfig) -> Any:
        """Create a store client."""
        ...

    def get_collection(self, client: Any, name: str) -> Collection:
        """Return a collection handle."""
        ...

    async def close_client(self, client: Any) -> None:
        """Close the client and release its resources."""
        ...
