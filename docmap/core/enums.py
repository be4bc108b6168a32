"""Store backend, lifecycle event, and relation kind enumerations."""

from __future__ import annotations

from enum import Enum


class StoreBackend(Enum):
    """Supported document store backends."""

    MEMORY = "memory"
    MONGODB = "mongodb"


class LifecycleEvent(str, Enum):
    """Events emitted by a mapper while moving between models and documents."""

    BUILDING = "building"
    BUILT = "built"
    SAVING = "saving"
    CREATING = "creating"
    CREATED = "created"
    UPDATING = "updating"
    UPDATED = "updated"
    SAVED = "saved"
    DESTROYING = "destroying"
    DESTROYED = "destroyed"


class RelationKind(str, Enum):
    """Relation strategies.

    contains*: child document nested inside the parent document.
    finds*: child documents store a foreign key pointing at the parent.
    has*: parent document stores the child identity value(s).
    """

    CONTAINS_ONE = "containsOne"
    CONTAINS_MANY = "containsMany"
    FINDS_ONE = "findsOne"
    FINDS_MANY = "findsMany"
    HAS_ONE = "hasOne"
    HAS_MANY = "hasMany"

    @property
    def is_many(self) -> bool:
        return self in (RelationKind.CONTAINS_MANY, RelationKind.FINDS_MANY, RelationKind.HAS_MANY)

    @property
    def is_embedded(self) -> bool:
        return self in (RelationKind.CONTAINS_ONE, RelationKind.CONTAINS_MANY)
