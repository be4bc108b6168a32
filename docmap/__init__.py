"""docmap - object-document mapping with hooks, relations and scopes."""

from __future__ import annotations

from docmap.core.connection import StoreConfig, StoreManager
from docmap.core.enums import LifecycleEvent, RelationKind, StoreBackend
from docmap.core.events import EventHub, MappingEvent
from docmap.core.exceptions import (
    AdapterError,
    ConnectionError,  # noqa: A004
    DocMapError,
    DuplicateMappingError,
    MapperNotFoundError,
    MappingError,
    ModelConstructionError,
    PendingStepError,
    RegistryError,
    RelationError,
    ScopeError,
    ScopeNameError,
    ScopeNotFoundError,
    StoreOperationError,
)
from docmap.core.pending import PendingChain
from docmap.core.registry import MapperRegistry
from docmap.core.scope import ScopedQuery, ScopeEngine
from docmap.core.service import Service
from docmap.mapping.mapper import Mapper
from docmap.mapping.properties import PropertyMapper
from docmap.mapping.relations import Relation
from docmap.repository.base import Repository

__all__ = [
    # Connection
    "StoreConfig",
    "StoreManager",
    # Service
    "Service",
    "MapperRegistry",
    # Mapping
    "Mapper",
    "PropertyMapper",
    "Relation",
    "Repository",
    # Hooks, chains, scopes
    "EventHub",
    "MappingEvent",
    "PendingChain",
    "ScopeEngine",
    "ScopedQuery",
    # Enums
    "StoreBackend",
    "LifecycleEvent",
    "RelationKind",
    # Exceptions
    "DocMapError",
    "MappingError",
    "ModelConstructionError",
    "PendingStepError",
    "RelationError",
    "ScopeError",
    "ScopeNotFoundError",
    "ScopeNameError",
    "RegistryError",
    "MapperNotFoundError",
    "DuplicateMappingError",
    "AdapterError",
    "ConnectionError",
    "StoreOperationError",
]
