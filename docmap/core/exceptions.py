"""docmap exception hierarchy.

Raw driver exceptions are wrapped in StoreOperationError before they reach
callers. A missing document is never an error.
"""

from __future__ import annotations


class DocMapError(Exception):
    """Base exception for all docmap errors."""


# --- Mapping ---


class MappingError(DocMapError):
    """Base for mapping errors."""


class ModelConstructionError(MappingError):
    """Raised when a model instance cannot be created for a document."""

    def __init__(self, model_type: str, detail: str) -> None:
        self.model_type = model_type
        super().__init__(f"Cannot construct {model_type}: {detail}")


class RelationError(MappingError):
    """Raised when a relation cannot be resolved or written."""

    def __init__(self, kind: str, prop: str, detail: str) -> None:
        self.kind = kind
        self.prop = prop
        super().__init__(f"{kind} relation on '{prop}': {detail}")


class PendingStepError(MappingError):
    """Raised when a deferred step fails while an operation's chain drains."""

    def __init__(self, collection: str, detail: str) -> None:
        self.collection = collection
        super().__init__(f"Pending step on '{collection}' failed: {detail}")


# --- Scopes ---


class ScopeError(DocMapError):
    """Base for scope errors."""


class ScopeNotFoundError(ScopeError):
    """Raised when a named scope is not registered on a mapper."""

    def __init__(self, scope_name: str) -> None:
        self.scope_name = scope_name
        super().__init__(f"Scope not found: '{scope_name}'")


class ScopeNameError(ScopeError):
    """Raised when a scope name would shadow an existing attribute."""

    def __init__(self, scope_name: str) -> None:
        self.scope_name = scope_name
        super().__init__(f"Scope name '{scope_name}' shadows an existing attribute")


# --- Registry ---


class RegistryError(DocMapError):
    """Base for mapper registry errors."""


class MapperNotFoundError(RegistryError):
    """Raised when no mapper is registered for a collection."""

    def __init__(self, collection: str) -> None:
        self.collection = collection
        super().__init__(f"No mapper registered for collection '{collection}'")


class DuplicateMappingError(RegistryError):
    """Raised when a collection is already mapped to a different model type."""

    def __init__(self, collection: str, existing: str, requested: str) -> None:
        self.collection = collection
        super().__init__(
            f"Collection '{collection}' is already mapped to {existing}, cannot map {requested}"
        )


# --- Adapter ---


class AdapterError(DocMapError):
    """Base for adapter errors."""


class ConnectionError(AdapterError):  # noqa: A001
    """Raised on connection failures."""


class StoreOperationError(AdapterError):
    """Raised when a store operation fails."""

    def __init__(self, operation: str, collection: str, detail: str) -> None:
        self.operation = operation
        self.collection = collection
        super().__init__(f"{operation} on '{collection}' failed: {detail}")
