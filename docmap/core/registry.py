"""Mapper registry - one mapper per (model type, collection) pair.

The registry is owned by a Service. Mappers live from ``Service.map`` until
``Service.close``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog

from docmap.core.exceptions import DuplicateMappingError, MapperNotFoundError

if TYPE_CHECKING:
    from docmap.mapping.mapper import Mapper

logger = structlog.get_logger(__name__)


class MapperRegistry:
    """Holds the mapper bound to each collection name."""

    def __init__(self) -> None:
        self._mappers: dict[str, Mapper[Any]] = {}

    def register(self, collection: str, mapper: Mapper[Any]) -> Mapper[Any]:
        """Register ``mapper`` for ``collection``.

        Mapping the same type onto the same collection again returns the
        existing mapper.

        Raises:
            DuplicateMappingError: If the collection is bound to another type.
        """
        existing = self._mappers.get(collection)
        if existing is not None:
            if existing.model_type is not mapper.model_type:
                raise DuplicateMappingError(
                    collection,
                    existing.model_type.__name__,
                    mapper.model_type.__name__,
                )
            logger.warning(
                "registry.remap_ignored",
                collection=collection,
                model=existing.model_type.__name__,
            )
            return existing

        self._mappers[collection] = mapper
        return mapper

    def lookup(self, model_type: type, collection: str) -> Mapper[Any] | None:
        """Return the mapper for the pair if one is registered."""
        mapper = self._mappers.get(collection)
        if mapper is not None and mapper.model_type is model_type:
            return mapper
        return None

    def get(self, collection: str) -> Mapper[Any]:
        """Look up the mapper bound to ``collection``.

        Raises:
            MapperNotFoundError: If nothing is mapped to the collection.
        """
        try:
            return self._mappers[collection]
        except KeyError:
            raise MapperNotFoundError(collection) from None

    def has(self, collection: str) -> bool:
        return collection in self._mappers

    def remove(self, collection: str) -> None:
        """Forget the mapper for ``collection`` if present."""
        self._mappers.pop(collection, None)

    def clear(self) -> None:
        self._mappers.clear()

    @property
    def collection_names(self) -> list[str]:
        """List all mapped collection names, sorted alphabetically."""
        return sorted(self._mappers.keys())

    def __len__(self) -> int:
        return len(self._mappers)
