"""Mapping layer - models to documents and back, plus relations."""

from __future__ import annotations

from docmap.mapping.mapper import Mapper
from docmap.mapping.properties import PropertyMapper, field_names
from docmap.mapping.relations import Relation, bind_relation, default_foreign_key

__all__ = [
    "Mapper",
    "PropertyMapper",
    "field_names",
    "Relation",
    "bind_relation",
    "default_foreign_key",
]
