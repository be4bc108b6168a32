"""Relation bindings.

A Relation is an immutable descriptor produced when a mapper declares a
relation. Binding it installs listeners on the owning mapper's event hub:

- ``built``: populate ``parent.<prop>``, synchronously for embedded
  relations, otherwise by deferring a lookup onto the operation's chain.
- ``saving``: rewrite ``doc[<prop>]`` (embed, replace with identities, or
  drop it for foreign-key relations).
- ``saved`` (findsOne/findsMany only): defer an identity-dependent step that
  writes the parent's identity onto each child and persists it.

Everything a relation does to the target mapper (declaring the foreign key
as a mapped property) happens once, at bind time.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import structlog

from docmap.core.enums import LifecycleEvent, RelationKind
from docmap.core.events import MappingEvent
from docmap.core.exceptions import RelationError
from docmap.core.pending import gather_all
from docmap.mapping.properties import delete_attribute, set_attribute

if TYPE_CHECKING:
    from docmap.mapping.mapper import Mapper

logger = structlog.get_logger(__name__)

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


def default_foreign_key(model_type: type) -> str:
    """``BlogPost`` -> ``blog_post_id``."""
    return _CAMEL_BOUNDARY.sub("_", model_type.__name__).lower() + "_id"


@dataclass(frozen=True)
class Relation:
    """A relation between an owning (parent-side) mapper and a target mapper."""

    kind: RelationKind
    owner: Mapper[Any]
    target: Mapper[Any]
    prop: str
    foreign_key: str | None = None

    @property
    def is_many(self) -> bool:
        return self.kind.is_many

    @property
    def is_embedded(self) -> bool:
        return self.kind.is_embedded

    def __repr__(self) -> str:
        fk = f", foreign_key={self.foreign_key!r}" if self.foreign_key else ""
        return (
            f"Relation({self.kind.value}, {self.owner.collection_name!r}.{self.prop} -> "
            f"{self.target.collection_name!r}{fk})"
        )


# --- helpers ---


def _as_child_model(target: Mapper[Any], child: Any) -> Any:
    if isinstance(child, Mapping):
        return target.to_model(child)
    return child


def _child_identity(relation: Relation, child: Any) -> Any:
    """Identity of a has* child; raw identity values pass through."""
    target = relation.target
    if isinstance(child, Mapping):
        identity = child.get(target.identity)
    elif isinstance(child, target.model_type):
        identity = target.identity_of(child)
    else:
        return child

    if identity is None:
        raise RelationError(relation.kind.value, relation.prop, "child has not been persisted")
    return identity


def _require_chain(relation: Relation, event: MappingEvent) -> Any:
    if event.chain is None:
        raise RelationError(relation.kind.value, relation.prop, "event carries no pending chain")
    return event.chain


# --- embedded: containsOne / containsMany ---


def _contains_listeners(relation: Relation) -> dict[str, Callable[[MappingEvent], None]]:
    target, prop = relation.target, relation.prop

    def map_inline_to_model(event: MappingEvent) -> None:
        raw = (event.doc or {}).get(prop)
        if relation.is_many:
            value: Any = [target.to_model(item, event.chain) for item in raw or []]
        else:
            value = target.to_model(raw, event.chain)
        set_attribute(event.model, prop, value)

    def map_inline_to_doc(event: MappingEvent) -> None:
        if event.doc is None:
            return
        child = getattr(event.model, prop, None)
        if relation.is_many:
            event.doc[prop] = [target.to_doc(_as_child_model(target, c)) for c in child or []]
        else:
            event.doc[prop] = target.to_doc(_as_child_model(target, child))

    return {
        LifecycleEvent.BUILT.value: map_inline_to_model,
        LifecycleEvent.SAVING.value: map_inline_to_doc,
    }


# --- externally referenced: findsOne / findsMany ---


def _finds_listeners(relation: Relation) -> dict[str, Callable[[MappingEvent], None]]:
    owner, target, prop = relation.owner, relation.target, relation.prop
    key = relation.foreign_key
    assert key is not None

    def map_references_to_model(event: MappingEvent) -> None:
        parent = event.model
        parent_id = owner.identity_of(parent)
        if parent_id is None:
            # Built from caller data: keep whatever children the data carried
            if getattr(parent, prop, None) is None:
                set_attribute(parent, prop, [] if relation.is_many else None)
            return

        async def resolve(_: Any) -> None:
            logger.debug(
                "relation.resolve",
                kind=relation.kind.value,
                prop=prop,
                collection=target.collection_name,
            )
            if relation.is_many:
                value = await target.all({key: parent_id})
            else:
                value = await target.find({key: parent_id})
            set_attribute(parent, prop, value)

        _require_chain(relation, event).defer(resolve, label=f"{relation.kind.value}:{prop}")

    def remove_references_from_doc(event: MappingEvent) -> None:
        if event.doc is not None:
            event.doc.pop(prop, None)

    def map_references_to_docs(event: MappingEvent) -> None:
        parent = event.model

        async def persist_child(child: Any) -> Any:
            set_attribute(child, key, owner.identity_of(parent))
            try:
                return await target.save(child)
            finally:
                delete_attribute(child, key)

        async def persist(_: Any) -> None:
            children = getattr(parent, prop, None)
            if children is None:
                return
            logger.debug(
                "relation.persist",
                kind=relation.kind.value,
                prop=prop,
                collection=target.collection_name,
            )
            if relation.is_many:
                models = [_as_child_model(target, c) for c in children]
                set_attribute(parent, prop, models)
                await gather_all(*(persist_child(c) for c in models))
            else:
                model = _as_child_model(target, children)
                set_attribute(parent, prop, model)
                await persist_child(model)

        _require_chain(relation, event).defer(
            persist, requires_identity=True, label=f"{relation.kind.value}:{prop}"
        )

    return {
        LifecycleEvent.BUILT.value: map_references_to_model,
        LifecycleEvent.SAVING.value: remove_references_from_doc,
        LifecycleEvent.SAVED.value: map_references_to_docs,
    }


# --- internally referenced: hasOne / hasMany ---


def _has_listeners(relation: Relation) -> dict[str, Callable[[MappingEvent], None]]:
    target, prop = relation.target, relation.prop

    def map_reference_to_model(event: MappingEvent) -> None:
        parent = event.model
        stored = (event.doc or {}).get(prop)
        if not stored:
            set_attribute(parent, prop, [] if relation.is_many else None)
            return

        async def resolve(_: Any) -> None:
            logger.debug(
                "relation.resolve",
                kind=relation.kind.value,
                prop=prop,
                collection=target.collection_name,
            )
            if relation.is_many:
                ids = list(stored)
                children = await target.all({target.identity: {"$in": ids}})
                # Keep the order the parent stored the identities in
                position = {identity: index for index, identity in enumerate(ids)}
                children.sort(key=lambda c: position.get(target.identity_of(c), len(ids)))
                set_attribute(parent, prop, children)
            else:
                set_attribute(parent, prop, await target.find(stored))

        _require_chain(relation, event).defer(resolve, label=f"{relation.kind.value}:{prop}")

    def map_reference_to_doc(event: MappingEvent) -> None:
        if event.doc is None:
            return
        child = getattr(event.model, prop, None)
        if relation.is_many:
            event.doc[prop] = [_child_identity(relation, c) for c in child or []]
        else:
            event.doc[prop] = None if child is None else _child_identity(relation, child)

    return {
        LifecycleEvent.BUILT.value: map_reference_to_model,
        LifecycleEvent.SAVING.value: map_reference_to_doc,
    }


_LISTENER_FACTORIES: dict[RelationKind, Callable[[Relation], dict[str, Callable[[MappingEvent], None]]]] = {
    RelationKind.CONTAINS_ONE: _contains_listeners,
    RelationKind.CONTAINS_MANY: _contains_listeners,
    RelationKind.FINDS_ONE: _finds_listeners,
    RelationKind.FINDS_MANY: _finds_listeners,
    RelationKind.HAS_ONE: _has_listeners,
    RelationKind.HAS_MANY: _has_listeners,
}


def bind_relation(relation: Relation) -> Relation:
    """Install a relation's listeners on its owner and declare its foreign key on its target."""
    if relation.kind in (RelationKind.FINDS_ONE, RelationKind.FINDS_MANY):
        if not relation.foreign_key:
            raise RelationError(relation.kind.value, relation.prop, "a foreign key is required")
        relation.target.add_property(relation.foreign_key)

    for event_name, listener in _LISTENER_FACTORIES[relation.kind](relation).items():
        relation.owner.events.on(event_name, listener)

    logger.debug("relation.bound", relation=repr(relation))
    return relation
