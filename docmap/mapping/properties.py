"""Property mapper - copies declared properties between documents and models.

Supports dataclasses (frozen included), Pydantic models, and plain classes.
"""

from __future__ import annotations

import dataclasses
import inspect
from collections.abc import Iterable, Mapping
from typing import Any, Generic, TypeVar

from docmap.core.exceptions import ModelConstructionError

T = TypeVar("T")


def _is_pydantic_model(cls: type) -> bool:
    """Check if a class is a Pydantic BaseModel."""
    try:
        from pydantic import BaseModel

        return isinstance(cls, type) and issubclass(cls, BaseModel)
    except ImportError:
        return False


def field_names(cls: type) -> list[str]:
    """Extract mappable attribute names from a class.

    Pydantic fields, dataclass fields, the attributes a no-argument instance
    sets in ``__init__``, or failing that the ``__init__`` parameter names.
    """
    if _is_pydantic_model(cls):
        return list(cls.model_fields.keys())  # type: ignore[attr-defined]

    if dataclasses.is_dataclass(cls):
        return [f.name for f in dataclasses.fields(cls)]

    try:
        return list(vars(cls()).keys())
    except TypeError:
        pass

    try:
        sig = inspect.signature(cls.__init__)  # type: ignore[misc]
        return [
            name
            for name, param in sig.parameters.items()
            if name != "self" and param.kind not in (param.VAR_POSITIONAL, param.VAR_KEYWORD)
        ]
    except (ValueError, TypeError):
        return []


def set_attribute(model: Any, name: str, value: Any) -> None:
    """Set an attribute, bypassing frozen dataclasses and Pydantic field checks."""
    object.__setattr__(model, name, value)


def delete_attribute(model: Any, name: str) -> None:
    """Remove an attribute if present."""
    if name in getattr(model, "__dict__", {}):
        object.__delattr__(model, name)


class PropertyMapper(Generic[T]):
    """Copies a declared, ordered property list between documents and models.

    The identity attribute is never part of the property list.

    Args:
        model_type: The class to construct from documents.
        props: Ordered property names written to documents.
        identity: Name of the identity attribute/key.
    """

    def __init__(
        self,
        model_type: type[T],
        props: Iterable[str],
        identity: str = "_id",
    ) -> None:
        self._model_type = model_type
        self._identity = identity
        self._props: list[str] = []
        for prop in props:
            self.add_property(prop)
        self._is_pydantic = _is_pydantic_model(model_type)
        self._is_dataclass = dataclasses.is_dataclass(model_type)

    @property
    def model_type(self) -> type[T]:
        return self._model_type

    @property
    def identity(self) -> str:
        return self._identity

    @property
    def props(self) -> list[str]:
        return list(self._props)

    def add_property(self, name: str) -> None:
        """Append a property unless it is already declared or is the identity."""
        if name != self._identity and name not in self._props:
            self._props.append(name)

    def new(self, doc: Mapping[str, Any] | None = None) -> T:
        """Create an empty model instance (override for custom construction)."""
        cls = self._model_type
        if self._is_pydantic:
            return cls.model_construct()  # type: ignore[attr-defined, no-any-return]

        try:
            return cls()
        except TypeError:
            pass

        try:
            instance = cls.__new__(cls)  # type: ignore[call-overload]
        except TypeError as e:
            raise ModelConstructionError(cls.__name__, str(e)) from e

        if self._is_dataclass:
            for f in dataclasses.fields(cls):  # type: ignore[arg-type]
                if f.default is not dataclasses.MISSING:
                    set_attribute(instance, f.name, f.default)
                elif f.default_factory is not dataclasses.MISSING:
                    set_attribute(instance, f.name, f.default_factory())
        return instance  # type: ignore[no-any-return]

    def copy_into(
        self,
        doc: Mapping[str, Any],
        model: T,
        exclude: Iterable[str] = (),
    ) -> T:
        """Copy every document key onto ``model`` except those in ``exclude``."""
        skipped = set(exclude)
        for key, value in doc.items():
            if key not in skipped:
                set_attribute(model, key, value)
        return model

    def to_doc(self, model: T) -> dict[str, Any]:
        """Copy the declared properties of ``model`` into a fresh document."""
        return {prop: getattr(model, prop, None) for prop in self._props}

    def identity_of(self, model: Any) -> Any:
        return getattr(model, self._identity, None)
