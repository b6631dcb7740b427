"""Declarative field metadata for models.

Relationships and casts are declared as class attributes of a
:class:`~fluentity.model.Model` subclass::

    class User(Model):
        resource = "users"

        medias = HasMany(lambda: Media)
        libraries = HasMany(lambda: Media, "medias")
        picture = HasOne(lambda: Media)
        thumbnail = Cast(lambda: Thumbnail)

When the class is created each declaration registers an immutable
:class:`RelationDescriptor` or :class:`CastDescriptor` in the process-wide
:data:`registry`. Nothing is materialised until a field is first read on an
instance:

* a relationship read builds a relation builder nested under the instance's
  request node and memoises it, so later reads return the same object;
* a cast read turns the raw attribute value into an instance of the target
  type and stores it back, so later reads return the same instance.

Factories are zero-argument callables returning the target class, which
allows models to reference each other before both are defined. A class can
also be passed directly.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Optional, Union

from pydantic import BaseModel

from fluentity.exceptions import ConfigurationError, MaterializationError
from fluentity.query_builder import QueryBuilder
from fluentity.relations import HasManyRelationBuilder, HasOneRelationBuilder, RelationBuilder

if TYPE_CHECKING:
    from fluentity.model import Model

ONE = "one"
MANY = "many"

Factory = Callable[[], type]


@dataclass(frozen=True)
class RelationDescriptor:
    """A declared relationship: field name, cardinality, target, resource override."""

    name: str
    cardinality: str
    factory: Union[Factory, type]
    resource: Optional[str] = None

    def target(self) -> type:
        return _resolve_target(self.name, self.factory)


@dataclass(frozen=True)
class CastDescriptor:
    """A declared cast: the raw attribute is converted to the factory's type."""

    name: str
    factory: Union[Factory, type]

    def target(self) -> type:
        return _resolve_target(self.name, self.factory)


Descriptor = Union[RelationDescriptor, CastDescriptor]


class MetadataRegistry:
    """Process-wide map from ``(model class, field name)`` to a descriptor.

    Lookups walk the model's MRO, so subclasses inherit the declarations of
    their bases and may redeclare a field to override it.
    """

    def __init__(self) -> None:
        self._entries: dict[type, dict[str, Descriptor]] = {}

    def register(self, owner: type, descriptor: Descriptor) -> None:
        """Record *descriptor* for *owner*.

        Raises:
            ConfigurationError: If *owner* already declares that field.
        """
        fields = self._entries.setdefault(owner, {})
        if descriptor.name in fields:
            raise ConfigurationError(
                f"Field '{descriptor.name}' is already declared on {owner.__name__}"
            )
        fields[descriptor.name] = descriptor

    def get(self, owner: type, name: str) -> Optional[Descriptor]:
        for klass in owner.__mro__:
            descriptor = self._entries.get(klass, {}).get(name)
            if descriptor is not None:
                return descriptor
        return None

    def descriptors(self, owner: type) -> dict[str, Descriptor]:
        """Return every descriptor visible on *owner*, inherited ones included."""
        merged: dict[str, Descriptor] = {}
        for klass in reversed(owner.__mro__):
            merged.update(self._entries.get(klass, {}))
        return merged

    def relations(self, owner: type) -> dict[str, RelationDescriptor]:
        return {
            name: d for name, d in self.descriptors(owner).items()
            if isinstance(d, RelationDescriptor)
        }

    def casts(self, owner: type) -> dict[str, CastDescriptor]:
        return {
            name: d for name, d in self.descriptors(owner).items()
            if isinstance(d, CastDescriptor)
        }

    def __contains__(self, key: object) -> bool:
        if not isinstance(key, tuple) or len(key) != 2:
            return False
        owner, name = key
        return name in self._entries.get(owner, {})


registry = MetadataRegistry()


# ---------------------------------------------------------------------- #
# Field declarations
# ---------------------------------------------------------------------- #


class ModelField:
    """Base class of the data descriptors a model routes assignments to."""

    name: str = ""

    def __set__(self, instance: Model, value: Any) -> None:
        instance._attributes[self.name] = value
        instance._builders.pop(self.name, None)


class _RelationField(ModelField):
    cardinality = MANY

    def __init__(self, factory: Union[Factory, type], resource: Optional[str] = None) -> None:
        self.factory = factory
        self.resource = resource
        self.descriptor: Optional[RelationDescriptor] = None

    def __set_name__(self, owner: type, name: str) -> None:
        self.name = name
        self.descriptor = RelationDescriptor(name, self.cardinality, self.factory, self.resource)
        registry.register(owner, self.descriptor)

    def __get__(self, instance: Optional[Model], owner: Optional[type] = None) -> Any:
        if instance is None:
            return self
        builder = instance._builders.get(self.name)
        if builder is None:
            builder = self._build(instance)
            instance._builders[self.name] = builder
        return builder

    def _build(self, instance: Model) -> RelationBuilder:
        assert self.descriptor is not None
        target = self.descriptor.target()
        resource = self.descriptor.resource or getattr(target, "resource", None)
        builder_cls = HasOneRelationBuilder if self.cardinality == ONE else HasManyRelationBuilder
        return builder_cls(
            target,
            query_builder=QueryBuilder(resource=resource, parent=instance.query_builder),
            resource=resource,
            fluentity=instance._resolve_fluentity(required=False),
        )

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name!r}, resource={self.resource!r})"


class HasOne(_RelationField):
    """Single related record, reached through a :class:`HasOneRelationBuilder`."""

    cardinality = ONE


class HasMany(_RelationField):
    """Collection of related records, reached through a :class:`HasManyRelationBuilder`."""

    cardinality = MANY


BelongsTo = HasOne
BelongsToMany = HasMany


class Cast(ModelField):
    """Convert a raw attribute (or each element of a list) to a target type.

    Target construction depends on the target class: a model is built from
    the raw mapping, a pydantic model is validated, any other class is called
    with the mapping expanded as keyword arguments, or with the raw value.
    """

    def __init__(self, factory: Union[Factory, type]) -> None:
        self.factory = factory
        self.descriptor: Optional[CastDescriptor] = None

    def __set_name__(self, owner: type, name: str) -> None:
        self.name = name
        self.descriptor = CastDescriptor(name, self.factory)
        registry.register(owner, self.descriptor)

    def __get__(self, instance: Optional[Model], owner: Optional[type] = None) -> Any:
        if instance is None:
            return self
        attributes = instance._attributes
        if self.name not in attributes:
            return None
        raw = attributes[self.name]
        assert self.descriptor is not None
        value = cast_value(self.name, self.descriptor.target(), raw)
        if value is not raw:
            attributes[self.name] = value
        return value

    def __repr__(self) -> str:
        return f"Cast({self.name!r})"


# ---------------------------------------------------------------------- #
# Materialisation helpers
# ---------------------------------------------------------------------- #


def cast_value(name: str, target: type, raw: Any) -> Any:
    """Return *raw* converted to *target*, leaving it untouched when it already is one.

    Lists are converted element by element; a list whose elements are all
    converted already is returned as is.

    Raises:
        MaterializationError: If *target* rejects the value.
    """
    if raw is None or isinstance(raw, target):
        return raw
    if isinstance(raw, list):
        if all(item is None or isinstance(item, target) for item in raw):
            return raw
        return [cast_value(name, target, item) for item in raw]

    from fluentity.model import Model

    try:
        if issubclass(target, Model):
            return target(raw)
        if issubclass(target, BaseModel):
            return target.model_validate(raw)
        if isinstance(raw, Mapping):
            return target(**raw)
        return target(raw)
    except MaterializationError:
        raise
    except Exception as exc:
        raise MaterializationError(
            f"Cannot cast field '{name}' to {target.__name__}: {exc}"
        ) from exc


def _resolve_target(name: str, factory: Union[Factory, type]) -> type:
    if isinstance(factory, type):
        return factory
    try:
        target = factory()
    except Exception as exc:
        raise MaterializationError(f"Factory for field '{name}' failed: {exc}") from exc
    if not isinstance(target, type):
        raise MaterializationError(
            f"Factory for field '{name}' returned {type(target).__name__}, expected a class"
        )
    return target
