"""Base class for remote resources.

Subclasses name their REST resource and declare relationships and casts::

    class User(Model):
        resource = "users"
        scopes = {"active": lambda query: query.where(status="active")}

        medias = HasMany(lambda: Media)
        company = Cast(lambda: Company)

Class-level operations start a query on the resource (``User.all()``,
``User.find(1)``, ``User.where(...)``, ``User.create({...})``,
``User.update(1, {...})``, ``User.delete(1)``); ``User.id(1)`` addresses a
record without any I/O. Instance-level operations act on the record an
instance is bound to (``user.get()``, ``user.save()``, ``user.update()``,
``user.delete()``).

Record data lives in an attribute mapping and is read either as attributes
(``user.name``) or by key (``user["name"]``). ``update``, ``delete`` and
``id`` dispatch on how they are accessed: on the class they are the
class-level operations, on an instance they act on (or return) that record.
"""

from __future__ import annotations

import copy
import dataclasses
from collections.abc import Mapping
from typing import Any, Callable, ClassVar, Optional

from pydantic import BaseModel

from fluentity.exceptions import MaterializationError
from fluentity.fluentity import Fluentity
from fluentity.metadata import ModelField, registry
from fluentity.models import HTTPMethod, HttpResponse
from fluentity.query_builder import Identifier, QueryBuilder
from fluentity.relations import HasManyRelationBuilder


class _IdField(ModelField):
    """``Model.id(value)`` on the class, the record id on an instance."""

    name = "id"

    def __get__(self, instance: Optional[Model], owner: Optional[type] = None) -> Any:
        if instance is None:
            return getattr(owner, "_with_id")
        return instance._attributes.get("id")

    def __set__(self, instance: Model, value: Any) -> None:
        instance._attributes["id"] = value
        instance._query_builder.id = value


class _Hybrid:
    """Resolve to a classmethod on the class and to a method on instances."""

    def __init__(self, class_attr: str, instance_attr: str) -> None:
        self.class_attr = class_attr
        self.instance_attr = instance_attr

    def __get__(self, instance: Optional[Model], owner: Optional[type] = None) -> Any:
        if instance is None:
            return getattr(owner, self.class_attr)
        return getattr(instance, self.instance_attr)


class Model:
    """A record of a REST resource.

    Args:
        attributes: Initial record data.
        query_builder: Request node the instance is bound to. Defaults to a
            root node on :attr:`resource`.
        fluentity: Explicit :class:`~fluentity.fluentity.Fluentity` to call
            through. Falls back to the class-level :attr:`fluentity`, then
            to the singleton.
        **fields: Additional record data.
    """

    resource: ClassVar[Optional[str]] = None
    scopes: ClassVar[dict[str, Callable[..., Any]]] = {}
    fluentity: ClassVar[Optional[Fluentity]] = None

    id = _IdField()
    update = _Hybrid("_update_record", "_update_self")
    delete = _Hybrid("_delete_record", "_delete_self")

    def __init__(
        self,
        attributes: Optional[Mapping[str, Any]] = None,
        *,
        query_builder: Optional[QueryBuilder] = None,
        fluentity: Optional[Fluentity] = None,
        **fields: Any,
    ) -> None:
        self._attributes: dict[str, Any] = {}
        self._builders: dict[str, Any] = {}
        self._fluentity = fluentity
        self._deleted = False
        self._query_builder = (
            query_builder if query_builder is not None else QueryBuilder(resource=type(self).resource)
        )
        for name, value in {**dict(attributes or {}), **fields}.items():
            self._assign(name, value)
        if "id" not in self._attributes and self._query_builder.id is not None:
            self._attributes["id"] = self._query_builder.id

    # ------------------------------------------------------------------ #
    # Class-level operations
    # ------------------------------------------------------------------ #

    @classmethod
    def query(cls) -> HasManyRelationBuilder:
        """Start a new query on :attr:`resource`."""
        return HasManyRelationBuilder(cls, fluentity=cls.fluentity)

    @classmethod
    def where(cls, conditions: Optional[Mapping[str, Any]] = None, **fields: Any) -> HasManyRelationBuilder:
        return cls.query().where(conditions, **fields)

    @classmethod
    def filter(cls, conditions: Optional[Mapping[str, Any]] = None, **fields: Any) -> HasManyRelationBuilder:
        return cls.query().filter(conditions, **fields)

    @classmethod
    def include(cls, relations: str | list[str]) -> HasManyRelationBuilder:
        return cls.query().include(relations)

    @classmethod
    async def all(cls) -> list[Model]:
        return await cls.query().all()

    @classmethod
    async def find(cls, id: Identifier) -> Model:
        return await cls.query().find(id)

    @classmethod
    async def create(cls, data: Mapping[str, Any]) -> Model:
        return await cls.query().create(data)

    @classmethod
    def _with_id(cls, value: Identifier) -> Model:
        return cls.query().id(value)

    @classmethod
    async def _update_record(
        cls,
        id: Identifier,
        data: Mapping[str, Any],
        method: HTTPMethod | str = HTTPMethod.PUT,
    ) -> Model:
        return await cls.query().update(id, data, method)

    @classmethod
    async def _delete_record(cls, id: Identifier) -> None:
        await cls.query().delete(id)

    # ------------------------------------------------------------------ #
    # Instance-level operations
    # ------------------------------------------------------------------ #

    async def get(self) -> Model:
        """Reload the record and merge the server attributes."""
        response = await self._call(self._request_node(HTTPMethod.GET))
        self._merge(response.data)
        return self

    async def save(self) -> Model:
        """``POST`` the record when it has no id, otherwise ``PUT`` it."""
        if self.id is not None and self.id != "":
            return await self._update_self()
        response = await self._call(self._request_node(HTTPMethod.POST, body=self.to_dict()))
        self._merge(response.data)
        return self

    async def _update_self(
        self,
        attributes: Optional[Mapping[str, Any]] = None,
        method: HTTPMethod | str = HTTPMethod.PUT,
    ) -> Model:
        for name, value in (attributes or {}).items():
            self._assign(name, value)
        response = await self._call(self._request_node(method, body=self.to_dict()))
        self._merge(response.data)
        return self

    async def _delete_self(self) -> None:
        await self._call(self._request_node(HTTPMethod.DELETE))
        self._deleted = True

    def reset(self, *names: str) -> Model:
        """Unset the named fields, or every declared field when none are given."""
        for name in names or tuple(registry.descriptors(type(self))):
            self._attributes.pop(name, None)
            self._builders.pop(name, None)
            if name == "id":
                self._query_builder.id = None
        return self

    def to_dict(self) -> dict[str, Any]:
        """Return the record data as plain, JSON-ready values."""
        return {name: _plain(value) for name, value in self._attributes.items()}

    # ------------------------------------------------------------------ #
    # State
    # ------------------------------------------------------------------ #

    @property
    def query_builder(self) -> QueryBuilder:
        return self._query_builder

    @property
    def deleted(self) -> bool:
        """``True`` once :meth:`delete` succeeded; the bound node is then stale."""
        return self._deleted

    def _resolve_fluentity(self, required: bool = True) -> Optional[Fluentity]:
        fluentity = self._fluentity or type(self).fluentity
        if fluentity is None and required:
            fluentity = Fluentity.get_instance()
        return fluentity

    async def _call(self, node: QueryBuilder) -> HttpResponse:
        return await self._resolve_fluentity().call(node)

    def _request_node(self, method: HTTPMethod | str, body: Any = None) -> QueryBuilder:
        node = self._query_builder
        return QueryBuilder(
            resource=node.resource,
            id=node.id,
            parent=node.parent,
            method=method,
            body=body,
        )

    def _merge(self, data: Any) -> None:
        if data is not None:
            if not isinstance(data, Mapping):
                raise MaterializationError(
                    f"Expected a single {type(self).__name__} record, got {type(data).__name__}"
                )
            for name, value in copy.deepcopy(dict(data)).items():
                self._assign(name, value)
        self._builders.clear()

    def _assign(self, name: str, value: Any) -> None:
        field = _declared_field(type(self), name)
        if field is not None:
            field.__set__(self, value)
        else:
            self._attributes[name] = value

    # ------------------------------------------------------------------ #
    # Attribute protocol
    # ------------------------------------------------------------------ #

    def __getattr__(self, name: str) -> Any:
        attributes = self.__dict__.get("_attributes")
        if attributes is not None and not name.startswith("_") and name in attributes:
            return attributes[name]
        raise AttributeError(f"{type(self).__name__!r} object has no attribute {name!r}")

    def __setattr__(self, name: str, value: Any) -> None:
        if name.startswith("_"):
            object.__setattr__(self, name, value)
        else:
            self._assign(name, value)

    def __getitem__(self, key: str) -> Any:
        field = _declared_field(type(self), key)
        if field is not None:
            return getattr(self, key)
        return self._attributes[key]

    def __setitem__(self, key: str, value: Any) -> None:
        self._assign(key, value)

    def __contains__(self, key: object) -> bool:
        return key in self._attributes

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._attributes!r})"


def _declared_field(cls: type, name: str) -> Optional[ModelField]:
    for klass in cls.__mro__:
        attr = vars(klass).get(name)
        if attr is not None:
            return attr if isinstance(attr, ModelField) else None
    return None


def _plain(value: Any) -> Any:
    if isinstance(value, Model):
        return value.to_dict()
    if isinstance(value, BaseModel):
        return value.model_dump()
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return dataclasses.asdict(value)
    if isinstance(value, list):
        return [_plain(item) for item in value]
    if isinstance(value, dict):
        return {key: _plain(item) for key, item in value.items()}
    return value
