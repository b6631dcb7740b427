"""Relation builders: fluent query construction plus terminal operations.

A relation builder wraps a :class:`~fluentity.query_builder.QueryBuilder`
for one model class. Fluent methods (``where``, ``order_by``, ``limit`` ...)
configure that node and return the builder; terminal methods (``all``,
``find``, ``get``, ``create`` ...) are coroutines that send a request through
the adapter and hydrate model instances from the response.

Terminal operations never modify the builder's node: each one resolves a
fresh copy carrying the method, id and body it needs, so a configured
builder can be awaited any number of times.

Scopes declared on the model become builder methods::

    class User(Model):
        resource = "users"
        scopes = {"active": lambda query: query.where(status="active")}

    await User.query().active().all()   # GET users?status=active
"""

from __future__ import annotations

import copy
import functools
import logging
from collections.abc import Iterable, Mapping
from typing import TYPE_CHECKING, Any, Optional

from fluentity.exceptions import MaterializationError
from fluentity.fluentity import Fluentity
from fluentity.models import HTTPMethod, HttpResponse
from fluentity.query_builder import Identifier, QueryBuilder

if TYPE_CHECKING:
    from fluentity.model import Model

logger = logging.getLogger(__name__)


class RelationBuilder:
    """Base builder shared by single- and multi-result relations.

    Args:
        model: The model class hydrated from responses.
        query_builder: Node to configure. A new root node is created when
            omitted.
        resource: Resource name of the node; defaults to ``model.resource``.
        fluentity: Explicit :class:`~fluentity.fluentity.Fluentity` to call
            through. The singleton is looked up at call time when omitted.
    """

    def __init__(
        self,
        model: type[Model],
        query_builder: Optional[QueryBuilder] = None,
        resource: Optional[str] = None,
        fluentity: Optional[Fluentity] = None,
    ) -> None:
        self.model = model
        self.resource = resource or getattr(model, "resource", None)
        self.query_builder = query_builder if query_builder is not None else QueryBuilder()
        self.query_builder.resource = self.resource
        self._fluentity = fluentity

    def __getattr__(self, name: str) -> Any:
        model = self.__dict__.get("model")
        if model is not None and not name.startswith("_"):
            scope = (getattr(model, "scopes", None) or {}).get(name)
            if scope is not None:
                return functools.partial(scope, self)
        raise AttributeError(f"{type(self).__name__!r} object has no attribute {name!r}")

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.model.__name__}, node={self.query_builder!r})"

    # ------------------------------------------------------------------ #
    # Fluent configuration
    # ------------------------------------------------------------------ #

    def where(self, conditions: Optional[Mapping[str, Any]] = None, **fields: Any) -> RelationBuilder:
        self.query_builder.where(conditions, **fields)
        return self

    def filter(self, conditions: Optional[Mapping[str, Any]] = None, **fields: Any) -> RelationBuilder:
        self.query_builder.filter(conditions, **fields)
        return self

    def include(self, relations: str | Iterable[str]) -> RelationBuilder:
        self.query_builder.add_include(relations)
        return self

    def order_by(self, field: str, direction: str = "asc") -> RelationBuilder:
        self.query_builder.order_by(field, direction)
        return self

    def limit(self, n: int) -> RelationBuilder:
        self.query_builder.limit = n
        return self

    def offset(self, n: int) -> RelationBuilder:
        self.query_builder.offset = n
        return self

    # ------------------------------------------------------------------ #
    # Navigation and lookup
    # ------------------------------------------------------------------ #

    def id(self, value: Identifier) -> Model:
        """Return a model instance addressing ``resource/value`` without any I/O.

        The instance's node keeps this builder's parent, so relationships read
        from it nest further::

            User.id(1).medias.id(2).thumbnails   # users/1/medias/2/thumbnails
        """
        node = QueryBuilder(resource=self.resource, id=value, parent=self.query_builder.parent)
        return self.model({"id": value}, query_builder=node, fluentity=self._fluentity)

    async def find(self, id: Identifier) -> Model:
        """Fetch the record with *id* (``GET resource/id``, current query kept).

        Raises:
            MaterializationError: If the response is not a single record.
        """
        response = await self._call(self.query_builder.clone(id=id, method=HTTPMethod.GET))
        return self._hydrate(response.data, id=id)

    # ------------------------------------------------------------------ #
    # Internals
    # ------------------------------------------------------------------ #

    @property
    def fluentity(self) -> Fluentity:
        if self._fluentity is not None:
            return self._fluentity
        return Fluentity.get_instance()

    async def _call(self, node: QueryBuilder) -> HttpResponse:
        return await self.fluentity.call(node)

    def _request_node(
        self,
        method: HTTPMethod | str,
        id: Optional[Identifier] = None,
        body: Any = None,
    ) -> QueryBuilder:
        """A bare node on this builder's path, without query, sort or pagination."""
        return QueryBuilder(
            resource=self.resource,
            id=id,
            parent=self.query_builder.parent,
            method=method,
            body=body,
        )

    def _hydrate(self, data: Any, id: Optional[Identifier] = None) -> Model:
        if data is None:
            data = {}
        if not isinstance(data, Mapping):
            raise MaterializationError(
                f"Expected a single {self.model.__name__} record, got {type(data).__name__}"
            )
        attributes = copy.deepcopy(dict(data))
        if id is not None:
            attributes.setdefault("id", id)
        node = QueryBuilder(
            resource=self.resource,
            id=attributes.get("id"),
            parent=self.query_builder.parent,
        )
        return self.model(attributes, query_builder=node, fluentity=self._fluentity)

    def _hydrate_many(self, data: Any) -> list[Model]:
        if data is None:
            return []
        if not isinstance(data, list):
            raise MaterializationError(
                f"Expected a list of {self.model.__name__} records, got {type(data).__name__}"
            )
        logger.debug("Hydrating %d %s records", len(data), self.model.__name__)
        return [self._hydrate(item) for item in data]


class HasOneRelationBuilder(RelationBuilder):
    """Builder for a single related record addressed by the bound node itself."""

    async def get(self) -> Model:
        """``GET`` the related record."""
        response = await self._call(self.query_builder.clone(method=HTTPMethod.GET))
        return self._hydrate(response.data, id=self.query_builder.id)

    async def update(self, data: Mapping[str, Any], method: HTTPMethod | str = HTTPMethod.PUT) -> Model:
        """Send *data* to the related record with ``PUT`` (or *method*)."""
        node = self._request_node(method, id=self.query_builder.id, body=dict(data))
        response = await self._call(node)
        return self._hydrate(response.data, id=self.query_builder.id)

    async def delete(self) -> None:
        """``DELETE`` the related record."""
        await self._call(self._request_node(HTTPMethod.DELETE, id=self.query_builder.id))


class HasManyRelationBuilder(RelationBuilder):
    """Builder for a collection of related records.

    Example::

        medias = await User.id(1).medias.where(type="image").order_by("size", "desc").all()
        media = await User.id(1).medias.create({"name": "cover.png"})
    """

    def page(self, n: int) -> HasManyRelationBuilder:
        self.query_builder.page = n
        return self

    def per_page(self, n: int) -> HasManyRelationBuilder:
        self.query_builder.per_page = n
        return self

    async def all(self) -> list[Model]:
        """``GET`` the collection with the current query.

        Raises:
            MaterializationError: If the response data is not a list.
        """
        response = await self._call(self.query_builder.clone(method=HTTPMethod.GET))
        return self._hydrate_many(response.data)

    async def paginate(self, page: int = 1, per_page: int = 10) -> list[Model]:
        """``GET`` one page of the collection (``page=N&per_page=M``)."""
        self.page(page).per_page(per_page)
        return await self.all()

    async def create(self, data: Mapping[str, Any]) -> Model:
        """``POST`` *data* to the collection. Query, sort and pagination are not sent.

        When the server answers without a body, the instance is built from
        *data* itself.
        """
        body = dict(data)
        response = await self._call(self._request_node(HTTPMethod.POST, body=body))
        return self._hydrate(body if response.data is None else response.data)

    async def update(
        self,
        id: Identifier,
        data: Mapping[str, Any],
        method: HTTPMethod | str = HTTPMethod.PUT,
    ) -> Model:
        """Send *data* to ``resource/id`` with ``PUT`` (or *method*)."""
        response = await self._call(self._request_node(method, id=id, body=dict(data)))
        return self._hydrate(response.data, id=id)

    async def delete(self, id: Identifier) -> None:
        """``DELETE resource/id``."""
        await self._call(self._request_node(HTTPMethod.DELETE, id=id))
