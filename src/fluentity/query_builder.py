"""Request nodes and their resolution into concrete REST requests.

A :class:`QueryBuilder` describes one level of a REST path (``resource`` and
optional ``id``) together with the filters, pagination, sort, method and body
of the request being built. Nodes form a singly-linked chain through their
``parent`` reference: ``users/1`` -> ``medias/2`` -> ``thumbnails``. A child
only ever *reads* its parent, so several children may share one parent.

:func:`resolve` flattens a chain into a :class:`~fluentity.models.ResolvedRequest`::

    >>> users = QueryBuilder(resource="users", id=1)
    >>> medias = QueryBuilder(resource="medias", id=2, parent=users)
    >>> node = QueryBuilder(resource="thumbnails", parent=medias).order_by("size", "desc")
    >>> resolve(node).url
    'users/1/medias/2/thumbnails?sort=-size'

Query string layout (fixed order)::

    <where/filter entries>&limit=N&offset=M|page=N&per_page=M&sort=a,-b&include=x,y
"""

from __future__ import annotations

import copy
import enum
import logging
from collections.abc import Iterable, Mapping
from typing import Any, NamedTuple, Optional, Union

from fluentity.exceptions import ConfigurationError
from fluentity.models import HTTPMethod, ResolvedRequest

logger = logging.getLogger(__name__)

Identifier = Union[str, int]

_DIRECTIONS = ("asc", "desc")


class SortField(NamedTuple):
    """One ``sort`` entry: a field name and its direction (``asc``/``desc``)."""

    field: str
    direction: str = "asc"

    def encode(self) -> str:
        return f"-{self.field}" if self.direction == "desc" else self.field


class QueryBuilder:
    """A request node: one path segment plus the request being built on it.

    The two pagination pairs are mutually exclusive: assigning ``limit`` or
    ``offset`` clears ``page``/``per_page`` and vice versa, so whichever pair
    was assigned last is the one that gets serialised.

    Args:
        resource: Resource name of this path segment (e.g. ``"users"``).
        id: Identifier appended after the resource name.
        parent: The node this one is nested under.
        query: Initial filter mapping.
        method: HTTP method; ``GET`` is used when left unset.
        body: Request payload. Setting it never changes the method.
    """

    def __init__(
        self,
        resource: Optional[str] = None,
        id: Optional[Identifier] = None,
        parent: Optional[QueryBuilder] = None,
        query: Optional[Mapping[str, Any]] = None,
        method: Optional[HTTPMethod | str] = None,
        body: Any = None,
    ) -> None:
        self.resource = resource
        self.id = id
        self.parent = parent
        self.query: dict[str, Any] = dict(query or {})
        self.sort: list[SortField] = []
        self.include: list[str] = []
        self.method: Optional[HTTPMethod] = (
            HTTPMethod.coerce(method) if method is not None else None
        )
        self.body = body
        self._limit: Optional[int] = None
        self._offset: Optional[int] = None
        self._page: Optional[int] = None
        self._per_page: Optional[int] = None

    # ------------------------------------------------------------------ #
    # Pagination
    # ------------------------------------------------------------------ #

    @property
    def limit(self) -> Optional[int]:
        return self._limit

    @limit.setter
    def limit(self, value: Optional[int]) -> None:
        self._limit = value
        if value is not None:
            self._page = self._per_page = None

    @property
    def offset(self) -> Optional[int]:
        return self._offset

    @offset.setter
    def offset(self, value: Optional[int]) -> None:
        self._offset = value
        if value is not None:
            self._page = self._per_page = None

    @property
    def page(self) -> Optional[int]:
        return self._page

    @page.setter
    def page(self, value: Optional[int]) -> None:
        self._page = value
        if value is not None:
            self._limit = self._offset = None

    @property
    def per_page(self) -> Optional[int]:
        return self._per_page

    @per_page.setter
    def per_page(self, value: Optional[int]) -> None:
        self._per_page = value
        if value is not None:
            self._limit = self._offset = None

    # ------------------------------------------------------------------ #
    # Fluent configuration
    # ------------------------------------------------------------------ #

    def where(self, conditions: Optional[Mapping[str, Any]] = None, **fields: Any) -> QueryBuilder:
        """Add exact-match conditions. Shorthand for :meth:`filter`."""
        return self.filter(conditions, **fields)

    def filter(self, conditions: Optional[Mapping[str, Any]] = None, **fields: Any) -> QueryBuilder:
        """Shallow-merge *conditions* into the query mapping.

        Repeated calls accumulate; a later value for the same key wins.
        Values may be operator mappings, e.g. ``{"age": {"gt": 18}}``,
        which serialise as ``age[gt]=18``.
        """
        self.query = {**self.query, **dict(conditions or {}), **fields}
        return self

    def order_by(self, field: str, direction: str = "asc") -> QueryBuilder:
        """Append *field* to the sort list.

        Raises:
            ConfigurationError: If *direction* is not ``asc`` or ``desc``.
        """
        normalized = direction.lower()
        if normalized not in _DIRECTIONS:
            raise ConfigurationError(
                f"Invalid sort direction '{direction}' (expected 'asc' or 'desc')"
            )
        self.sort.append(SortField(field, normalized))
        return self

    def add_include(self, relations: str | Iterable[str]) -> QueryBuilder:
        """Request inclusion of one or more related resources."""
        if isinstance(relations, str):
            self.include.append(relations)
        else:
            self.include.extend(relations)
        return self

    def reset(self) -> QueryBuilder:
        """Clear query, sort, include, pagination, id, method and body.

        ``resource`` and ``parent`` identify the node itself and are kept.
        """
        self.query = {}
        self.sort = []
        self.include = []
        self._limit = None
        self._offset = None
        self._page = None
        self._per_page = None
        self.id = None
        self.method = None
        self.body = None
        return self

    # ------------------------------------------------------------------ #
    # Copies and introspection
    # ------------------------------------------------------------------ #

    def clone(self, **changes: Any) -> QueryBuilder:
        """Return a copy sharing the same ``parent`` with *changes* applied.

        Mutable containers (query, sort, include) are copied so the clone can
        be configured without touching the original.
        """
        other = copy.copy(self)
        other.query = dict(self.query)
        other.sort = list(self.sort)
        other.include = list(self.include)
        for name, value in changes.items():
            if name == "method" and value is not None:
                value = HTTPMethod.coerce(value)
            setattr(other, name, value)
        return other

    def chain(self) -> list[QueryBuilder]:
        """Return the nodes from the root down to this one."""
        nodes: list[QueryBuilder] = []
        current: Optional[QueryBuilder] = self
        while current is not None:
            nodes.append(current)
            current = current.parent
        nodes.reverse()
        return nodes

    def to_dict(self) -> dict[str, Any]:
        """Return every field that is set, as plain data."""
        data: dict[str, Any] = {
            "resource": self.resource,
            "id": self.id,
            "query": dict(self.query),
            "sort": [s.encode() for s in self.sort] or None,
            "include": list(self.include) or None,
            "limit": self._limit,
            "offset": self._offset,
            "page": self._page,
            "per_page": self._per_page,
            "method": self.method.value if self.method else None,
            "body": self.body,
            "parent": self.parent.to_dict() if self.parent else None,
        }
        return {key: value for key, value in data.items() if value is not None}

    def __repr__(self) -> str:
        return f"QueryBuilder(resource={self.resource!r}, id={self.id!r}, parent={self.parent!r})"


# --- Resolution ---


def resolve(node: QueryBuilder) -> ResolvedRequest:
    """Flatten *node* and its ancestors into a :class:`ResolvedRequest`.

    Raises:
        ConfigurationError: If any node in the chain has no resource name.
    """
    segments = []
    for current in node.chain():
        if not current.resource:
            raise ConfigurationError("resource name required")
        if _has_id(current.id):
            segments.append(f"{current.resource}/{current.id}")
        else:
            segments.append(current.resource)

    params = query_params(node)
    resolved = ResolvedRequest(
        path="/".join(segments),
        method=node.method or HTTPMethod.GET,
        query=_join(params),
        body=node.body,
        params=tuple(params),
    )
    logger.debug("Resolved %s %s", resolved.method.value, resolved.url)
    return resolved


def resolve_path(node: QueryBuilder) -> str:
    """Return only the ``/``-joined path of *node*'s chain."""
    return resolve(node).path


def to_query_string(node: QueryBuilder) -> str:
    """Serialise the query-related fields of *node* (never its ancestors)."""
    return _join(query_params(node))


def query_params(node: QueryBuilder) -> list[tuple[str, str]]:
    """Return the unencoded ``(key, value)`` query pairs of *node*, in order."""
    pairs: list[tuple[str, str]] = []
    for key, value in node.query.items():
        pairs.extend(_encode_pair(key, value))

    if node.limit is not None or node.offset is not None:
        pairs.extend(_encode_pair("limit", node.limit))
        pairs.extend(_encode_pair("offset", node.offset))
    elif node.page is not None or node.per_page is not None:
        pairs.extend(_encode_pair("page", node.page))
        pairs.extend(_encode_pair("per_page", node.per_page))

    if node.sort:
        pairs.append(("sort", ",".join(s.encode() for s in node.sort)))
    if node.include:
        pairs.append(("include", ",".join(node.include)))

    return pairs


def _join(pairs: list[tuple[str, str]]) -> str:
    return "&".join(f"{key}={value}" for key, value in pairs)


def _has_id(value: Any) -> bool:
    return value is not None and value != ""


def _encode_pair(key: str, value: Any) -> list[tuple[str, str]]:
    if value is None:
        return []
    if isinstance(value, Mapping):
        pairs: list[tuple[str, str]] = []
        for operator, operand in value.items():
            pairs.extend(_encode_pair(f"{key}[{operator}]", operand))
        return pairs
    return [(key, _encode_value(value))]


def _encode_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, enum.Enum):
        return str(value.value)
    if isinstance(value, (list, tuple)):
        return ",".join(_encode_value(item) for item in value)
    return str(value)
