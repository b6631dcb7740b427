"""Canonical data shapes shared across fluentity modules.

The models fall into two groups:

**Configuration models** -- validated with Pydantic v2:
    :class:`CacheOptions`, :class:`RequestOptions` and :class:`AdapterOptions`.
    ``AdapterOptions`` accepts both ``snake_case`` field names and their
    ``camelCase`` aliases (``baseUrl``, ``cacheOptions``, ``requestInterceptor``
    ...), so configuration written for other clients can be passed verbatim.

**Request records** -- plain dataclasses threaded through the adapter pipeline:
    :class:`HTTPMethod`, :class:`ResolvedRequest`, :class:`HttpRequest` and
    :class:`HttpResponse`. Interceptors receive and may mutate the request and
    response records, so they are deliberately mutable (except
    :class:`ResolvedRequest`, which is the frozen output of
    :func:`~fluentity.query_builder.resolve`).
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class HTTPMethod(str, enum.Enum):
    """HTTP methods a request node can carry.

    ``GET`` is used when a node does not set a method explicitly.
    """

    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"
    DELETE = "DELETE"
    HEAD = "HEAD"
    OPTIONS = "OPTIONS"

    @classmethod
    def coerce(cls, value: HTTPMethod | str) -> HTTPMethod:
        """Return *value* as an :class:`HTTPMethod`, accepting any casing."""
        if isinstance(value, cls):
            return value
        return cls(str(value).upper())


# Methods that carry a request body on the wire.
BODY_METHODS = frozenset({HTTPMethod.POST, HTTPMethod.PUT, HTTPMethod.PATCH})


# --- Configuration ---


class CacheOptions(BaseModel):
    """Response cache settings for an adapter.

    ``ttl`` is expressed in **milliseconds**.
    """

    model_config = ConfigDict(extra="forbid")

    enabled: bool = Field(default=False, description="Enable response caching")
    ttl: int = Field(default=5 * 60 * 1000, ge=0, description="Cache TTL in milliseconds")


class RequestOptions(BaseModel):
    """Default per-request settings applied to every call an adapter makes.

    Fields accept their camelCase aliases (``verifySsl``, ``maxRetries``).
    Keys that match no field are preserved in ``model_extra`` so that custom
    request handlers can receive transport-specific settings.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    headers: dict[str, str] = Field(
        default_factory=lambda: {
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
    )
    timeout: float = Field(default=30.0, description="Request timeout in seconds")
    verify_ssl: bool = Field(default=True, description="Verify SSL certificates")
    max_retries: int = Field(
        default=0, ge=0, description="Transport retries on 5xx / network errors"
    )


class AdapterOptions(BaseModel):
    """Complete configuration of an HTTP adapter.

    Example::

        AdapterOptions(
            baseUrl="https://api.example.com",
            cacheOptions={"enabled": True, "ttl": 60_000},
        )
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
    )

    base_url: Optional[str] = None
    options: RequestOptions = Field(default_factory=RequestOptions)
    cache_options: CacheOptions = Field(default_factory=CacheOptions)
    request_interceptor: Optional[Callable[..., Any]] = None
    response_interceptor: Optional[Callable[..., Any]] = None
    error_interceptor: Optional[Callable[..., Any]] = None
    request_handler: Optional[Callable[..., Any]] = None

    def merged(self, changes: dict[str, Any]) -> AdapterOptions:
        """Return a copy with *changes* shallow-merged over the current values.

        Keys may be field names or their camelCase aliases. A nested value
        (``options``, ``cache_options``) replaces the current one wholesale.

        Raises:
            pydantic.ValidationError: If a key is unknown or a value invalid.
        """
        fields = type(self).model_fields
        names = {(info.alias or name): name for name, info in fields.items()}
        data = {name: getattr(self, name) for name in fields}
        for key, value in changes.items():
            data[names.get(key, key)] = value
        return type(self).model_validate(data)


# --- Request records ---


@dataclass(frozen=True)
class ResolvedRequest:
    """Flattened description of a request node chain.

    Attributes:
        path: Root-first ``resource[/id]`` segments joined with ``/``.
        method: The HTTP method (``GET`` when the node set none).
        query: Serialised query string without the leading ``?``. Keys and
            values are not percent-encoded; this is the cache-key form.
        body: The request payload, passed through untouched.
        params: The ``(key, value)`` pairs behind ``query``, in order.
    """

    path: str
    method: HTTPMethod = HTTPMethod.GET
    query: str = ""
    body: Any = None
    params: tuple[tuple[str, str], ...] = ()

    @property
    def url(self) -> str:
        """``path`` followed by ``?query`` when there is a query string."""
        if self.query:
            return f"{self.path}?{self.query}"
        return self.path


@dataclass
class HttpRequest:
    """Mutable request record handed to interceptors and request handlers.

    Attributes:
        url: Resolved ``path[?query]`` relative to the adapter's base URL.
        method: HTTP method.
        body: Request payload (serialised by the transport).
        options: Per-request settings copied from the adapter configuration.
        params: Unencoded query pairs behind the query part of ``url``.
            Transports encode these on the wire; when empty, ``url`` is
            sent as is.
    """

    url: str = ""
    method: HTTPMethod = HTTPMethod.GET
    body: Any = None
    options: RequestOptions = field(default_factory=RequestOptions)
    params: list[tuple[str, str]] = field(default_factory=list)


@dataclass
class HttpResponse:
    """Response record returned by adapters.

    Attributes:
        data: Decoded response payload (``dict``, ``list``, text or ``None``).
        status_code: HTTP status code, ``0`` when the handler did not report one.
        headers: Response headers.
    """

    data: Any = None
    status_code: int = 0
    headers: dict[str, str] = field(default_factory=dict)
