"""HTTP adapter base: request building, response cache and interceptors.

:class:`HttpAdapter` implements the full ``call`` pipeline shared by every
HTTP-based adapter and leaves only the actual transport
(:meth:`HttpAdapter.fetch_request_handler`) to subclasses:

1. **Validation** -- a ``base_url`` must be configured.
2. **Request building** -- the node chain is resolved into an
   :class:`~fluentity.models.HttpRequest` (see
   :func:`~fluentity.query_builder.resolve`).
3. **Cache lookup** -- when ``cache_options.enabled``, a fresh entry for the
   request URL is returned without any I/O.
4. **Request interceptor** -- may mutate or replace the request.
5. **Execution** -- the configured ``request_handler`` or the subclass
   transport; sync and async callables are both accepted.
6. **Response interceptor** -- may mutate or replace the response.
7. **Cache store** -- when enabled, last write wins.
8. **Error path** -- foreign exceptions are wrapped in
   :class:`~fluentity.exceptions.RequestError`; the ``error_interceptor``
   observes the error, which is then re-raised. A failing interceptor is
   logged and never masks the original error.
"""

from __future__ import annotations

import inspect
import logging
from abc import abstractmethod
from typing import Any, Optional

from pydantic import ValidationError

from fluentity.adapters.base import Adapter
from fluentity.cache import ResponseCache
from fluentity.cache.cache import Clock
from fluentity.exceptions import ConfigurationError, FluentityError, RequestError
from fluentity.models import AdapterOptions, HttpRequest, HttpResponse
from fluentity.query_builder import QueryBuilder, resolve

logger = logging.getLogger(__name__)


async def _maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


class HttpAdapter(Adapter):
    """Base class for adapters that talk HTTP.

    Args:
        clock: Optional millisecond clock forwarded to the response cache.
        **options: Any :class:`~fluentity.models.AdapterOptions` field, by
            name or camelCase alias.

    Raises:
        ConfigurationError: If no ``base_url`` is given or an option is invalid.
    """

    def __init__(self, *, clock: Optional[Clock] = None, **options: Any) -> None:
        self.options = _merge_options(AdapterOptions(), options)
        if not self.options.base_url:
            raise ConfigurationError("baseUrl is required")
        self._cache = ResponseCache(ttl=self.options.cache_options.ttl, clock=clock)
        self._last_request: Optional[HttpRequest] = None

    @classmethod
    def from_options(cls, options: AdapterOptions, **kwargs: Any) -> HttpAdapter:
        """Build an adapter from an already validated :class:`AdapterOptions`."""
        values = {name: getattr(options, name) for name in type(options).model_fields}
        return cls(**values, **kwargs)

    # ------------------------------------------------------------------ #
    # Configuration
    # ------------------------------------------------------------------ #

    def configure(self, **options: Any) -> HttpAdapter:
        """Shallow-merge *options* into the current configuration.

        Raises:
            ConfigurationError: If a key is unknown or a value invalid.
        """
        self.options = _merge_options(self.options, options)
        self._cache.ttl = self.options.cache_options.ttl
        return self

    @property
    def cache(self) -> ResponseCache:
        """The response cache owned by this adapter."""
        return self._cache

    @property
    def last_request(self) -> Optional[HttpRequest]:
        """The most recently built request, after interception."""
        return self._last_request

    def clear_cache(self) -> HttpAdapter:
        """Remove every cached response."""
        self._cache.clear()
        return self

    # ------------------------------------------------------------------ #
    # Pipeline
    # ------------------------------------------------------------------ #

    async def call(self, query_builder: QueryBuilder) -> HttpResponse:
        """Run *query_builder* through the cache, interceptors and transport.

        Returns:
            The (possibly cached) :class:`~fluentity.models.HttpResponse`.

        Raises:
            ConfigurationError: If ``base_url`` is unset or the node chain
                lacks a resource name.
            RequestError: If the request handler fails.
        """
        try:
            if not self.options.base_url:
                raise ConfigurationError("baseUrl is required")

            request = self.build_request(query_builder)
            self._last_request = request
            cache_key = request.url
            caching = self.options.cache_options.enabled

            if caching:
                cached = self._cache.get(cache_key)
                if cached is not None:
                    logger.debug("Cache hit: %s %s", request.method.value, cache_key)
                    return cached
                logger.debug("Cache miss: %s %s", request.method.value, cache_key)

            if self.options.request_interceptor is not None:
                intercepted = await _maybe_await(self.options.request_interceptor(request))
                if intercepted is not None:
                    request = intercepted
                self._last_request = request

            handler = self.options.request_handler or self.fetch_request_handler
            response = await _maybe_await(handler(request))
            if not isinstance(response, HttpResponse):
                response = HttpResponse(data=response)

            if self.options.response_interceptor is not None:
                intercepted = await _maybe_await(self.options.response_interceptor(response))
                if intercepted is not None:
                    response = intercepted

            if caching:
                self._cache.set(cache_key, response)

            return response
        except Exception as exc:
            error = exc if isinstance(exc, FluentityError) else RequestError(str(exc) or type(exc).__name__)
            if self.options.error_interceptor is not None:
                try:
                    await _maybe_await(self.options.error_interceptor(error))
                except Exception as interceptor_exc:
                    # The original failure is re-raised below.
                    logger.warning("Error interceptor failed: %s", interceptor_exc)
            if error is exc:
                raise
            raise error from exc

    def build_request(self, query_builder: QueryBuilder) -> HttpRequest:
        """Resolve *query_builder* into a fresh :class:`HttpRequest`.

        The adapter's default request options are deep-copied so that
        interceptors can edit headers without touching the defaults.
        """
        resolved = resolve(query_builder)
        return HttpRequest(
            url=ResponseCache.make_key(resolved),
            method=resolved.method,
            params=list(resolved.params),
            body=resolved.body,
            options=self.options.options.model_copy(deep=True),
        )

    @abstractmethod
    async def fetch_request_handler(self, request: HttpRequest) -> HttpResponse:
        """Send *request* over the wire. Implemented by transports."""
        ...


def _merge_options(current: AdapterOptions, changes: dict[str, Any]) -> AdapterOptions:
    try:
        return current.merged(changes)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid adapter options: {exc}") from exc
