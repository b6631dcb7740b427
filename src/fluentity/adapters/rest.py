"""REST transport built on :class:`httpx.AsyncClient`.

:class:`RestAdapter` is the concrete :class:`~fluentity.adapters.http.HttpAdapter`
used in applications. The request URL is the resolved node chain appended to
the configured base URL::

    {base_url}/{parent}[/{parent_id}]/.../{resource}[/{id}][?{query}]

Query keys and values are percent-encoded on the wire; the unencoded
``path?query`` string stays the cache key. Bodies are JSON-encoded and sent for ``POST``, ``PUT`` and ``PATCH`` only.
Error status codes are mapped onto the :mod:`fluentity.exceptions` hierarchy
and network failures become :class:`~fluentity.exceptions.ConnectionError_`.
An opt-in ``max_retries`` request option retries 5xx responses and network
failures with exponential backoff (1 s, 2 s, 4 s, ...).
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

import httpx

from fluentity.adapters.http import HttpAdapter
from fluentity.cache.cache import Clock
from fluentity.exceptions import (
    AuthError,
    ConnectionError_,
    NotFoundError,
    RequestError,
    ServerError,
)
from fluentity.models import BODY_METHODS, HttpRequest, HttpResponse

logger = logging.getLogger(__name__)


class RestAdapter(HttpAdapter):
    """HTTP adapter that talks to a JSON REST API.

    Args:
        client: Optional pre-built :class:`httpx.AsyncClient`. When omitted a
            client is created lazily from the request options and closed by
            :meth:`aclose`. An injected client is never closed by the adapter.
        clock: Optional millisecond clock forwarded to the response cache.
        **options: Any :class:`~fluentity.models.AdapterOptions` field.

    Example::

        async with RestAdapter(base_url="https://api.example.com") as adapter:
            Fluentity.initialize(adapter)
            users = await User.where(status="active").all()
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        *,
        clock: Optional[Clock] = None,
        **options: Any,
    ) -> None:
        super().__init__(clock=clock, **options)
        self._client = client
        self._owns_client = client is None

    # ------------------------------------------------------------------ #
    # Async context manager
    # ------------------------------------------------------------------ #

    async def __aenter__(self) -> RestAdapter:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the underlying client if this adapter created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    # ------------------------------------------------------------------ #
    # Transport
    # ------------------------------------------------------------------ #

    def build_url(self, request: HttpRequest) -> str:
        """Join the configured base URL and the request's relative URL.

        When the request carries query pairs only the path part of ``url`` is
        used; the pairs are sent separately so httpx can percent-encode them.
        """
        base = (self.options.base_url or "").rstrip("/")
        url = request.url.partition("?")[0] if request.params else request.url
        return f"{base}/{url.lstrip('/')}"

    async def fetch_request_handler(self, request: HttpRequest) -> HttpResponse:
        """Send *request* and decode the response body.

        Raises:
            AuthError: On 401 / 403.
            NotFoundError: On 404.
            ServerError: On 5xx after all retries are exhausted.
            RequestError: On any other 4xx.
            ConnectionError_: On network / timeout errors after all retries.
        """
        kwargs: dict[str, Any] = {
            "method": request.method.value,
            "url": self.build_url(request),
            "headers": dict(request.options.headers),
            "timeout": request.options.timeout,
        }
        if request.params:
            kwargs["params"] = list(request.params)
        if request.method in BODY_METHODS and request.body is not None:
            if isinstance(request.body, (str, bytes)):
                kwargs["content"] = request.body
            else:
                kwargs["json"] = request.body

        response = await self._execute_with_retry(kwargs, request.options.max_retries)
        self._map_response_error(response)

        return HttpResponse(
            data=_decode_body(response),
            status_code=response.status_code,
            headers=dict(response.headers),
        )

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            config = self.options.options
            self._client = httpx.AsyncClient(
                timeout=config.timeout,
                verify=config.verify_ssl,
                follow_redirects=True,
            )
            self._owns_client = True
        return self._client

    async def _execute_with_retry(self, kwargs: dict[str, Any], max_retries: int) -> httpx.Response:
        """Execute the HTTP request with exponential-backoff retry.

        Retries on 5xx status codes and connection / timeout errors up to
        *max_retries* times. The delay doubles each attempt: 1 s, 2 s, 4 s, ...
        """
        client = self._get_client()

        for attempt in range(max_retries + 1):
            try:
                response = await client.request(**kwargs)
            except (httpx.ConnectError, httpx.TimeoutException, httpx.NetworkError) as exc:
                if attempt < max_retries:
                    delay = 2 ** attempt
                    logger.debug(
                        "Connection error: %s, retrying in %ss (attempt %d/%d)",
                        exc, delay, attempt + 1, max_retries,
                    )
                    await asyncio.sleep(delay)
                    continue
                raise ConnectionError_(
                    f"Connection failed after {max_retries + 1} attempts: {exc}"
                ) from exc

            if response.status_code >= 500 and attempt < max_retries:
                delay = 2 ** attempt
                logger.debug(
                    "Server error %d, retrying in %ss (attempt %d/%d)",
                    response.status_code, delay, attempt + 1, max_retries,
                )
                await asyncio.sleep(delay)
                continue

            return response

        raise ServerError("Request failed after all retries")  # pragma: no cover

    def _map_response_error(self, response: httpx.Response) -> None:
        """Raise a typed exception for error HTTP status codes."""
        status = response.status_code
        if status < 400:
            return

        detail = _decode_body(response)
        if isinstance(detail, dict):
            msg = detail.get("message") or detail.get("error") or detail.get("detail") or ""
        elif detail is None:
            msg = ""
        else:
            msg = str(detail)[:200]

        full_msg = f"HTTP {status}: {msg}" if msg else f"HTTP {status}"

        error_cls: type[RequestError]
        if status in (401, 403):
            error_cls = AuthError
        elif status == 404:
            error_cls = NotFoundError
        elif status >= 500:
            error_cls = ServerError
        else:
            error_cls = RequestError
        raise error_cls(full_msg, status_code=status, response=response)


def _decode_body(response: httpx.Response) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text
