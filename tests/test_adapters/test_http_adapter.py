"""Tests for the HttpAdapter pipeline: options, cache and interceptors."""

from __future__ import annotations

import logging
from unittest.mock import AsyncMock, MagicMock

import pytest

from fluentity.adapters.http import HttpAdapter
from fluentity.exceptions import ConfigurationError, NotFoundError, RequestError
from fluentity.models import HTTPMethod, HttpRequest, HttpResponse
from fluentity.query_builder import QueryBuilder

BASE_URL = "https://api.example.com"


class RecordingAdapter(HttpAdapter):
    """HttpAdapter whose transport records requests and echoes their URL."""

    def __init__(self, **options) -> None:
        super().__init__(**options)
        self.sent: list[HttpRequest] = []

    async def fetch_request_handler(self, request: HttpRequest) -> HttpResponse:
        self.sent.append(request)
        return HttpResponse(data={"url": request.url}, status_code=200)


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def _users() -> QueryBuilder:
    return QueryBuilder(resource="users")


# ------------------------------------------------------------------ #
# Options
# ------------------------------------------------------------------ #


class TestOptions:
    def test_base_url_required(self) -> None:
        with pytest.raises(ConfigurationError, match="baseUrl is required"):
            RecordingAdapter()

    def test_camel_case_aliases(self) -> None:
        adapter = RecordingAdapter(baseUrl=BASE_URL, cacheOptions={"enabled": True, "ttl": 10})
        assert adapter.options.base_url == BASE_URL
        assert adapter.options.cache_options.enabled is True
        assert adapter.cache.ttl == 10

    def test_unknown_option_raises(self) -> None:
        with pytest.raises(ConfigurationError, match="Invalid adapter options"):
            RecordingAdapter(base_url=BASE_URL, retries=3)

    def test_unknown_cache_option_raises(self) -> None:
        with pytest.raises(ConfigurationError, match="Invalid adapter options"):
            RecordingAdapter(base_url=BASE_URL, cacheOptions={"TTL": 5})

    def test_request_option_aliases(self) -> None:
        adapter = RecordingAdapter(base_url=BASE_URL, options={"maxRetries": 2, "verifySsl": False})
        assert adapter.options.options.max_retries == 2
        assert adapter.options.options.verify_ssl is False
        assert adapter.options.options.model_extra == {}

    def test_request_option_extras_are_kept(self) -> None:
        adapter = RecordingAdapter(base_url=BASE_URL, options={"proxy": "http://proxy:3128"})
        assert adapter.options.options.model_extra == {"proxy": "http://proxy:3128"}

    def test_configure_merges_shallowly(self) -> None:
        adapter = RecordingAdapter(base_url=BASE_URL, options={"timeout": 5})
        result = adapter.configure(cache_options={"enabled": True, "ttl": 1000})

        assert result is adapter
        assert adapter.options.base_url == BASE_URL
        assert adapter.options.options.timeout == 5
        assert adapter.options.cache_options.ttl == 1000
        assert adapter.cache.ttl == 1000

    def test_configure_replaces_nested_value(self) -> None:
        adapter = RecordingAdapter(base_url=BASE_URL, options={"timeout": 5, "verify_ssl": False})
        adapter.configure(options={"timeout": 9})
        assert adapter.options.options.timeout == 9
        assert adapter.options.options.verify_ssl is True

    def test_configure_invalid_value_raises(self) -> None:
        adapter = RecordingAdapter(base_url=BASE_URL)
        with pytest.raises(ConfigurationError):
            adapter.configure(cache_options={"ttl": -1})

    def test_from_options(self) -> None:
        options = RecordingAdapter(base_url=BASE_URL, options={"timeout": 3}).options
        adapter = RecordingAdapter.from_options(options)
        assert adapter.options.options.timeout == 3

    @pytest.mark.asyncio
    async def test_call_checks_base_url(self) -> None:
        adapter = RecordingAdapter(base_url=BASE_URL)
        adapter.options.base_url = None
        with pytest.raises(ConfigurationError, match="baseUrl is required"):
            await adapter.call(_users())


# ------------------------------------------------------------------ #
# Request building
# ------------------------------------------------------------------ #


class TestBuildRequest:
    @pytest.mark.asyncio
    async def test_request_fields(self) -> None:
        adapter = RecordingAdapter(base_url=BASE_URL)
        node = QueryBuilder(resource="medias", id=2, parent=QueryBuilder(resource="users", id=1))
        node.method = HTTPMethod.PUT
        node.body = {"name": "cover"}

        await adapter.call(node)

        request = adapter.sent[0]
        assert request.url == "users/1/medias/2"
        assert request.method is HTTPMethod.PUT
        assert request.body == {"name": "cover"}
        assert adapter.last_request is request

    @pytest.mark.asyncio
    async def test_request_options_are_copied(self) -> None:
        adapter = RecordingAdapter(base_url=BASE_URL)
        await adapter.call(_users())
        adapter.sent[0].options.headers["X-Test"] = "1"
        assert "X-Test" not in adapter.options.options.headers

    @pytest.mark.asyncio
    async def test_missing_resource_raises(self) -> None:
        adapter = RecordingAdapter(base_url=BASE_URL)
        with pytest.raises(ConfigurationError, match="resource name required"):
            await adapter.call(QueryBuilder())


# ------------------------------------------------------------------ #
# Cache
# ------------------------------------------------------------------ #


class TestCache:
    @pytest.mark.asyncio
    async def test_disabled_cache_executes_every_time(self) -> None:
        adapter = RecordingAdapter(base_url=BASE_URL)
        await adapter.call(_users())
        await adapter.call(_users())
        assert len(adapter.sent) == 2
        assert len(adapter.cache) == 0

    @pytest.mark.asyncio
    async def test_enabled_cache_serves_second_call(self) -> None:
        adapter = RecordingAdapter(base_url=BASE_URL, cache_options={"enabled": True})
        first = await adapter.call(_users())
        second = await adapter.call(_users())
        assert len(adapter.sent) == 1
        assert second is first

    @pytest.mark.asyncio
    async def test_cache_is_keyed_by_url(self) -> None:
        adapter = RecordingAdapter(base_url=BASE_URL, cache_options={"enabled": True})
        await adapter.call(_users())
        await adapter.call(_users().where(status="active"))
        assert [r.url for r in adapter.sent] == ["users", "users?status=active"]

    @pytest.mark.asyncio
    async def test_entry_expires_after_ttl(self) -> None:
        clock = FakeClock()
        adapter = RecordingAdapter(
            base_url=BASE_URL, cache_options={"enabled": True, "ttl": 100}, clock=clock,
        )
        await adapter.call(_users())
        clock.now = 100
        await adapter.call(_users())
        assert len(adapter.sent) == 2

    @pytest.mark.asyncio
    async def test_clear_cache(self) -> None:
        adapter = RecordingAdapter(base_url=BASE_URL, cache_options={"enabled": True})
        await adapter.call(_users())
        assert adapter.clear_cache() is adapter
        await adapter.call(_users())
        assert len(adapter.sent) == 2

    @pytest.mark.asyncio
    async def test_cache_hit_skips_interceptors(self) -> None:
        request_interceptor = MagicMock(return_value=None)
        adapter = RecordingAdapter(
            base_url=BASE_URL,
            cache_options={"enabled": True},
            request_interceptor=request_interceptor,
        )
        await adapter.call(_users())
        await adapter.call(_users())
        assert request_interceptor.call_count == 1

    @pytest.mark.asyncio
    async def test_cache_activity_is_logged(self, caplog: pytest.LogCaptureFixture) -> None:
        caplog.set_level(logging.DEBUG, logger="fluentity")
        adapter = RecordingAdapter(base_url=BASE_URL, cache_options={"enabled": True})
        await adapter.call(_users())
        await adapter.call(_users())
        assert "Cache miss: GET users" in caplog.text
        assert "Cache hit: GET users" in caplog.text

    @pytest.mark.asyncio
    async def test_method_is_not_part_of_key(self) -> None:
        adapter = RecordingAdapter(base_url=BASE_URL, cache_options={"enabled": True})
        await adapter.call(QueryBuilder(resource="users", id=1))
        await adapter.call(QueryBuilder(resource="users", id=1, method="DELETE"))
        assert len(adapter.sent) == 1


# ------------------------------------------------------------------ #
# Interceptors and custom handlers
# ------------------------------------------------------------------ #


class TestInterceptors:
    @pytest.mark.asyncio
    async def test_request_interceptor_mutates(self) -> None:
        def add_auth(request: HttpRequest) -> None:
            request.options.headers["Authorization"] = "Bearer token"

        adapter = RecordingAdapter(base_url=BASE_URL, request_interceptor=add_auth)
        await adapter.call(_users())
        assert adapter.sent[0].options.headers["Authorization"] == "Bearer token"

    @pytest.mark.asyncio
    async def test_request_interceptor_replaces(self) -> None:
        async def rewrite(request: HttpRequest) -> HttpRequest:
            return HttpRequest(url="admins", method=request.method, options=request.options)

        adapter = RecordingAdapter(base_url=BASE_URL, request_interceptor=rewrite)
        await adapter.call(_users())
        assert adapter.sent[0].url == "admins"
        assert adapter.last_request.url == "admins"

    @pytest.mark.asyncio
    async def test_response_interceptor_replaces(self) -> None:
        def unwrap(response: HttpResponse) -> HttpResponse:
            return HttpResponse(data=response.data["url"], status_code=response.status_code)

        adapter = RecordingAdapter(base_url=BASE_URL, response_interceptor=unwrap)
        response = await adapter.call(_users())
        assert response.data == "users"

    @pytest.mark.asyncio
    async def test_cache_stores_intercepted_response(self) -> None:
        adapter = RecordingAdapter(
            base_url=BASE_URL,
            cache_options={"enabled": True},
            response_interceptor=AsyncMock(return_value=HttpResponse(data="wrapped")),
        )
        await adapter.call(_users())
        assert adapter.cache.get("users").data == "wrapped"

    @pytest.mark.asyncio
    async def test_request_handler_replaces_transport(self) -> None:
        handler = AsyncMock(return_value=HttpResponse(data=[1, 2]))
        adapter = RecordingAdapter(base_url=BASE_URL, request_handler=handler)

        response = await adapter.call(_users())

        assert response.data == [1, 2]
        assert adapter.sent == []
        handler.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_plain_handler_result_is_wrapped(self) -> None:
        adapter = RecordingAdapter(base_url=BASE_URL, request_handler=lambda request: {"id": 1})
        response = await adapter.call(_users())
        assert isinstance(response, HttpResponse)
        assert response.data == {"id": 1}


class TestErrors:
    @pytest.mark.asyncio
    async def test_foreign_exception_is_wrapped(self) -> None:
        def fail(request: HttpRequest) -> None:
            raise ValueError("socket closed")

        adapter = RecordingAdapter(base_url=BASE_URL, request_handler=fail)
        with pytest.raises(RequestError, match="socket closed") as exc_info:
            await adapter.call(_users())
        assert isinstance(exc_info.value.__cause__, ValueError)

    @pytest.mark.asyncio
    async def test_fluentity_errors_pass_through(self) -> None:
        error = NotFoundError("HTTP 404", status_code=404)
        adapter = RecordingAdapter(base_url=BASE_URL, request_handler=AsyncMock(side_effect=error))
        with pytest.raises(NotFoundError) as exc_info:
            await adapter.call(_users())
        assert exc_info.value is error

    @pytest.mark.asyncio
    async def test_error_interceptor_observes_and_error_propagates(self) -> None:
        observed = []
        adapter = RecordingAdapter(
            base_url=BASE_URL,
            request_handler=AsyncMock(side_effect=RuntimeError("boom")),
            error_interceptor=observed.append,
        )
        with pytest.raises(RequestError) as exc_info:
            await adapter.call(_users())
        assert observed == [exc_info.value]

    @pytest.mark.asyncio
    async def test_error_interceptor_sees_configuration_errors(self) -> None:
        interceptor = AsyncMock()
        adapter = RecordingAdapter(base_url=BASE_URL, error_interceptor=interceptor)
        with pytest.raises(ConfigurationError):
            await adapter.call(QueryBuilder())
        interceptor.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_failed_call_is_not_cached(self) -> None:
        handler = AsyncMock(side_effect=[RuntimeError("boom"), HttpResponse(data="ok")])
        adapter = RecordingAdapter(
            base_url=BASE_URL, cache_options={"enabled": True}, request_handler=handler,
        )
        with pytest.raises(RequestError):
            await adapter.call(_users())
        response = await adapter.call(_users())
        assert response.data == "ok"
        assert handler.await_count == 2

    @pytest.mark.asyncio
    async def test_failing_error_interceptor_keeps_original_error(
        self, caplog: pytest.LogCaptureFixture,
    ) -> None:
        def broken(error: Exception) -> None:
            raise ValueError("interceptor bug")

        adapter = RecordingAdapter(
            base_url=BASE_URL,
            request_handler=AsyncMock(side_effect=RuntimeError("network down")),
            error_interceptor=broken,
        )
        with pytest.raises(RequestError, match="network down") as exc_info:
            await adapter.call(_users())
        assert isinstance(exc_info.value.__cause__, RuntimeError)
        assert "interceptor bug" in caplog.text
