"""Shared test fixtures for fluentity.

Every test starts and ends without a :class:`~fluentity.Fluentity`
singleton. The ``handler`` / ``adapter`` / ``fluentity`` fixtures install a
:class:`~fluentity.RestAdapter` whose transport is replaced by an
``AsyncMock`` request handler, so tests can inspect the exact
:class:`~fluentity.HttpRequest` each operation produced without any I/O.
"""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from fluentity import Fluentity, HttpRequest, HttpResponse, RestAdapter

BASE_URL = "https://api.example.com"


# ---------------------------------------------------------------------------
# Singleton isolation
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_fluentity_between_tests() -> None:
    """Discard the process-wide singleton around every test."""
    Fluentity.reset()
    yield
    Fluentity.reset()


# ---------------------------------------------------------------------------
# Adapter doubles
# ---------------------------------------------------------------------------


@pytest.fixture
def handler() -> AsyncMock:
    """Request handler standing in for the HTTP transport.

    Returns ``HttpResponse(data=None)`` unless a test sets ``return_value``.
    """
    return AsyncMock(return_value=HttpResponse(data=None, status_code=200))


@pytest.fixture
def adapter(handler: AsyncMock) -> RestAdapter:
    return RestAdapter(base_url=BASE_URL, request_handler=handler)


@pytest.fixture
def fluentity(adapter: RestAdapter) -> Fluentity:
    """The initialised singleton, backed by :func:`adapter`."""
    return Fluentity.initialize(adapter)


@pytest.fixture
def sent(handler: AsyncMock):
    """Return a lookup of the :class:`HttpRequest` passed to the handler on call *index*."""

    def _sent(index: int = -1) -> HttpRequest:
        return handler.call_args_list[index].args[0]

    return _sent
