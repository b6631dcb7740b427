"""Exception hierarchy for fluentity.

All exceptions inherit from :class:`FluentityError`. Errors are never
swallowed by the core: they propagate to the caller of the terminal
operation (``all()``, ``get()``, ``save()``, ...) that triggered them,
after the adapter's ``error_interceptor`` (if any) has observed them.

Subclass hierarchy::

    FluentityError
    +-- ConfigurationError     missing setup (resource name, base URL,
    |                          double initialisation, invalid options)
    +-- RequestError           the transport call failed
    |   +-- AuthError          HTTP 401 / 403
    |   +-- NotFoundError      HTTP 404
    |   +-- ServerError        HTTP 5xx
    |   +-- ConnectionError_   network / timeout failures
    +-- MaterializationError   a relation or cast could not be built from data
"""

from __future__ import annotations

from typing import Any, Optional


class FluentityError(Exception):
    """Base exception for all fluentity errors.

    Args:
        message: Human-readable error description.
    """

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ConfigurationError(FluentityError):
    """Raised when required setup is missing or invalid.

    Covers an unresolvable resource name, a missing ``base_url``,
    initialising the :class:`~fluentity.fluentity.Fluentity` singleton twice
    or using it before initialisation, and malformed configuration.
    """


class RequestError(FluentityError):
    """Raised when the adapter's external call fails.

    Args:
        message: Human-readable error description.
        status_code: HTTP status returned by the server, when there was one.
        response: The raw transport response, when there was one.
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response: Any = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.response = response


class AuthError(RequestError):
    """Raised when the API rejects the request with HTTP 401 or 403."""


class NotFoundError(RequestError):
    """Raised when the API returns HTTP 404 (resource not found)."""


class ServerError(RequestError):
    """Raised when the API returns an HTTP 5xx server error."""


class ConnectionError_(RequestError):
    """Raised on network-level failures (timeout, DNS resolution, connection refused).

    Named with a trailing underscore to avoid shadowing the built-in
    ``ConnectionError``.
    """


class MaterializationError(FluentityError):
    """Raised when response data cannot be turned into typed objects.

    Covers relation/cast factories that fail or do not return a class, cast
    targets that reject the raw value, and responses whose shape does not
    match the relation cardinality (e.g. a mapping where a list was expected).
    """
