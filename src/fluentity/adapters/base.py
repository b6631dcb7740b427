"""Abstract adapter boundary.

An adapter is the only component that performs I/O. The core hands it a
:class:`~fluentity.query_builder.QueryBuilder` and awaits a
:class:`~fluentity.models.HttpResponse`; everything else (building the wire
request, caching, interceptors, transport) is the adapter's business.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from fluentity.models import HttpResponse
from fluentity.query_builder import QueryBuilder


class Adapter(ABC):
    """Base class for all adapters.

    Subclasses must implement :meth:`call` and :meth:`configure`.
    """

    options: Any = None

    @abstractmethod
    async def call(self, query_builder: QueryBuilder) -> HttpResponse:
        """Execute the request described by *query_builder*.

        Raises:
            RequestError: If the external call fails.
            ConfigurationError: If the adapter or the node is misconfigured.
        """
        ...

    @abstractmethod
    def configure(self, **options: Any) -> Adapter:
        """Shallow-merge *options* into the current configuration."""
        ...
