"""Process-wide holder of the active adapter.

Models and relation builders send their requests through
``Fluentity.get_instance().call(node)`` unless they were given an explicit
:class:`Fluentity` object. The singleton must be created once at start-up::

    async with RestAdapter(base_url="https://api.example.com") as adapter:
        Fluentity.initialize(adapter)
        ...

:meth:`Fluentity.reset` discards it again, which is mostly useful in tests.
It does not close the adapter; the ``async with`` block (or
:meth:`RestAdapter.aclose`) does.
"""

from __future__ import annotations

import logging
from typing import Any, ClassVar, Optional

from fluentity.adapters.base import Adapter
from fluentity.adapters.default import DefaultAdapter
from fluentity.exceptions import ConfigurationError
from fluentity.models import HttpResponse
from fluentity.query_builder import QueryBuilder

logger = logging.getLogger(__name__)


class Fluentity:
    """Owner of the adapter every terminal operation goes through.

    Instances can also be created directly and passed to models or builders
    (``fluentity=...``) to talk to several APIs from one process.

    Args:
        adapter: The adapter to use. Defaults to a no-op
            :class:`~fluentity.adapters.default.DefaultAdapter`.
    """

    _instance: ClassVar[Optional[Fluentity]] = None

    def __init__(self, adapter: Optional[Adapter] = None) -> None:
        self._adapter: Adapter = adapter if adapter is not None else DefaultAdapter()

    @classmethod
    def initialize(cls, adapter: Optional[Adapter] = None) -> Fluentity:
        """Create the singleton.

        Raises:
            ConfigurationError: If the singleton already exists.
        """
        if Fluentity._instance is not None:
            raise ConfigurationError(
                "Fluentity has already been initialized. Call Fluentity.reset() first."
            )
        Fluentity._instance = cls(adapter)
        logger.debug("Fluentity initialized with %s", type(Fluentity._instance.adapter).__name__)
        return Fluentity._instance

    @classmethod
    def get_instance(cls) -> Fluentity:
        """Return the singleton.

        Raises:
            ConfigurationError: If :meth:`initialize` has not been called.
        """
        if Fluentity._instance is None:
            raise ConfigurationError(
                "Fluentity has not been initialized. Call Fluentity.initialize() first."
            )
        return Fluentity._instance

    @classmethod
    def reset(cls) -> None:
        """Discard the singleton so :meth:`initialize` can be called again."""
        if Fluentity._instance is not None:
            logger.debug("Fluentity reset")
        Fluentity._instance = None

    @property
    def adapter(self) -> Adapter:
        return self._adapter

    def configure(self, **options: Any) -> Fluentity:
        """Forward *options* to :meth:`Adapter.configure`."""
        self._adapter.configure(**options)
        return self

    async def call(self, query_builder: QueryBuilder) -> HttpResponse:
        """Send *query_builder* through the adapter."""
        return await self._adapter.call(query_builder)
