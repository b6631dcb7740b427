"""Adapter used when the singleton is initialised without one."""

from __future__ import annotations

from typing import Any

from fluentity.adapters.base import Adapter
from fluentity.models import HttpResponse
from fluentity.query_builder import QueryBuilder


class DefaultAdapter(Adapter):
    """No-op adapter: every call resolves to ``HttpResponse(data=None)``."""

    def __init__(self) -> None:
        self.options: dict[str, Any] = {}

    async def call(self, query_builder: QueryBuilder) -> HttpResponse:
        return HttpResponse(data=None)

    def configure(self, **options: Any) -> DefaultAdapter:
        return self
