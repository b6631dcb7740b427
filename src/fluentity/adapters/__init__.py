"""Adapters: the I/O boundary between models and a remote API.

* :class:`Adapter` -- abstract ``call`` / ``configure`` contract.
* :class:`DefaultAdapter` -- no-op adapter used when none is configured.
* :class:`HttpAdapter` -- cache and interceptor pipeline.
* :class:`RestAdapter` -- httpx transport for JSON REST APIs.
"""

from fluentity.adapters.base import Adapter
from fluentity.adapters.default import DefaultAdapter
from fluentity.adapters.http import HttpAdapter
from fluentity.adapters.rest import RestAdapter

__all__ = ["Adapter", "DefaultAdapter", "HttpAdapter", "RestAdapter"]
