"""Response caching for fluentity adapters.

This package provides :class:`ResponseCache`, the in-memory store consulted
by :class:`~fluentity.adapters.http.HttpAdapter` when the adapter's
``cache_options.enabled`` flag is set. Entries are keyed by resolved request
URL and expire lazily after ``cache_options.ttl`` milliseconds.
"""

from fluentity.cache.cache import CacheEntry, ResponseCache

__all__ = ["CacheEntry", "ResponseCache"]
