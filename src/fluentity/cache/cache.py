"""In-memory response cache with lazily checked time-to-live.

Entries are keyed by the resolved request URL (path plus query string, see
:meth:`ResponseCache.make_key`) and stamped with the time they were stored.
An entry is served only while ``now - timestamp < ttl``. Expiry is checked at
read time only: a stale entry is ignored, never evicted, and gets overwritten
by the next store for the same key.

.. note::
   The key deliberately carries neither the HTTP method nor the body, so a
   ``GET`` and a ``DELETE`` against the same URL share one entry. Stale
   entries also accumulate until :meth:`ResponseCache.clear` or
   :meth:`ResponseCache.delete` is called; :meth:`ResponseCache.stats`
   exposes the entry count so the growth can be monitored.

See Also:
    :class:`~fluentity.models.CacheOptions` -- the Pydantic model that
    controls ``enabled`` and ``ttl``.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional

from fluentity.models import ResolvedRequest

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


def _now_ms() -> float:
    return time.time() * 1000


@dataclass
class CacheEntry:
    """A stored response and the time (in milliseconds) it was stored."""

    key: str
    response: Any
    timestamp: float


class ResponseCache:
    """Process-local map from resolved request URL to response.

    Args:
        ttl: Validity window of an entry, in milliseconds.
        clock: Callable returning the current time in milliseconds.
            Defaults to the wall clock; tests inject a fake one.

    Example::

        cache = ResponseCache(ttl=60_000)
        key = ResponseCache.make_key(resolve(node))
        cache.set(key, response)
        hit = cache.get(key)
    """

    def __init__(self, ttl: int = 5 * 60 * 1000, clock: Optional[Clock] = None) -> None:
        self.ttl = ttl
        self._clock = clock or _now_ms
        self._entries: dict[str, CacheEntry] = {}

    @staticmethod
    def make_key(resolved: ResolvedRequest) -> str:
        """Derive the cache key of a resolved request: its ``path[?query]``."""
        return resolved.url

    def get(self, key: str) -> Any:
        """Return the cached response for *key*, or ``None``.

        ``None`` is returned when there is no entry or the entry is older
        than :attr:`ttl`. Expired entries are left in place.
        """
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._clock() - entry.timestamp >= self.ttl:
            logger.debug("Cache entry expired: %s", key)
            return None
        return entry.response

    def set(self, key: str, response: Any) -> None:
        """Store *response* under *key*, replacing any previous entry."""
        self._entries[key] = CacheEntry(key=key, response=response, timestamp=self._clock())

    def delete(self, key: str) -> None:
        """Remove the entry for *key*. Missing keys are ignored."""
        self._entries.pop(key, None)

    def clear(self) -> None:
        """Remove all entries from the cache."""
        self._entries.clear()

    def stats(self) -> dict[str, Any]:
        """Return cache statistics.

        Returns:
            A ``dict`` with ``size`` (entries held, stale ones included),
            ``expired`` (entries past their TTL) and ``ttl`` (milliseconds).
        """
        now = self._clock()
        expired = sum(1 for e in self._entries.values() if now - e.timestamp >= self.ttl)
        return {"size": len(self._entries), "expired": expired, "ttl": self.ttl}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries
