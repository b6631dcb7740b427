"""Tests for the ResponseCache module."""

from __future__ import annotations

import pytest

from fluentity.cache import ResponseCache
from fluentity.models import HttpResponse, ResolvedRequest


class FakeClock:
    """Millisecond clock advanced by hand."""

    def __init__(self, now: float = 1_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def cache(clock: FakeClock) -> ResponseCache:
    """A cache with a one second TTL driven by :func:`clock`."""
    return ResponseCache(ttl=1000, clock=clock)


# ------------------------------------------------------------------ #
# Core get/set behaviour
# ------------------------------------------------------------------ #


class TestGetSet:
    def test_get_right_after_set_returns_same_object(self, cache: ResponseCache) -> None:
        response = HttpResponse(data={"id": 1})
        cache.set("users/1", response)
        assert cache.get("users/1") is response

    def test_cache_miss_returns_none(self, cache: ResponseCache) -> None:
        assert cache.get("users/404") is None

    def test_set_overwrites(self, cache: ResponseCache) -> None:
        first = HttpResponse(data=1)
        second = HttpResponse(data=2)
        cache.set("users", first)
        cache.set("users", second)
        assert cache.get("users") is second
        assert len(cache) == 1

    def test_default_ttl_is_five_minutes(self) -> None:
        assert ResponseCache().ttl == 300_000


# ------------------------------------------------------------------ #
# TTL expiry
# ------------------------------------------------------------------ #


class TestExpiry:
    def test_valid_just_before_ttl(self, cache: ResponseCache, clock: FakeClock) -> None:
        cache.set("users", HttpResponse())
        clock.advance(999)
        assert cache.get("users") is not None

    def test_absent_after_ttl(self, cache: ResponseCache, clock: FakeClock) -> None:
        cache.set("users", HttpResponse())
        clock.advance(1000)
        assert cache.get("users") is None

    def test_expired_entry_is_kept(self, cache: ResponseCache, clock: FakeClock) -> None:
        cache.set("users", HttpResponse())
        clock.advance(5000)
        assert cache.get("users") is None
        assert "users" in cache
        assert len(cache) == 1

    def test_store_refreshes_timestamp(self, cache: ResponseCache, clock: FakeClock) -> None:
        cache.set("users", HttpResponse(data=1))
        clock.advance(5000)
        fresh = HttpResponse(data=2)
        cache.set("users", fresh)
        assert cache.get("users") is fresh

    def test_zero_ttl_never_serves(self, clock: FakeClock) -> None:
        cache = ResponseCache(ttl=0, clock=clock)
        cache.set("users", HttpResponse())
        assert cache.get("users") is None


# ------------------------------------------------------------------ #
# Keys, deletion and stats
# ------------------------------------------------------------------ #


class TestKeys:
    def test_key_is_path_and_query(self) -> None:
        resolved = ResolvedRequest(path="users/1/medias", query="page=2&per_page=25")
        assert ResponseCache.make_key(resolved) == "users/1/medias?page=2&per_page=25"

    def test_key_ignores_method_and_body(self) -> None:
        get = ResolvedRequest(path="users/1")
        put = ResolvedRequest(path="users/1", method="PUT", body={"name": "Ada"})
        assert ResponseCache.make_key(get) == ResponseCache.make_key(put)


class TestDeleteClear:
    def test_delete(self, cache: ResponseCache) -> None:
        cache.set("users", HttpResponse())
        cache.delete("users")
        assert cache.get("users") is None
        assert "users" not in cache

    def test_delete_missing_key_is_ignored(self, cache: ResponseCache) -> None:
        cache.delete("nothing")

    def test_clear(self, cache: ResponseCache) -> None:
        cache.set("a", HttpResponse())
        cache.set("b", HttpResponse())
        cache.clear()
        assert len(cache) == 0


class TestStats:
    def test_stats(self, cache: ResponseCache, clock: FakeClock) -> None:
        cache.set("old", HttpResponse())
        clock.advance(2000)
        cache.set("new", HttpResponse())
        assert cache.stats() == {"size": 2, "expired": 1, "ttl": 1000}
