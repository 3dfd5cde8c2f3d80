"""Response cache: TTL expiry, key canonicalisation, capacity bound, best-effort wrapper."""

import pytest

from newsroom.tools.response_cache import (
    CacheError,
    CacheKeys,
    SafeCache,
    TTLCache,
    build_key,
)


class Clock:
    def __init__(self, now: float = 1_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def cache(clock):
    return TTLCache(default_ttl=300, max_entries=1000, clock=clock)


# ════════════════════════════════════════════════════════════════════
# TTL
# ════════════════════════════════════════════════════════════════════

def test_round_trip_then_expiry(cache, clock):
    cache.set("k", {"clusters": [1, 2]}, 300)
    assert cache.get("k") == {"clusters": [1, 2]}

    clock.now += 299
    assert cache.get("k") == {"clusters": [1, 2]}

    clock.now += 1
    assert cache.get("k") is None
    assert len(cache) == 0  # evicted on read


def test_default_ttl_applies(cache, clock):
    cache.set("k", "v")
    clock.now += 301
    assert cache.get("k", "miss") == "miss"


def test_stored_values_are_immutable(cache):
    payload = {"clusters": [{"id": "a"}]}
    cache.set("k", payload)
    payload["clusters"].append({"id": "b"})

    first = cache.get("k")
    first["clusters"].clear()
    assert cache.get("k") == {"clusters": [{"id": "a"}]}


def test_cleanup_expired(cache, clock):
    cache.set("short", 1, 10)
    cache.set("long", 2, 1000)
    clock.now += 11
    assert cache.cleanup_expired() == 1
    assert cache.get("long") == 2


def test_delete_pattern_and_clear(cache):
    cache.set(CacheKeys.clusters("en"), [])
    cache.set(CacheKeys.clusters("si"), [])
    cache.set(CacheKeys.search_filters(), {})

    assert cache.delete_pattern("clusters:") == 2
    assert len(cache) == 1
    cache.clear()
    assert len(cache) == 0


def test_stats_count_hits_and_misses(cache):
    cache.set("k", 1)
    cache.get("k")
    cache.get("missing")
    stats = cache.stats()
    assert stats["hits"] == 1
    assert stats["misses"] == 1
    assert stats["size"] == 1


# ════════════════════════════════════════════════════════════════════
# Capacity
# ════════════════════════════════════════════════════════════════════

def test_capacity_evicts_earliest_expiry(clock):
    cache = TTLCache(max_entries=2, clock=clock)
    cache.set("a", 1, 100)
    cache.set("b", 2, 10)
    cache.set("c", 3, 50)

    assert len(cache) == 2
    assert cache.get("b") is None
    assert cache.get("a") == 1
    assert cache.get("c") == 3


def test_capacity_purges_expired_first(clock):
    cache = TTLCache(max_entries=3, clock=clock)
    cache.set("a", 1, 5)
    cache.set("b", 2, 5)
    cache.set("c", 3, 100)
    clock.now += 6

    cache.set("d", 4, 1)
    assert cache.get("c") == 3
    assert cache.get("d") == 4


def test_overwrite_at_capacity_does_not_evict(clock):
    cache = TTLCache(max_entries=2, clock=clock)
    cache.set("a", 1)
    cache.set("b", 2)
    cache.set("a", 10)
    assert cache.get("a") == 10
    assert cache.get("b") == 2


# ════════════════════════════════════════════════════════════════════
# Keys
# ════════════════════════════════════════════════════════════════════

def test_build_key_is_order_independent():
    assert build_key("clusters", {"lang": "en", "category": "sports"}) == \
        build_key("clusters", {"category": "sports", "lang": "en"})


def test_build_key_drops_none_and_sorts_lists():
    assert build_key("q", {"lang": "en", "category": None}) == build_key("q", {"lang": "en"})
    assert build_key("q", {"topics": ["b", "a"]}) == build_key("q", {"topics": ["a", "b"]})


def test_build_key_distinguishes_values_and_namespaces():
    assert build_key("q", {"limit": 20}) != build_key("q", {"limit": 50})
    assert build_key("clusters", {"lang": "en"}) != build_key("cluster", {"lang": "en"})


def test_cache_keys():
    assert CacheKeys.clusters("en", "home", None, 20) == CacheKeys.clusters(lang="en", limit=20, feed="home")
    assert CacheKeys.cluster_detail("abc", "en") != CacheKeys.cluster_detail("abc", "si")


def test_invalidate_read_api_keeps_other_namespaces(cache):
    cache.set(CacheKeys.clusters("en", "home"), [])
    cache.set(CacheKeys.cluster_detail("abc", "en"), {})
    cache.set(CacheKeys.search_filters(), {})
    cache.set(build_key("health"), {"ok": True})

    assert SafeCache(cache).invalidate_read_api() == 3
    assert len(cache) == 1
    assert cache.get(build_key("health")) == {"ok": True}


# ════════════════════════════════════════════════════════════════════
# Best-effort wrapper
# ════════════════════════════════════════════════════════════════════

class ExplodingBackend:
    def _boom(self, *args, **kwargs):
        raise CacheError("backend down")

    get = set = delete_pattern = clear = cleanup_expired = stats = _boom


def test_safe_cache_degrades_to_miss():
    cache = SafeCache(ExplodingBackend())
    assert cache.get("k") is None
    assert cache.get("k", "fallback") == "fallback"
    cache.set("k", 1)
    cache.clear()
    assert cache.delete_pattern("k") == 0
    assert cache.cleanup_expired() == 0
    assert cache.invalidate_read_api() == 0
    assert cache.stats() == {}


def test_unserializable_value_raises_cache_error_but_not_through_safe_cache(cache):
    with pytest.raises(CacheError):
        cache.set("k", {"bad": {1, 2}})
    SafeCache(cache).set("k", {"bad": {1, 2}})
    assert cache.get("k") is None
