"""Tests for TTLCache."""

from __future__ import annotations

from harbinger.services.cache_service import TTLCache


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def test_get_put():
    cache = TTLCache(default_ttl=60)
    cache.put("k1", ["a", "b"])
    assert cache.get("k1") == ["a", "b"]


def test_miss_returns_none():
    cache = TTLCache(default_ttl=60)
    assert cache.get("missing") is None


def test_falsy_values_are_hits():
    cache = TTLCache(default_ttl=60)
    cache.put("flag", False)
    cache.put("empty", [])
    assert cache.get("flag") is False
    assert cache.get("empty") == []
    assert "flag" in cache
    assert "missing" not in cache


def test_ttl_expiry():
    clock = FakeClock()
    cache = TTLCache(default_ttl=300, clock=clock)
    cache.put("k1", "v")

    clock.advance(299)
    assert cache.get("k1") == "v"

    clock.advance(1)
    assert cache.get("k1") is None
    # Expired entry is dropped on read
    assert cache.size == 0


def test_per_entry_ttl_override():
    clock = FakeClock()
    cache = TTLCache(default_ttl=300, clock=clock)
    cache.put("short", "v", ttl=5)
    cache.put("long", "v")
    clock.advance(10)
    assert cache.get("short") is None
    assert cache.get("long") == "v"


def test_lru_eviction():
    cache = TTLCache(default_ttl=60, max_size=3)
    cache.put("a", 1)
    cache.put("b", 2)
    cache.put("c", 3)
    cache.get("a")  # "b" is now least recently used
    cache.put("d", 4)

    assert cache.get("b") is None
    assert cache.get("a") == 1
    assert cache.get("d") == 4


def test_invalidate():
    cache = TTLCache(default_ttl=60)
    cache.put("k1", 1)
    cache.invalidate("k1")
    cache.invalidate("never-there")
    assert cache.get("k1") is None


def test_invalidate_by_prefix():
    cache = TTLCache(default_ttl=60)
    cache.put("org_repos:acme", [1])
    cache.put("org_repos:globex", [2])
    cache.put("personal_repos", [3])
    removed = cache.invalidate_by_prefix("org_repos:")
    assert removed == 2
    assert cache.keys() == ["personal_repos"]


def test_clear():
    cache = TTLCache(default_ttl=60)
    cache.put("a", 1)
    cache.put("b", 2)
    cache.clear()
    assert cache.size == 0


def test_stats():
    clock = FakeClock()
    cache = TTLCache(default_ttl=60, max_size=100, clock=clock)
    cache.put("k1", 1)
    cache.put("k2", 2, ttl=10)
    clock.advance(30)

    stats = cache.stats()
    assert stats["total_entries"] == 2
    assert stats["fresh_entries"] == 1
    assert stats["expired_entries"] == 1
    assert stats["max_size"] == 100
    assert stats["ttl_seconds"] == 60


def test_items_skips_expired_entries():
    clock = FakeClock()
    cache = TTLCache(default_ttl=60, clock=clock)
    cache.put("short", True, ttl=5)
    cache.put("long", False)

    clock.advance(10)

    assert cache.items() == [("long", False)]
    assert cache.default_ttl == 60
