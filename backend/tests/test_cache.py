"""Tests for the TTL result cache."""
from __future__ import annotations

import hashlib

from planner.services.cache import ResultCache, generate_key, hash_key


class _Clock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def test_entry_expires_exactly_at_ttl() -> None:
    clock = _Clock()
    cache = ResultCache(clock=clock)
    cache.set("k", {"v": 1}, ttl=60)

    clock.now += 59.999
    assert cache.get("k") == {"v": 1}

    clock.now = 1000.0 + 60
    assert cache.get("k") is None
    assert len(cache) == 0


def test_set_restarts_the_clock() -> None:
    clock = _Clock()
    cache = ResultCache(clock=clock)
    cache.set("k", "old", ttl=10)
    clock.now += 8
    cache.set("k", "new", ttl=10)
    clock.now += 8

    assert cache.get("k") == "new"


def test_stats_count_hits_and_misses() -> None:
    cache = ResultCache(clock=_Clock())
    cache.set("a", 1, ttl=10)

    cache.get("a")
    cache.get("a")
    cache.get("missing")

    stats = cache.stats()
    assert (stats.hits, stats.misses, stats.size) == (2, 1, 1)


def test_cleanup_removes_only_expired_entries() -> None:
    clock = _Clock()
    cache = ResultCache(clock=clock)
    cache.set("short", 1, ttl=5)
    cache.set("long", 2, ttl=500)
    clock.now += 10

    assert cache.cleanup() == 1
    assert cache.get("long") == 2
    assert cache.stats().size == 1


def test_delete_and_clear() -> None:
    cache = ResultCache(clock=_Clock())
    cache.set("a", 1, ttl=10)
    cache.set("b", 2, ttl=10)

    assert cache.delete("a") is True
    assert cache.delete("a") is False
    cache.clear()
    assert len(cache) == 0
    assert cache.stats().hits == 0


def test_generate_key_ignores_parameter_order() -> None:
    first = generate_key("plan", {"user": "u1", "date": "2026-10-18"})
    second = generate_key("plan", {"date": "2026-10-18", "user": "u1"})

    assert first == second == "plan:date:2026-10-18|user:u1"


def test_hash_key_is_short_and_stable() -> None:
    assert hash_key("learn spanish") == hash_key("learn spanish")
    assert hash_key("learn spanish") != hash_key("learn french")
    assert len(hash_key("x" * 1000)) == 16


def test_hash_key_is_a_sha256_prefix() -> None:
    assert hash_key("learn spanish") == hashlib.sha256(b"learn spanish").hexdigest()[:16]
