from concurrent.futures import ThreadPoolExecutor

import pytest

from opensky_mcp.cache import LRUCache


class Ticker:
    """Clock that moves forward one unit per reading."""

    def __init__(self):
        self.t = 0.0

    def __call__(self) -> float:
        self.t += 1
        return self.t


def test_get_missing_key_returns_none():
    cache = LRUCache(3, clock=Ticker())
    assert cache.get("missing") is None
    assert len(cache) == 0


def test_inserting_past_capacity_evicts_oldest():
    cache = LRUCache(3, clock=Ticker())
    for key in ("a", "b", "c", "d"):
        cache.set(key, key.upper())

    assert len(cache) == 3
    assert "a" not in cache
    assert cache.get("d") == "D"
    assert cache.evictions == 1


def test_get_protects_entry_from_eviction():
    cache = LRUCache(3, clock=Ticker())
    cache.set("a", 1)
    cache.set("b", 2)
    cache.set("c", 3)

    assert cache.get("a") == 1
    cache.set("d", 4)

    assert "a" in cache
    assert "b" not in cache


def test_replacing_existing_key_does_not_evict():
    cache = LRUCache(2, clock=Ticker())
    cache.set("a", 1)
    cache.set("b", 2)
    cache.set("a", 10)

    assert len(cache) == 2
    assert cache.get("a") == 10
    assert cache.get("b") == 2
    assert cache.evictions == 0


def test_ties_evict_first_inserted_entry():
    cache = LRUCache(2, clock=lambda: 5.0)
    cache.set("first", 1)
    cache.set("second", 2)
    cache.set("third", 3)

    assert "first" not in cache
    assert "second" in cache
    assert "third" in cache


def test_size_never_exceeds_capacity():
    cache = LRUCache(5, clock=Ticker())
    for i in range(50):
        cache.set(f"user:{i}", i)
        assert len(cache) <= 5

    assert cache.evictions == 45
    assert [k for k in (f"user:{i}" for i in range(45, 50)) if k in cache] == [
        "user:45", "user:46", "user:47", "user:48", "user:49",
    ]


def test_clear_empties_cache():
    cache = LRUCache(2, clock=Ticker())
    cache.set("a", 1)
    cache.clear()
    assert len(cache) == 0


def test_invalid_capacity_rejected():
    with pytest.raises(ValueError):
        LRUCache(0)


def test_concurrent_access_keeps_size_bound():
    cache = LRUCache(16)
    workers = 8
    keys_per_worker = 200
    sizes = []

    def hammer(worker):
        for i in range(keys_per_worker):
            key = f"user:{worker}:{i}"
            cache.set(key, i)
            cache.get(key)
            cache.get(f"user:{(worker + 1) % workers}:{i}")
            sizes.append(len(cache))

    with ThreadPoolExecutor(max_workers=workers) as pool:
        list(pool.map(hammer, range(workers)))

    inserts = workers * keys_per_worker
    assert max(sizes) <= cache.max_size
    assert len(cache) == cache.max_size
    assert cache.evictions == inserts - cache.max_size
