"""Response cache backends."""

from unittest.mock import MagicMock

import redis

from craftsearch.cache import InMemoryCache, NullCache, RedisCache


def test_in_memory_cache_expires(monkeypatch):
    clock = [100.0]
    monkeypatch.setattr("craftsearch.cache.time.monotonic", lambda: clock[0])
    cache = InMemoryCache()
    cache.set("k", {"v": 1}, ttl=10)
    assert cache.get("k") == {"v": 1}
    clock[0] = 111.0
    assert cache.get("k") is None


def test_in_memory_cache_evicts_when_full():
    cache = InMemoryCache(max_entries=2)
    cache.set("a", {"n": 1}, ttl=5)
    cache.set("b", {"n": 2}, ttl=50)
    cache.set("c", {"n": 3}, ttl=50)
    assert cache.get("a") is None
    assert cache.get("b") == {"n": 2}
    assert cache.get("c") == {"n": 3}


def test_null_cache_never_stores():
    cache = NullCache()
    cache.set("k", {"v": 1}, ttl=10)
    assert cache.get("k") is None


def test_redis_cache_round_trip_and_errors():
    client = MagicMock()
    client.get.return_value = b'{"v": 1}'
    cache = RedisCache(client)
    assert cache.get("k") == {"v": 1}
    cache.set("k", {"v": 1}, 30)
    client.setex.assert_called_once_with("k", 30, '{"v": 1}')

    client.get.side_effect = redis.ConnectionError("down")
    assert cache.get("k") is None
