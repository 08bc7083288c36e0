# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Copilot-for-Consensus contributors

"""Tests for the cache adapter."""

import json
import os
from unittest.mock import MagicMock, patch

import pytest
import redis

from sysconfig_cache import CacheError, InMemoryCache, cache_key, create_cache
from sysconfig_cache.redis_cache import RedisCache


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


class TestCacheKey:
    """Tests for cache key construction."""

    def test_tenant_scoped(self):
        assert cache_key("config", "acme", "production", "db.timeout") == (
            "system-config:config:acme:production:db.timeout"
        )

    def test_global_entries_use_empty_tenant(self):
        assert cache_key("config", None, "staging", "db.timeout") == "system-config:config::staging:db.timeout"


class TestCacheFactory:
    """Tests for create_cache."""

    def test_inmemory(self):
        assert isinstance(create_cache("inmemory"), InMemoryCache)

    def test_redis(self):
        cache = create_cache("redis", url="redis://cache:6379/1")

        assert isinstance(cache, RedisCache)
        assert cache.url == "redis://cache:6379/1"

    def test_from_env(self):
        with patch.dict(os.environ, {"CACHE_TYPE": "redis", "CACHE_URL": "redis://env:6379/0"}):
            cache = create_cache()

        assert cache.url == "redis://env:6379/0"

    def test_unknown(self):
        with pytest.raises(ValueError, match="Unknown cache_type"):
            create_cache("memcached")


class TestInMemoryCache:
    """Tests for the in-memory TTL cache."""

    def test_set_get_delete(self):
        cache = InMemoryCache()

        cache.set("k", {"a": 1}, 60)
        assert cache.get("k") == {"a": 1}

        cache.delete("k")
        cache.delete("k")
        assert cache.get("k") is None

    def test_entries_expire(self):
        clock = FakeClock()
        cache = InMemoryCache(clock=clock)
        cache.set("k", "v", 30)

        clock.now = 29.9
        assert cache.get("k") == "v"

        clock.now = 30.0
        assert cache.get("k") is None
        assert len(cache) == 0

    def test_values_are_copied(self):
        cache = InMemoryCache()
        value = {"tags": ["a"]}
        cache.set("k", value, 60)

        value["tags"].append("b")
        cache.get("k")["tags"].append("c")

        assert cache.get("k") == {"tags": ["a"]}

    def test_clear(self):
        cache = InMemoryCache()
        cache.set("a", 1, 60)
        cache.set("b", 2, 60)

        cache.clear()

        assert len(cache) == 0


class TestRedisCache:
    """Tests for the Redis cache against a mocked client."""

    def test_set_uses_setex_with_json(self):
        client = MagicMock()
        cache = RedisCache("redis://localhost", client=client)

        cache.set("k", {"a": 1}, 30)

        client.setex.assert_called_once_with("k", 30, json.dumps({"a": 1}))

    def test_get_decodes_json(self):
        client = MagicMock()
        client.get.return_value = '{"a": 1}'

        assert RedisCache("redis://localhost", client=client).get("k") == {"a": 1}

    def test_get_miss(self):
        client = MagicMock()
        client.get.return_value = None

        assert RedisCache("redis://localhost", client=client).get("k") is None

    def test_undecodable_entry_is_a_miss(self):
        client = MagicMock()
        client.get.return_value = "{not json"

        assert RedisCache("redis://localhost", client=client).get("k") is None

    @pytest.mark.parametrize("method,args", [("get", ("k",)), ("set", ("k", 1, 5)), ("delete", ("k",))])
    def test_redis_errors_become_cache_errors(self, method, args):
        client = MagicMock()
        getattr(client, "setex" if method == "set" else method).side_effect = redis.ConnectionError("down")
        cache = RedisCache("redis://localhost", client=client)

        with pytest.raises(CacheError):
            getattr(cache, method)(*args)

    def test_connection_failure(self):
        with patch("sysconfig_cache.redis_cache.redis.Redis.from_url") as from_url:
            from_url.return_value.ping.side_effect = redis.ConnectionError("refused")
            cache = RedisCache("redis://nowhere:6379/0")

            with pytest.raises(CacheError, match="Failed to connect"):
                cache.get("k")

        from_url.assert_called_once_with("redis://nowhere:6379/0", decode_responses=True)

    def test_unserializable_value(self):
        cache = RedisCache("redis://localhost", client=MagicMock())
        value = {}
        value["self"] = value

        with pytest.raises(CacheError):
            cache.set("k", value, 5)
