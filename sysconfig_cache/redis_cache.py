# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Copilot-for-Consensus contributors

"""Redis-backed cache."""

import json
import logging
from typing import Any

import redis

from .cache import Cache, CacheError

logger = logging.getLogger(__name__)


class RedisCache(Cache):
    """Cache storing JSON-encoded values in Redis with ``SETEX``."""

    def __init__(self, url: str, client: "redis.Redis | None" = None, **client_options):
        self.url = url
        self.client_options = client_options
        self._client = client

    def _get_client(self) -> "redis.Redis":
        if self._client is None:
            try:
                self._client = redis.Redis.from_url(self.url, decode_responses=True, **self.client_options)
                self._client.ping()
            except redis.RedisError as e:
                self._client = None
                logger.warning("Redis connection failed: %s", e)
                raise CacheError("Failed to connect to Redis") from e
            logger.info("RedisCache: connected")
        return self._client

    def get(self, key: str) -> Any | None:
        try:
            data = self._get_client().get(key)
        except redis.RedisError as e:
            raise CacheError(f"Redis get failed for {key}") from e
        if data is None:
            return None
        try:
            return json.loads(data)
        except ValueError:
            logger.warning("RedisCache: discarding undecodable entry %s", key)
            return None

    def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        try:
            payload = json.dumps(value, default=str)
        except (TypeError, ValueError) as e:
            raise CacheError(f"Value for {key} is not JSON serializable") from e
        try:
            self._get_client().setex(key, ttl_seconds, payload)
        except redis.RedisError as e:
            raise CacheError(f"Redis set failed for {key}") from e

    def delete(self, key: str) -> None:
        try:
            self._get_client().delete(key)
        except redis.RedisError as e:
            raise CacheError(f"Redis delete failed for {key}") from e
