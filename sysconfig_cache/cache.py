# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Copilot-for-Consensus contributors

"""Abstract cache interface for read-through lookups."""

import os
from abc import ABC, abstractmethod
from typing import Any

KEY_PREFIX = "system-config"


class CacheError(Exception):
    """Raised when the cache backend fails."""
    pass


def cache_key(resource_type: str, tenant_id: str | None, environment: str, key: str) -> str:
    """Build a cache key ``system-config:{type}:{tenant}:{environment}:{key}``.

    A missing tenant is rendered as an empty segment so global entries never
    collide with tenant-scoped ones.
    """
    return f"{KEY_PREFIX}:{resource_type}:{tenant_id or ''}:{environment}:{key}"


class Cache(ABC):
    """Key/value cache holding JSON-serializable values with a TTL."""

    @abstractmethod
    def get(self, key: str) -> Any | None:
        """Return the cached value, or None on a miss or after expiry.

        Raises:
            CacheError: If the backend is unreachable
        """
        pass

    @abstractmethod
    def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        """Store a value that expires after ``ttl_seconds``.

        Raises:
            CacheError: If the value cannot be stored
        """
        pass

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove a key; deleting a missing key is not an error."""
        pass


def create_cache(cache_type: str | None = None, **kwargs) -> Cache:
    """Factory function to create a cache.

    Args:
        cache_type: "redis" or "inmemory". Defaults to CACHE_TYPE env or "inmemory"
        **kwargs: Backend-specific arguments (``url`` for redis)

    Raises:
        ValueError: If cache_type is not recognized
    """
    if cache_type is None:
        cache_type = os.getenv("CACHE_TYPE", "inmemory")

    if cache_type == "redis":
        from .redis_cache import RedisCache
        url = kwargs.pop("url", None) or os.getenv("CACHE_URL", "redis://localhost:6379/0")
        return RedisCache(url=url, **kwargs)
    elif cache_type == "inmemory":
        from .inmemory_cache import InMemoryCache
        return InMemoryCache(**kwargs)
    else:
        raise ValueError(f"Unknown cache_type: {cache_type}")
