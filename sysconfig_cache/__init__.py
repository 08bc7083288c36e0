# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Copilot-for-Consensus contributors

"""Cache adapter for the system config service."""

__version__ = "0.1.0"

from .cache import KEY_PREFIX, Cache, CacheError, cache_key, create_cache
from .inmemory_cache import InMemoryCache

__all__ = [
    "__version__",
    "Cache",
    "CacheError",
    "InMemoryCache",
    "KEY_PREFIX",
    "cache_key",
    "create_cache",
]
