"""In-memory response caching for apiguard.

This package provides :class:`TTLCache`, a thread-safe LRU cache with a
per-entry time-to-live, and :func:`make_cache_key`, which derives a stable
key from an endpoint name and its parameters.

The cache is consumed by :class:`~apiguard.client.api_client.ApiClient`
and sized by the ``cache`` section of the client configuration
(:class:`~apiguard.models.CacheConfig`).
"""

from apiguard.cache.cache import CacheEntry, TTLCache, make_cache_key

__all__ = ["CacheEntry", "TTLCache", "make_cache_key"]
