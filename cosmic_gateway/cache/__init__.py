"""In-memory result caching for read-mostly endpoints."""

from cosmic_gateway.cache.cache import DEFAULT_CACHE_KEY, ResultCache, cache_key
from cosmic_gateway.cache.models import CacheConfig, CacheEntry, CacheStats


__all__ = [
    "DEFAULT_CACHE_KEY",
    "CacheConfig",
    "CacheEntry",
    "CacheStats",
    "ResultCache",
    "cache_key",
]
