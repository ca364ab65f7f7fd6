"""Cache module - Cache-aside layer with hit/miss statistics."""

from roadkeys_core.cache.cache import Cache, CacheConfig, CacheStats

__all__ = [
    "Cache",
    "CacheConfig",
    "CacheStats",
]
