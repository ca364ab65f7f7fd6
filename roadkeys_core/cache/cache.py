"""RoadKeys Cache - Cache-Aside Layer over the Keyspace.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

import functools
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from roadkeys_core.protocol.serializer import JSONSerializer, Serializer
from roadkeys_core.store.backend import KeyspaceStore
from roadkeys_core.store.namespace import NamespacedStore

logger = logging.getLogger(__name__)

_MISSING = object()

HITS = "hits"
MISSES = "misses"
DECODE_ERRORS = "decode_errors"


@dataclass
class CacheConfig:
    """Cache configuration.

    Attributes:
        namespace: Namespace of cached values
        default_ttl: TTL in seconds when none is given
    """

    namespace: str = "cache"
    default_ttl: float = 300


@dataclass
class CacheStats:
    """Cache statistics.

    Attributes:
        hits: Lookups served from the store
        misses: Lookups that found nothing (or an undecodable value)
        total_keys: Keys currently in the cache namespace
        decode_errors: Stored values discarded because they failed to decode
    """

    hits: int = 0
    misses: int = 0
    total_keys: int = 0
    decode_errors: int = 0

    @property
    def hit_rate(self) -> float:
        """Hit rate in percent, rounded to two decimals."""
        total = self.hits + self.misses
        return round(self.hits / total * 100, 2) if total > 0 else 0.0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "hits": self.hits,
            "misses": self.misses,
            "hit_rate": self.hit_rate,
            "total_keys": self.total_keys,
            "decode_errors": self.decode_errors,
        }


class Cache:
    """Cache-aside layer with hit/miss statistics.

    Values are serialized into the cache namespace with a TTL; expiry is
    left entirely to the store, there is no eviction policy. Hit and miss
    counters are kept in the store itself, under the sibling namespace
    ``<namespace>.stats``, so every process sharing the store sees the
    same numbers and the counters never show up in ``keys()``.

    Example:
        cache = Cache(store)

        user = cache.get_or_set("user:123", lambda: db.get_user(123), ttl=300)

        @cache.cached(ttl=60)
        def expensive_operation(id):
            return compute(id)
    """

    def __init__(
        self,
        store: KeyspaceStore,
        config: Optional[CacheConfig] = None,
        serializer: Optional[Serializer] = None,
        metrics: Optional[Any] = None,  # MetricsCollector
    ):
        """Initialize cache.

        Args:
            store: Shared keyspace store
            config: Cache configuration
            serializer: Value serializer
            metrics: Optional metrics collector
        """
        self.config = config or CacheConfig()
        self._store = NamespacedStore(store, self.config.namespace)
        self._stats_store = NamespacedStore(store, f"{self._store.name}.stats")
        self._serializer = serializer or JSONSerializer()
        self._metrics = metrics

    @property
    def namespace(self) -> str:
        return self._store.name

    # ------------------------------------------------------------------
    # Counters
    # ------------------------------------------------------------------

    def _record_hit(self) -> None:
        self._stats_store.incr(HITS)
        if self._metrics is not None:
            self._metrics.record_hit()

    def _record_miss(self) -> None:
        self._stats_store.incr(MISSES)
        if self._metrics is not None:
            self._metrics.record_miss()

    def _record_decode_error(self) -> None:
        self._stats_store.incr(DECODE_ERRORS)
        if self._metrics is not None:
            self._metrics.record_decode_error()

    def _counter(self, name: str) -> int:
        value = self._stats_store.get(name)
        return int(value) if value is not None else 0

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def _lookup(self, key: str) -> Any:
        """Read and decode a value, returning ``_MISSING`` when absent.

        An undecodable value is reported as absent and counted.
        """
        data = self._store.get(key)
        if data is None:
            return _MISSING
        try:
            return self._serializer.deserialize(data)
        except (ValueError, TypeError) as e:
            logger.warning(f"Treating undecodable cache value {key!r} as a miss: {e}")
            self._record_decode_error()
            return _MISSING

    def get_or_set(
        self,
        key: str,
        loader: Callable[[], Any],
        ttl: Optional[float] = None,
    ) -> Any:
        """Get a cached value, or load and cache it.

        The loader runs only on a miss. If it raises, the exception
        propagates and nothing is cached.

        Args:
            key: Cache key
            loader: Zero-argument callable producing the value
            ttl: TTL in seconds

        Returns:
            Cached or loaded value
        """
        value = self._lookup(key)
        if value is not _MISSING:
            self._record_hit()
            return value

        self._record_miss()
        value = loader()
        self.set(key, value, ttl=ttl)
        logger.debug(f"Cache miss for {key!r}, loaded and stored")
        return value

    def get(self, key: str, default: Any = None) -> Any:
        """Get a cached value.

        Args:
            key: Cache key
            default: Returned on a miss

        Returns:
            Cached value or default
        """
        value = self._lookup(key)
        if value is _MISSING:
            self._record_miss()
            return default

        self._record_hit()
        return value

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> bool:
        """Cache a value.

        Args:
            key: Cache key
            value: Serializable value
            ttl: TTL in seconds (defaults to ``config.default_ttl``)

        Raises:
            ValueError: If ttl is not positive
        """
        ttl = self.config.default_ttl if ttl is None else ttl
        if ttl <= 0:
            raise ValueError(f"ttl must be positive, got {ttl}")
        return self._store.set(key, self._serializer.serialize(value), ttl=ttl)

    def delete(self, key: str) -> bool:
        return self._store.delete(key) > 0

    def delete_pattern(self, pattern: str) -> int:
        """Delete every cached key matching a glob pattern.

        Returns:
            Number of keys deleted
        """
        keys = self._store.scan_all(pattern)
        if not keys:
            return 0
        return self._store.delete(*keys)

    def has(self, key: str) -> bool:
        return self._store.exists(key)

    def ttl(self, key: str) -> int:
        """Remaining TTL in seconds (-1 no expiry, -2 missing)."""
        return self._store.ttl(key)

    def update_ttl(self, key: str, ttl: float) -> bool:
        """Set a new TTL on a cached key.

        Returns:
            False if the key does not exist
        """
        return self._store.expire(key, ttl)

    def warm(self, entries: Iterable[Sequence[Any]]) -> int:
        """Pre-populate the cache.

        Args:
            entries: ``(key, value)`` or ``(key, value, ttl)`` tuples

        Returns:
            Number of entries written
        """
        count = 0
        for entry in entries:
            key, value = entry[0], entry[1]
            ttl = entry[2] if len(entry) > 2 else None
            if self.set(key, value, ttl=ttl):
                count += 1
        logger.info(f"Warmed {count} entries into cache {self.namespace!r}")
        return count

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def get_stats(self) -> CacheStats:
        """Get cache statistics.

        ``total_keys`` requires a key scan of the cache namespace.
        """
        return CacheStats(
            hits=self._counter(HITS),
            misses=self._counter(MISSES),
            total_keys=self.size(),
            decode_errors=self._counter(DECODE_ERRORS),
        )

    def reset_stats(self) -> None:
        self._stats_store.delete(HITS, MISSES, DECODE_ERRORS)

    def clear(self) -> int:
        """Delete every cached key.

        Statistics are kept; use ``reset_stats`` for those.

        Returns:
            Number of keys deleted
        """
        return self._store.clear()

    def keys(self, pattern: str = "*") -> List[str]:
        """Cached keys, relative to the cache namespace."""
        return self._store.scan_all(pattern)

    def size(self) -> int:
        return len(self._store.scan_all())

    # ------------------------------------------------------------------
    # Decorator
    # ------------------------------------------------------------------

    def cached(
        self,
        ttl: Optional[float] = None,
        key_builder: Optional[Callable[..., str]] = None,
    ):
        """Decorator to cache function results.

        Args:
            ttl: Cache TTL
            key_builder: Function to build cache key from the call arguments

        Returns:
            Decorator function
        """
        def decorator(func: Callable) -> Callable:
            @functools.wraps(func)
            def wrapper(*args, **kwargs):
                if key_builder:
                    cache_key = key_builder(*args, **kwargs)
                else:
                    key_parts = [func.__name__]
                    key_parts.extend(str(a) for a in args)
                    key_parts.extend(f"{k}={v}" for k, v in sorted(kwargs.items()))
                    cache_key = ":".join(key_parts)

                return self.get_or_set(cache_key, lambda: func(*args, **kwargs), ttl=ttl)

            def cache_clear() -> int:
                """Clear cached results of the default key scheme."""
                return self.delete_pattern(f"{func.__name__}:*") + int(self.delete(func.__name__))

            wrapper.cache_clear = cache_clear
            wrapper.cache = self
            return wrapper

        return decorator

    def __contains__(self, key: str) -> bool:
        return self.has(key)

    def __len__(self) -> int:
        return self.size()

    def __repr__(self) -> str:
        return f"Cache(namespace={self.namespace!r})"


__all__ = ["Cache", "CacheConfig", "CacheStats"]
