"""RoadKeys Namespace - Key-Prefixed Store Views.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Dict, Iterator, List, Optional, Set

from roadkeys_core.store.backend import (
    KeyspaceStore,
    MessageCallback,
    ScoreBound,
    StoreStats,
)

logger = logging.getLogger(__name__)

SEPARATOR = ":"
GLOB_CHARS = frozenset("*?[]\\")


def normalize_prefix(namespace: str) -> str:
    """Turn a namespace name into its key prefix.

    A trailing separator is kept as-is, otherwise exactly one is appended,
    so ``"a"`` and ``"a:"`` give the same prefix and ``"a"``/``"ab"`` never
    overlap.

    Glob characters are rejected since the prefix is used verbatim in
    scan patterns.

    Raises:
        ValueError: If namespace is empty or contains a glob character
    """
    if not namespace or namespace == SEPARATOR:
        raise ValueError("namespace must be a non-empty string")
    if GLOB_CHARS.intersection(namespace):
        raise ValueError(f"namespace may not contain glob characters: {namespace!r}")
    if namespace.endswith(SEPARATOR):
        return namespace
    return f"{namespace}{SEPARATOR}"


class NamespacedStore(KeyspaceStore):
    """Keyspace view that confines every key to one namespace.

    Every key (and pub/sub channel) argument is prefixed with
    ``<namespace>:`` before delegating to the wrapped store, and keys
    returned by ``scan_all`` have the prefix stripped so callers only see
    namespace-relative names. Hash fields are never prefixed; they are
    already scoped by their prefixed hash key.

    The view holds no data of its own. Dropping it has no effect on the
    underlying store.

    Example:
        tenant = NamespacedStore(store, "tenant-a")
        tenant.set("user:1", "alice")      # writes "tenant-a:user:1"
        tenant.scan_all("user:*")          # ["user:1"]
    """

    def __init__(self, store: KeyspaceStore, namespace: str):
        """Initialize namespaced view.

        Args:
            store: Store to delegate to
            namespace: Namespace name
        """
        super().__init__(store.config)
        self._store = store
        self.prefix = normalize_prefix(namespace)
        self.name = self.prefix[:-len(SEPARATOR)]

    @property
    def store(self) -> KeyspaceStore:
        """The wrapped store."""
        return self._store

    def _key(self, key: str) -> str:
        return f"{self.prefix}{key}"

    def _keys(self, keys) -> List[str]:
        return [self._key(k) for k in keys]

    def _strip(self, key: str) -> str:
        if key.startswith(self.prefix):
            return key[len(self.prefix):]
        return key

    def namespace(self, name: str) -> "NamespacedStore":
        """Create a nested namespace (``app`` -> ``app:users``)."""
        return NamespacedStore(self._store, f"{self.prefix}{normalize_prefix(name)}")

    # ------------------------------------------------------------------
    # Strings
    # ------------------------------------------------------------------

    def get(self, key: str) -> Optional[str]:
        return self._store.get(self._key(key))

    def set(
        self,
        key: str,
        value: Any,
        ttl: Optional[float] = None,
        only_if_absent: bool = False,
        only_if_present: bool = False,
        keep_ttl: bool = False,
    ) -> bool:
        return self._store.set(
            self._key(key),
            value,
            ttl=ttl,
            only_if_absent=only_if_absent,
            only_if_present=only_if_present,
            keep_ttl=keep_ttl,
        )

    def delete(self, *keys: str) -> int:
        return self._store.delete(*self._keys(keys))

    def exists(self, *keys: str) -> bool:
        return self._store.exists(*self._keys(keys))

    def mget(self, *keys: str) -> List[Optional[str]]:
        return self._store.mget(*self._keys(keys))

    def mset(self, mapping: Dict[str, Any]) -> bool:
        return self._store.mset({self._key(k): v for k, v in mapping.items()})

    def get_json(self, key: str) -> Any:
        return self._store.get_json(self._key(key))

    def set_json(self, key: str, value: Any, ttl: Optional[float] = None, **kwargs) -> bool:
        return self._store.set_json(self._key(key), value, ttl=ttl, **kwargs)

    # ------------------------------------------------------------------
    # Hashes
    # ------------------------------------------------------------------

    def hget(self, key: str, field: str) -> Optional[str]:
        return self._store.hget(self._key(key), field)

    def hset(self, key: str, field: str, value: Any) -> int:
        return self._store.hset(self._key(key), field, value)

    def hmget(self, key: str, *fields: str) -> List[Optional[str]]:
        return self._store.hmget(self._key(key), *fields)

    def hmset(self, key: str, mapping: Dict[str, Any]) -> bool:
        return self._store.hmset(self._key(key), mapping)

    def hgetall(self, key: str) -> Dict[str, str]:
        return self._store.hgetall(self._key(key))

    # ------------------------------------------------------------------
    # Counters
    # ------------------------------------------------------------------

    def incrby(self, key: str, amount: int) -> int:
        return self._store.incrby(self._key(key), amount)

    def incr(self, key: str) -> int:
        return self._store.incr(self._key(key))

    def decr(self, key: str) -> int:
        return self._store.decr(self._key(key))

    def decrby(self, key: str, amount: int) -> int:
        return self._store.decrby(self._key(key), amount)

    # ------------------------------------------------------------------
    # Expiry
    # ------------------------------------------------------------------

    def ttl(self, key: str) -> int:
        return self._store.ttl(self._key(key))

    def expire(self, key: str, seconds: float) -> bool:
        return self._store.expire(self._key(key), seconds)

    def persist(self, key: str) -> bool:
        return self._store.persist(self._key(key))

    # ------------------------------------------------------------------
    # Enumeration
    # ------------------------------------------------------------------

    def scan_all(self, pattern: str = "*", count: Optional[int] = None) -> List[str]:
        keys = self._store.scan_all(self._key(pattern), count)
        return [self._strip(k) for k in keys]

    def clear(self) -> int:
        """Delete every key in this namespace.

        Returns:
            Number of keys deleted
        """
        keys = self._store.scan_all(self._key("*"))
        if not keys:
            return 0
        count = self._store.delete(*keys)
        logger.debug(f"Cleared {count} keys from namespace {self.name!r}")
        return count

    # ------------------------------------------------------------------
    # Pub/Sub
    # ------------------------------------------------------------------

    def publish(self, channel: str, message: str) -> int:
        return self._store.publish(self._key(channel), message)

    def subscribe(self, channel: str, callback: MessageCallback) -> Callable[[], None]:
        def relative(message: str, full_channel: str) -> None:
            callback(message, self._strip(full_channel))

        return self._store.subscribe(self._key(channel), relative)

    # ------------------------------------------------------------------
    # Lists
    # ------------------------------------------------------------------

    def lpush(self, key: str, *values: Any) -> int:
        return self._store.lpush(self._key(key), *values)

    def rpush(self, key: str, *values: Any) -> int:
        return self._store.rpush(self._key(key), *values)

    def lrange(self, key: str, start: int = 0, stop: int = -1) -> List[str]:
        return self._store.lrange(self._key(key), start, stop)

    def lpop(self, key: str) -> Optional[str]:
        return self._store.lpop(self._key(key))

    def rpop(self, key: str) -> Optional[str]:
        return self._store.rpop(self._key(key))

    # ------------------------------------------------------------------
    # Sets
    # ------------------------------------------------------------------

    def sadd(self, key: str, *members: Any) -> int:
        return self._store.sadd(self._key(key), *members)

    def srem(self, key: str, *members: Any) -> int:
        return self._store.srem(self._key(key), *members)

    def smembers(self, key: str) -> Set[str]:
        return self._store.smembers(self._key(key))

    def sismember(self, key: str, member: Any) -> bool:
        return self._store.sismember(self._key(key), member)

    def scard(self, key: str) -> int:
        return self._store.scard(self._key(key))

    # ------------------------------------------------------------------
    # Sorted sets
    # ------------------------------------------------------------------

    def zadd(self, key: str, mapping: Dict[str, float]) -> int:
        return self._store.zadd(self._key(key), mapping)

    def zrange(self, key, start, stop, withscores=False):
        return self._store.zrange(self._key(key), start, stop, withscores=withscores)

    def zrevrange(self, key, start, stop, withscores=False):
        return self._store.zrevrange(self._key(key), start, stop, withscores=withscores)

    def zrangebyscore(self, key, min, max, start=None, num=None, withscores=False):
        return self._store.zrangebyscore(
            self._key(key), min, max, start=start, num=num, withscores=withscores
        )

    def zrem(self, key: str, *members: Any) -> int:
        return self._store.zrem(self._key(key), *members)

    def zscore(self, key: str, member: Any) -> Optional[float]:
        return self._store.zscore(self._key(key), member)

    def zrank(self, key: str, member: Any) -> Optional[int]:
        return self._store.zrank(self._key(key), member)

    def zrevrank(self, key: str, member: Any) -> Optional[int]:
        return self._store.zrevrank(self._key(key), member)

    def zincrby(self, key: str, amount: float, member: Any) -> float:
        return self._store.zincrby(self._key(key), amount, member)

    def zcard(self, key: str) -> int:
        return self._store.zcard(self._key(key))

    def zremrangebyscore(self, key: str, min: ScoreBound, max: ScoreBound) -> int:
        return self._store.zremrangebyscore(self._key(key), min, max)

    # ------------------------------------------------------------------
    # HyperLogLog
    # ------------------------------------------------------------------

    def pfadd(self, key: str, *elements: Any) -> int:
        return self._store.pfadd(self._key(key), *elements)

    def pfcount(self, *keys: str) -> int:
        return self._store.pfcount(*self._keys(keys))

    def pfmerge(self, dest: str, *sources: str) -> bool:
        return self._store.pfmerge(self._key(dest), *self._keys(sources))

    # ------------------------------------------------------------------

    def get_stats(self) -> StoreStats:
        return self._store.get_stats()

    def reset_stats(self) -> None:
        self._store.reset_stats()

    def health_check(self) -> bool:
        return self._store.health_check()

    def __repr__(self) -> str:
        return f"NamespacedStore(prefix={self.prefix!r}, store={self._store!r})"


class NamespaceManager:
    """Manager for the namespaces sharing one store.

    Provides:
    - Cached namespace views by name
    - Namespace discovery
    - Whole-namespace deletion
    """

    def __init__(self, store: KeyspaceStore):
        """Initialize manager.

        Args:
            store: Shared store
        """
        self._store = store
        self._namespaces: Dict[str, NamespacedStore] = {}
        self._lock = threading.RLock()

    def create(self, name: str) -> NamespacedStore:
        """Create or get a namespace view.

        Args:
            name: Namespace name

        Returns:
            NamespacedStore instance
        """
        prefix = normalize_prefix(name)
        with self._lock:
            namespace = self._namespaces.get(prefix)
            if namespace is None:
                namespace = NamespacedStore(self._store, prefix)
                self._namespaces[prefix] = namespace
            return namespace

    def get(self, name: str) -> Optional[NamespacedStore]:
        """Get an existing namespace view, or None."""
        return self._namespaces.get(normalize_prefix(name))

    def delete(self, name: str, clear: bool = True) -> bool:
        """Forget a namespace.

        Args:
            name: Namespace name
            clear: Also delete all of its keys

        Returns:
            True if the namespace was known
        """
        with self._lock:
            namespace = self._namespaces.pop(normalize_prefix(name), None)
        if namespace is None:
            return False
        if clear:
            namespace.clear()
        return True

    def exists(self, name: str) -> bool:
        return normalize_prefix(name) in self._namespaces

    def list(self) -> List[str]:
        """List known namespace names."""
        return [ns.name for ns in self._namespaces.values()]

    def __getitem__(self, name: str) -> NamespacedStore:
        return self.create(name)

    def __contains__(self, name: str) -> bool:
        return self.exists(name)

    def __len__(self) -> int:
        return len(self._namespaces)

    def __iter__(self) -> Iterator[NamespacedStore]:
        return iter(list(self._namespaces.values()))


__all__ = [
    "NamespacedStore",
    "NamespaceManager",
    "normalize_prefix",
    "SEPARATOR",
]
