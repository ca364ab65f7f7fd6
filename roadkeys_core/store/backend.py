"""RoadKeys Keyspace Store - Abstract Store Interface.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Set, Tuple, Union

from roadkeys_core.protocol.serializer import JSONSerializer, Serializer

logger = logging.getLogger(__name__)

# A sorted-set score bound: a number, "-inf", "+inf" or "(<n>" for exclusive.
ScoreBound = Union[float, int, str]

# Callback invoked as callback(message, channel).
MessageCallback = Callable[[str, str], None]


@dataclass
class StoreConfig:
    """Store configuration.

    Attributes:
        name: Store name
        scan_count: Keys requested per SCAN round trip
    """

    name: str = "keyspace"
    scan_count: int = 100


@dataclass
class StoreStats:
    """Store statistics.

    Attributes:
        errors: Number of transport errors seen
        decode_errors: Stored values that failed to deserialize
        last_error: Last transport error message
        last_decode_error: Key of the last value that failed to deserialize
    """

    errors: int = 0
    decode_errors: int = 0
    last_error: Optional[str] = None
    last_error_at: Optional[datetime] = None
    last_decode_error: Optional[str] = None
    last_decode_error_at: Optional[datetime] = None

    def record_error(self, error: str) -> None:
        """Record a transport error."""
        self.errors += 1
        self.last_error = error
        self.last_error_at = datetime.now()

    def record_decode_error(self, key: str) -> None:
        """Record a value that could not be decoded."""
        self.decode_errors += 1
        self.last_decode_error = key
        self.last_decode_error_at = datetime.now()


class KeyspaceStore(ABC):
    """Abstract key-value store with Redis-compatible data structures.

    Implementations:
    - MemoryStore: In-process store, used for tests and single-process use
    - RedisStore: Redis backend through redis-py
    - NamespacedStore: Prefixing view over another store

    Every operation that takes a key treats it as an opaque string.
    Sorted-set operations follow redis-py conventions: ``zadd`` takes a
    ``{member: score}`` mapping and ``zincrby`` takes ``(key, amount, member)``.
    Missing keys are reported as ``None``/``0``/empty, never as errors.
    """

    def __init__(
        self,
        config: Optional[StoreConfig] = None,
        serializer: Optional[Serializer] = None,
    ):
        self.config = config or StoreConfig()
        self._serializer = serializer or JSONSerializer()
        self._stats = StoreStats()

    # ------------------------------------------------------------------
    # Strings
    # ------------------------------------------------------------------

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """Get the string value of a key, or None."""
        pass

    @abstractmethod
    def set(
        self,
        key: str,
        value: Any,
        ttl: Optional[float] = None,
        only_if_absent: bool = False,
        only_if_present: bool = False,
        keep_ttl: bool = False,
    ) -> bool:
        """Set the string value of a key.

        Args:
            key: Key
            value: Value, converted with ``str``
            ttl: Expiry in seconds
            only_if_absent: NX semantics
            only_if_present: XX semantics
            keep_ttl: Retain the existing expiry

        Returns:
            True if the value was written
        """
        pass

    @abstractmethod
    def delete(self, *keys: str) -> int:
        """Delete keys. Returns the number removed."""
        pass

    @abstractmethod
    def exists(self, *keys: str) -> bool:
        """True if every given key exists."""
        pass

    @abstractmethod
    def mget(self, *keys: str) -> List[Optional[str]]:
        """Get several values; missing keys yield None."""
        pass

    @abstractmethod
    def mset(self, mapping: Dict[str, Any]) -> bool:
        """Set several keys at once."""
        pass

    # ------------------------------------------------------------------
    # Hashes
    # ------------------------------------------------------------------

    @abstractmethod
    def hget(self, key: str, field: str) -> Optional[str]:
        pass

    @abstractmethod
    def hset(self, key: str, field: str, value: Any) -> int:
        """Set a hash field. Returns 1 if the field is new, else 0."""
        pass

    @abstractmethod
    def hmget(self, key: str, *fields: str) -> List[Optional[str]]:
        pass

    @abstractmethod
    def hmset(self, key: str, mapping: Dict[str, Any]) -> bool:
        pass

    @abstractmethod
    def hgetall(self, key: str) -> Dict[str, str]:
        pass

    # ------------------------------------------------------------------
    # Counters
    # ------------------------------------------------------------------

    @abstractmethod
    def incrby(self, key: str, amount: int) -> int:
        """Atomically add ``amount`` to an integer key."""
        pass

    def incr(self, key: str) -> int:
        return self.incrby(key, 1)

    def decr(self, key: str) -> int:
        return self.incrby(key, -1)

    def decrby(self, key: str, amount: int) -> int:
        return self.incrby(key, -amount)

    # ------------------------------------------------------------------
    # Expiry
    # ------------------------------------------------------------------

    @abstractmethod
    def ttl(self, key: str) -> int:
        """Remaining TTL in seconds: -1 if no expiry, -2 if missing."""
        pass

    @abstractmethod
    def expire(self, key: str, seconds: float) -> bool:
        """Set a key's expiry. False if the key does not exist."""
        pass

    @abstractmethod
    def persist(self, key: str) -> bool:
        """Remove a key's expiry. False if there was none."""
        pass

    # ------------------------------------------------------------------
    # Enumeration
    # ------------------------------------------------------------------

    @abstractmethod
    def scan_all(self, pattern: str = "*", count: Optional[int] = None) -> List[str]:
        """Collect every key matching a glob pattern.

        Args:
            pattern: Glob pattern
            count: Batch size hint per SCAN round trip

        Returns:
            Fully materialized list of keys
        """
        pass

    # ------------------------------------------------------------------
    # Pub/Sub
    # ------------------------------------------------------------------

    @abstractmethod
    def publish(self, channel: str, message: str) -> int:
        """Publish a message. Returns the number of receivers."""
        pass

    @abstractmethod
    def subscribe(self, channel: str, callback: MessageCallback) -> Callable[[], None]:
        """Subscribe to a channel.

        Returns:
            A callable that unsubscribes
        """
        pass

    # ------------------------------------------------------------------
    # Lists
    # ------------------------------------------------------------------

    @abstractmethod
    def lpush(self, key: str, *values: Any) -> int:
        pass

    @abstractmethod
    def rpush(self, key: str, *values: Any) -> int:
        pass

    @abstractmethod
    def lrange(self, key: str, start: int = 0, stop: int = -1) -> List[str]:
        pass

    @abstractmethod
    def lpop(self, key: str) -> Optional[str]:
        pass

    @abstractmethod
    def rpop(self, key: str) -> Optional[str]:
        pass

    # ------------------------------------------------------------------
    # Sets
    # ------------------------------------------------------------------

    @abstractmethod
    def sadd(self, key: str, *members: Any) -> int:
        pass

    @abstractmethod
    def srem(self, key: str, *members: Any) -> int:
        pass

    @abstractmethod
    def smembers(self, key: str) -> Set[str]:
        pass

    @abstractmethod
    def sismember(self, key: str, member: Any) -> bool:
        pass

    @abstractmethod
    def scard(self, key: str) -> int:
        pass

    # ------------------------------------------------------------------
    # Sorted sets
    # ------------------------------------------------------------------

    @abstractmethod
    def zadd(self, key: str, mapping: Dict[str, float]) -> int:
        """Add members with scores. Returns the number of new members."""
        pass

    @abstractmethod
    def zrange(
        self,
        key: str,
        start: int,
        stop: int,
        withscores: bool = False,
    ) -> Union[List[str], List[Tuple[str, float]]]:
        """Members by ascending rank, inclusive of ``stop``."""
        pass

    @abstractmethod
    def zrevrange(
        self,
        key: str,
        start: int,
        stop: int,
        withscores: bool = False,
    ) -> Union[List[str], List[Tuple[str, float]]]:
        """Members by descending rank, inclusive of ``stop``."""
        pass

    @abstractmethod
    def zrangebyscore(
        self,
        key: str,
        min: ScoreBound,
        max: ScoreBound,
        start: Optional[int] = None,
        num: Optional[int] = None,
        withscores: bool = False,
    ) -> Union[List[str], List[Tuple[str, float]]]:
        """Members with ``min <= score <= max`` in ascending order.

        ``start``/``num`` apply a LIMIT offset and count.
        """
        pass

    @abstractmethod
    def zrem(self, key: str, *members: Any) -> int:
        """Remove members. Returns how many were actually removed."""
        pass

    @abstractmethod
    def zscore(self, key: str, member: Any) -> Optional[float]:
        pass

    @abstractmethod
    def zrank(self, key: str, member: Any) -> Optional[int]:
        pass

    @abstractmethod
    def zrevrank(self, key: str, member: Any) -> Optional[int]:
        pass

    @abstractmethod
    def zincrby(self, key: str, amount: float, member: Any) -> float:
        pass

    @abstractmethod
    def zcard(self, key: str) -> int:
        pass

    @abstractmethod
    def zremrangebyscore(self, key: str, min: ScoreBound, max: ScoreBound) -> int:
        pass

    # ------------------------------------------------------------------
    # HyperLogLog
    # ------------------------------------------------------------------

    @abstractmethod
    def pfadd(self, key: str, *elements: Any) -> int:
        """Add elements. Returns 1 if the estimate changed."""
        pass

    @abstractmethod
    def pfcount(self, *keys: str) -> int:
        """Approximate cardinality of the union of the given keys."""
        pass

    @abstractmethod
    def pfmerge(self, dest: str, *sources: str) -> bool:
        pass

    # ------------------------------------------------------------------
    # JSON helpers
    # ------------------------------------------------------------------

    def get_json(self, key: str) -> Any:
        """Get and decode a serialized value.

        A value that fails to decode is treated as missing. The failure
        is counted in ``StoreStats.decode_errors`` and logged.

        Args:
            key: Key

        Returns:
            Decoded value or None
        """
        data = self.get(key)
        if data is None:
            return None
        try:
            return self._serializer.deserialize(data)
        except (ValueError, TypeError) as e:
            logger.warning(f"Discarding undecodable value at {key!r}: {e}")
            self._stats.record_decode_error(key)
            return None

    def set_json(self, key: str, value: Any, ttl: Optional[float] = None, **kwargs) -> bool:
        """Serialize and store a value.

        Args:
            key: Key
            value: JSON-compatible value
            ttl: Expiry in seconds
            **kwargs: Passed through to ``set``

        Returns:
            True if written
        """
        return self.set(key, self._serializer.serialize(value), ttl=ttl, **kwargs)

    # ------------------------------------------------------------------
    # Housekeeping
    # ------------------------------------------------------------------

    def get_stats(self) -> StoreStats:
        """Get store statistics."""
        return self._stats

    def reset_stats(self) -> None:
        self._stats = StoreStats()

    def health_check(self) -> bool:
        """Check store health with a write/read/delete round trip.

        Returns:
            True if healthy
        """
        try:
            test_key = "__health_check__"
            self.set(test_key, "ok", ttl=10)
            result = self.get(test_key)
            self.delete(test_key)
            return result == "ok"
        except Exception as e:
            logger.error(f"Health check failed: {e}")
            return False

    def close(self) -> None:
        """Release any resources held by the store."""

    def __enter__(self) -> "KeyspaceStore":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def __contains__(self, key: str) -> bool:
        return self.exists(key)


__all__ = [
    "KeyspaceStore",
    "StoreConfig",
    "StoreStats",
    "ScoreBound",
    "MessageCallback",
]
