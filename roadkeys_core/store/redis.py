"""RoadKeys Redis Store - Redis Keyspace Backend.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Set

from roadkeys_core.protocol.serializer import Serializer
from roadkeys_core.store.backend import (
    KeyspaceStore,
    MessageCallback,
    ScoreBound,
    StoreConfig,
)

logger = logging.getLogger(__name__)


@dataclass
class RedisConfig(StoreConfig):
    """Redis-specific configuration.

    Attributes:
        url: Connection URL; overrides host/port/db/password when set
        host: Redis host
        port: Redis port
        db: Redis database number
        password: Redis password
        socket_timeout: Socket timeout
        socket_connect_timeout: Connection timeout
        ssl: Enable SSL
        max_connections: Connection pool size
        pubsub_sleep: Poll interval of subscriber threads
    """

    url: Optional[str] = None
    host: str = "localhost"
    port: int = 6379
    db: int = 0
    password: Optional[str] = None
    socket_timeout: float = 5.0
    socket_connect_timeout: float = 5.0
    ssl: bool = False
    max_connections: int = 10
    pubsub_sleep: float = 0.01

    @classmethod
    def from_url(cls, url: str, **kwargs) -> "RedisConfig":
        """Build a config from a ``redis://`` URL."""
        return cls(url=url, **kwargs)

    @property
    def address(self) -> str:
        return self.url or f"{self.host}:{self.port}/{self.db}"


class RedisStore(KeyspaceStore):
    """Redis keyspace backend.

    A thin typed layer over redis-py. Responses are decoded to ``str``.
    Connection and command errors (``redis.exceptions.RedisError``)
    propagate to the caller unchanged; retry policy belongs to the
    connection client, not to this store.

    Example:
        store = RedisStore(RedisConfig.from_url("redis://localhost:6379/0"))
        store.set("key", "value", ttl=60)
        store.zadd("pending", {"job-1": 1700000000000})
    """

    def __init__(
        self,
        config: Optional[RedisConfig] = None,
        client: Optional[Any] = None,
        serializer: Optional[Serializer] = None,
    ):
        """Initialize Redis store.

        Args:
            config: Redis configuration
            client: Pre-built redis client (skips pool creation)
            serializer: Serializer for the JSON helpers
        """
        super().__init__(config, serializer)
        self.config: RedisConfig = config or RedisConfig()
        self._client: Optional[Any] = client
        self._pool: Optional[Any] = None
        self._pubsub_threads: List[Any] = []

    def _ensure_connected(self) -> Any:
        """Ensure Redis connection exists.

        Returns:
            Redis client
        """
        if self._client is not None:
            return self._client

        try:
            import redis
        except ImportError:
            raise ImportError("Redis package not installed. Run: pip install redis")

        try:
            if self.config.url:
                self._pool = redis.ConnectionPool.from_url(
                    self.config.url,
                    socket_timeout=self.config.socket_timeout,
                    socket_connect_timeout=self.config.socket_connect_timeout,
                    max_connections=self.config.max_connections,
                    decode_responses=True,
                )
            else:
                pool_kwargs = dict(
                    host=self.config.host,
                    port=self.config.port,
                    db=self.config.db,
                    password=self.config.password,
                    socket_timeout=self.config.socket_timeout,
                    socket_connect_timeout=self.config.socket_connect_timeout,
                    max_connections=self.config.max_connections,
                    decode_responses=True,
                )
                if self.config.ssl:
                    pool_kwargs["connection_class"] = redis.SSLConnection
                self._pool = redis.ConnectionPool(**pool_kwargs)

            client = redis.Redis(connection_pool=self._pool)
            client.ping()
            logger.info(f"Connected to Redis at {self.config.address}")

            self._client = client
            return client

        except Exception as e:
            logger.error(f"Failed to connect to Redis: {e}")
            self._stats.record_error(str(e))
            raise

    @property
    def client(self) -> Any:
        return self._ensure_connected()

    # ------------------------------------------------------------------
    # Strings
    # ------------------------------------------------------------------

    def get(self, key: str) -> Optional[str]:
        return self.client.get(key)

    def set(
        self,
        key: str,
        value: Any,
        ttl: Optional[float] = None,
        only_if_absent: bool = False,
        only_if_present: bool = False,
        keep_ttl: bool = False,
    ) -> bool:
        px = int(ttl * 1000) if ttl is not None else None
        result = self.client.set(
            key,
            str(value),
            px=px,
            nx=only_if_absent,
            xx=only_if_present,
            keepttl=keep_ttl and px is None,
        )
        return bool(result)

    def delete(self, *keys: str) -> int:
        if not keys:
            return 0
        return self.client.delete(*keys)

    def exists(self, *keys: str) -> bool:
        if not keys:
            return False
        return self.client.exists(*keys) == len(keys)

    def mget(self, *keys: str) -> List[Optional[str]]:
        if not keys:
            return []
        return self.client.mget(keys)

    def mset(self, mapping: Dict[str, Any]) -> bool:
        if not mapping:
            return True
        return bool(self.client.mset({k: str(v) for k, v in mapping.items()}))

    # ------------------------------------------------------------------
    # Hashes
    # ------------------------------------------------------------------

    def hget(self, key: str, field: str) -> Optional[str]:
        return self.client.hget(key, field)

    def hset(self, key: str, field: str, value: Any) -> int:
        return self.client.hset(key, field, str(value))

    def hmget(self, key: str, *fields: str) -> List[Optional[str]]:
        if not fields:
            return []
        return self.client.hmget(key, fields)

    def hmset(self, key: str, mapping: Dict[str, Any]) -> bool:
        if not mapping:
            return True
        self.client.hset(key, mapping={k: str(v) for k, v in mapping.items()})
        return True

    def hgetall(self, key: str) -> Dict[str, str]:
        return self.client.hgetall(key)

    # ------------------------------------------------------------------
    # Counters
    # ------------------------------------------------------------------

    def incrby(self, key: str, amount: int) -> int:
        return self.client.incrby(key, amount)

    # ------------------------------------------------------------------
    # Expiry
    # ------------------------------------------------------------------

    def ttl(self, key: str) -> int:
        return self.client.ttl(key)

    def expire(self, key: str, seconds: float) -> bool:
        return bool(self.client.pexpire(key, int(seconds * 1000)))

    def persist(self, key: str) -> bool:
        return bool(self.client.persist(key))

    # ------------------------------------------------------------------
    # Enumeration
    # ------------------------------------------------------------------

    def scan_all(self, pattern: str = "*", count: Optional[int] = None) -> List[str]:
        client = self.client
        batch_size = count or self.config.scan_count

        keys: List[str] = []
        cursor = 0
        while True:
            cursor, batch = client.scan(cursor, match=pattern, count=batch_size)
            keys.extend(batch)
            if cursor == 0:
                break
        # SCAN may return a key more than once
        return list(dict.fromkeys(keys))

    # ------------------------------------------------------------------
    # Pub/Sub
    # ------------------------------------------------------------------

    def publish(self, channel: str, message: str) -> int:
        return self.client.publish(channel, message)

    def subscribe(self, channel: str, callback: MessageCallback) -> Callable[[], None]:
        pubsub = self.client.pubsub(ignore_subscribe_messages=True)

        def handler(message: Dict[str, Any]) -> None:
            callback(message["data"], message["channel"])

        pubsub.subscribe(**{channel: handler})
        thread = pubsub.run_in_thread(sleep_time=self.config.pubsub_sleep, daemon=True)
        self._pubsub_threads.append(thread)

        def unsubscribe() -> None:
            thread.stop()
            pubsub.close()
            if thread in self._pubsub_threads:
                self._pubsub_threads.remove(thread)

        return unsubscribe

    # ------------------------------------------------------------------
    # Lists
    # ------------------------------------------------------------------

    def lpush(self, key: str, *values: Any) -> int:
        return self.client.lpush(key, *[str(v) for v in values])

    def rpush(self, key: str, *values: Any) -> int:
        return self.client.rpush(key, *[str(v) for v in values])

    def lrange(self, key: str, start: int = 0, stop: int = -1) -> List[str]:
        return self.client.lrange(key, start, stop)

    def lpop(self, key: str) -> Optional[str]:
        return self.client.lpop(key)

    def rpop(self, key: str) -> Optional[str]:
        return self.client.rpop(key)

    # ------------------------------------------------------------------
    # Sets
    # ------------------------------------------------------------------

    def sadd(self, key: str, *members: Any) -> int:
        if not members:
            return 0
        return self.client.sadd(key, *[str(m) for m in members])

    def srem(self, key: str, *members: Any) -> int:
        if not members:
            return 0
        return self.client.srem(key, *[str(m) for m in members])

    def smembers(self, key: str) -> Set[str]:
        return set(self.client.smembers(key))

    def sismember(self, key: str, member: Any) -> bool:
        return bool(self.client.sismember(key, str(member)))

    def scard(self, key: str) -> int:
        return self.client.scard(key)

    # ------------------------------------------------------------------
    # Sorted sets
    # ------------------------------------------------------------------

    def zadd(self, key: str, mapping: Dict[str, float]) -> int:
        return self.client.zadd(key, {str(m): s for m, s in mapping.items()})

    def zrange(self, key, start, stop, withscores=False):
        return self.client.zrange(key, start, stop, withscores=withscores)

    def zrevrange(self, key, start, stop, withscores=False):
        return self.client.zrevrange(key, start, stop, withscores=withscores)

    def zrangebyscore(self, key, min, max, start=None, num=None, withscores=False):
        return self.client.zrangebyscore(
            key, min, max, start=start, num=num, withscores=withscores
        )

    def zrem(self, key: str, *members: Any) -> int:
        if not members:
            return 0
        return self.client.zrem(key, *[str(m) for m in members])

    def zscore(self, key: str, member: Any) -> Optional[float]:
        return self.client.zscore(key, str(member))

    def zrank(self, key: str, member: Any) -> Optional[int]:
        return self.client.zrank(key, str(member))

    def zrevrank(self, key: str, member: Any) -> Optional[int]:
        return self.client.zrevrank(key, str(member))

    def zincrby(self, key: str, amount: float, member: Any) -> float:
        return self.client.zincrby(key, amount, str(member))

    def zcard(self, key: str) -> int:
        return self.client.zcard(key)

    def zremrangebyscore(self, key: str, min: ScoreBound, max: ScoreBound) -> int:
        return self.client.zremrangebyscore(key, min, max)

    # ------------------------------------------------------------------
    # HyperLogLog
    # ------------------------------------------------------------------

    def pfadd(self, key: str, *elements: Any) -> int:
        return self.client.pfadd(key, *[str(e) for e in elements])

    def pfcount(self, *keys: str) -> int:
        if not keys:
            return 0
        return self.client.pfcount(*keys)

    def pfmerge(self, dest: str, *sources: str) -> bool:
        return bool(self.client.pfmerge(dest, *sources))

    # ------------------------------------------------------------------

    def health_check(self) -> bool:
        try:
            return bool(self.client.ping())
        except Exception as e:
            logger.error(f"Health check failed: {e}")
            return False

    def info(self) -> Dict[str, Any]:
        """Get Redis server info."""
        return self.client.info()

    def close(self) -> None:
        """Stop subscriber threads and close the connection pool."""
        for thread in list(self._pubsub_threads):
            thread.stop()
        self._pubsub_threads.clear()
        if self._pool:
            self._pool.disconnect()
            self._pool = None
            self._client = None
            logger.info(f"Closed Redis connection to {self.config.address}")

    def __repr__(self) -> str:
        return f"RedisStore(address={self.config.address!r})"


__all__ = ["RedisStore", "RedisConfig"]
