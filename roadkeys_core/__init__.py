"""RoadKeys - Namespaced Patterns over a Shared Key-Value Store.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.

A toolkit of higher-level patterns built on one Redis-style keyspace:
- Namespace isolation by key prefixing
- Rate limiting (fixed window, sliding window, token bucket)
- Priority job queue with retries and exponential backoff
- Cache-aside caching with hit/miss statistics
- Sessions with multi-device tracking
- HyperLogLog analytics, counters and time series

Architecture:
    ┌─────────────────────────────────────────────────────────────────┐
    │                         RoadKeys System                         │
    ├─────────────────────────────────────────────────────────────────┤
    │  ┌─────────────┐  ┌─────────────┐  ┌─────────────┐             │
    │  │ RateLimiter │  │  JobQueue   │  │    Cache    │   ENGINE    │
    │  │ fixed/slide │  │ priority +  │  │ get_or_set  │   LAYER     │
    │  │ token bucket│  │  backoff    │  │ hits/misses │             │
    │  └──────┬──────┘  └──────┬──────┘  └──────┬──────┘             │
    │  ┌──────┴──────┐  ┌──────┴──────┐  ┌──────┴──────┐             │
    │  │  Sessions   │  │  Analytics  │  │   Storage   │ CONTROLLERS │
    │  └──────┬──────┘  └──────┬──────┘  └──────┬──────┘             │
    │         │                │                │                     │
    │  ┌──────┴────────────────┴────────────────┴──────┐             │
    │  │              Namespace Layer                   │  NAMESPACE  │
    │  │   "<namespace>:" prefix in, stripped out       │  LAYER      │
    │  └──────────────────────┬────────────────────────┘             │
    │                         │                                       │
    │  ┌──────────────────────┴────────────────────────┐             │
    │  │              Keyspace Stores                   │             │
    │  │        ┌────────┐          ┌────────┐         │   STORAGE   │
    │  │        │ Memory │          │ Redis  │         │   LAYER     │
    │  │        └────────┘          └────────┘         │             │
    │  └──────────────────────────────────────────────┘             │
    └─────────────────────────────────────────────────────────────────┘

Example Usage:
    from roadkeys_core import RedisStore, RedisConfig, RateLimiter, JobQueue, Cache

    store = RedisStore(RedisConfig.from_url("redis://localhost:6379/0"))

    # Rate limiting
    limiter = RateLimiter(store)
    result = limiter.check("api:user-123", 100, 60, algorithm="sliding")
    if not result.allowed:
        print(f"Retry in {result.retry_after}s")

    # Job queue
    queue = JobQueue(store)
    queue.add("send-email", {"to": "user@example.com"}, priority=8)
    job = queue.next()

    # Caching
    cache = Cache(store)
    user = cache.get_or_set("user:123", lambda: db.get_user(123), ttl=300)

    # Multi-tenant isolation
    tenant = NamespacedStore(store, "tenant-a")
    tenant.set("config", "...")   # stored as "tenant-a:config"
"""

__version__ = "1.0.0"
__author__ = "BlackRoad OS"

from roadkeys_core._internal.clock import Clock, SystemClock
from roadkeys_core.store.backend import (
    KeyspaceStore,
    StoreConfig,
    StoreStats,
)
from roadkeys_core.store.memory import MemoryStore
from roadkeys_core.store.redis import RedisStore, RedisConfig
from roadkeys_core.store.namespace import (
    NamespacedStore,
    NamespaceManager,
    normalize_prefix,
)
from roadkeys_core.ratelimit.limiter import (
    RateLimiter,
    RateLimiterConfig,
    RateLimitResult,
    RateLimitAlgorithm,
    CustomLimit,
)
from roadkeys_core.queue.job import Job, JobStatus
from roadkeys_core.queue.queue import JobQueue, QueueConfig, QueueStats
from roadkeys_core.cache.cache import Cache, CacheConfig, CacheStats
from roadkeys_core.session.sessions import SessionManager, SessionData, SessionConfig
from roadkeys_core.analytics.analytics import (
    Analytics,
    EventStats,
    TimeSeriesPoint,
    FunnelStep,
)
from roadkeys_core.storage.storage import Storage
from roadkeys_core.protocol.serializer import Serializer, JSONSerializer
from roadkeys_core.metrics.collector import (
    MetricsCollector,
    KeyspaceMetrics,
)

__all__ = [
    # Time
    "Clock",
    "SystemClock",
    # Stores
    "KeyspaceStore",
    "StoreConfig",
    "StoreStats",
    "MemoryStore",
    "RedisStore",
    "RedisConfig",
    # Namespaces
    "NamespacedStore",
    "NamespaceManager",
    "normalize_prefix",
    # Rate limiting
    "RateLimiter",
    "RateLimiterConfig",
    "RateLimitResult",
    "RateLimitAlgorithm",
    "CustomLimit",
    # Queue
    "Job",
    "JobStatus",
    "JobQueue",
    "QueueConfig",
    "QueueStats",
    # Cache
    "Cache",
    "CacheConfig",
    "CacheStats",
    # Controllers
    "SessionManager",
    "SessionData",
    "SessionConfig",
    "Analytics",
    "EventStats",
    "TimeSeriesPoint",
    "FunnelStep",
    "Storage",
    # Protocol
    "Serializer",
    "JSONSerializer",
    # Metrics
    "MetricsCollector",
    "KeyspaceMetrics",
]
