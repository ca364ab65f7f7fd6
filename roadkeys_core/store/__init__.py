"""Store module - Keyspace store interface, backends and namespaces."""

from roadkeys_core.store.backend import (
    KeyspaceStore,
    StoreStats,
    StoreConfig,
)
from roadkeys_core.store.memory import MemoryStore
from roadkeys_core.store.redis import RedisStore, RedisConfig
from roadkeys_core.store.namespace import (
    NamespacedStore,
    NamespaceManager,
    normalize_prefix,
)

__all__ = [
    "KeyspaceStore",
    "StoreStats",
    "StoreConfig",
    "MemoryStore",
    "RedisStore",
    "RedisConfig",
    "NamespacedStore",
    "NamespaceManager",
    "normalize_prefix",
]
