"""RoadKeys Storage - Namespaced JSON Key-Value Storage.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from roadkeys_core.store.backend import KeyspaceStore
from roadkeys_core.store.namespace import NamespacedStore

logger = logging.getLogger(__name__)

PATH_SEPARATOR = "."


class Storage:
    """JSON document storage in one namespace.

    Example:
        settings = Storage(store, "settings")
        settings.set("theme", {"mode": "dark"})
        settings.update_property("theme", "colors.accent", "#ff1d6c")
    """

    def __init__(self, store: KeyspaceStore, namespace: str = "storage"):
        self._store = NamespacedStore(store, namespace)

    @property
    def namespace(self) -> str:
        return self._store.name

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> bool:
        """Store a JSON value, optionally expiring after ``ttl`` seconds."""
        return self._store.set_json(key, value, ttl=ttl)

    def get(self, key: str, default: Any = None) -> Any:
        value = self._store.get_json(key)
        return default if value is None else value

    def has(self, key: str) -> bool:
        return self._store.exists(key)

    def delete(self, key: str) -> bool:
        return self._store.delete(key) > 0

    def delete_many(self, *keys: str) -> int:
        if not keys:
            return 0
        return self._store.delete(*keys)

    def set_many(self, entries: Dict[str, Any], ttl: Optional[float] = None) -> int:
        """Store several values.

        Returns:
            Number of values written
        """
        return sum(1 for key, value in entries.items() if self.set(key, value, ttl=ttl))

    def get_many(self, *keys: str) -> Dict[str, Any]:
        """Get several values; missing keys map to None."""
        return {key: self.get(key) for key in keys}

    def keys(self, pattern: str = "*") -> List[str]:
        return self._store.scan_all(pattern)

    def get_all(self) -> Dict[str, Any]:
        result = {}
        for key in self.keys():
            value = self.get(key)
            if value is not None:
                result[key] = value
        return result

    def count(self, pattern: str = "*") -> int:
        return len(self.keys(pattern))

    def clear(self) -> int:
        return self._store.clear()

    # ------------------------------------------------------------------
    # Counters and expiry
    # ------------------------------------------------------------------

    def increment(self, key: str, amount: int = 1) -> int:
        return self._store.incrby(key, amount)

    def decrement(self, key: str, amount: int = 1) -> int:
        return self._store.decrby(key, amount)

    def ttl(self, key: str) -> int:
        return self._store.ttl(key)

    def expire(self, key: str, seconds: float) -> bool:
        return self._store.expire(key, seconds)

    def persist(self, key: str) -> bool:
        return self._store.persist(key)

    # ------------------------------------------------------------------
    # Document updates
    # ------------------------------------------------------------------

    def append_to_array(self, key: str, *items: Any) -> int:
        """Append items to a stored list, creating it if needed.

        The key's TTL is preserved.

        Returns:
            New list length

        Raises:
            ValueError: If the stored value is not a list
        """
        current = self._store.get_json(key)
        if current is None:
            current = []
        elif not isinstance(current, list):
            raise ValueError(f"value at {key!r} is not a list")

        current.extend(items)
        self._store.set_json(key, current, keep_ttl=True)
        return len(current)

    def remove_from_array(self, key: str, item: Any) -> bool:
        """Remove the first occurrence of an item from a stored list.

        Returns:
            False if the list or the item does not exist
        """
        current = self._store.get_json(key)
        if not isinstance(current, list) or item not in current:
            return False

        current.remove(item)
        self._store.set_json(key, current, keep_ttl=True)
        return True

    def update_property(self, key: str, path: str, value: Any) -> Dict[str, Any]:
        """Set a nested property of a stored object.

        Missing intermediate objects are created, so
        ``update_property("user", "prefs.theme", "dark")`` works on an
        empty key.

        Args:
            key: Storage key
            path: Dot-separated property path
            value: New value

        Returns:
            The updated object

        Raises:
            ValueError: If the stored value (or an intermediate) is not an object
        """
        current = self._store.get_json(key)
        if current is None:
            current = {}
        if not isinstance(current, dict):
            raise ValueError(f"value at {key!r} is not an object")

        parts = path.split(PATH_SEPARATOR)
        node = current
        for part in parts[:-1]:
            child = node.setdefault(part, {})
            if not isinstance(child, dict):
                raise ValueError(f"property {part!r} of {key!r} is not an object")
            node = child
        node[parts[-1]] = value

        self._store.set_json(key, current, keep_ttl=True)
        return current

    def __contains__(self, key: str) -> bool:
        return self.has(key)

    def __repr__(self) -> str:
        return f"Storage(namespace={self.namespace!r})"


__all__ = ["Storage"]
