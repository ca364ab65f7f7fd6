"""RoadKeys Memory Store - In-Process Keyspace.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

import fnmatch
import logging
import math
import threading
from typing import Any, Callable, Dict, List, Optional, Set, Tuple, Type, Union

from roadkeys_core._internal.clock import Clock, SystemClock
from roadkeys_core.protocol.serializer import Serializer
from roadkeys_core.store.backend import (
    KeyspaceStore,
    MessageCallback,
    ScoreBound,
    StoreConfig,
)

logger = logging.getLogger(__name__)


class _SortedSet(dict):
    """member -> score."""

    def ordered(self) -> List[Tuple[str, float]]:
        return sorted(self.items(), key=lambda item: (item[1], item[0]))


class _HyperLogLog(set):
    """Exact stand-in for a HyperLogLog register set."""


def _parse_bound(bound: ScoreBound) -> Tuple[float, bool]:
    """Parse a score bound into (value, exclusive)."""
    if isinstance(bound, str):
        text = bound.strip()
        exclusive = text.startswith("(")
        if exclusive:
            text = text[1:]
        if text in ("-inf", "-Inf"):
            return -math.inf, exclusive
        if text in ("+inf", "inf", "+Inf"):
            return math.inf, exclusive
        return float(text), exclusive
    return float(bound), False


def _in_range(score: float, low: Tuple[float, bool], high: Tuple[float, bool]) -> bool:
    low_value, low_exclusive = low
    high_value, high_exclusive = high
    if score < low_value or (low_exclusive and score == low_value):
        return False
    if score > high_value or (high_exclusive and score == high_value):
        return False
    return True


def _index_slice(items: list, start: int, stop: int) -> list:
    """Slice with inclusive Redis index semantics (negative from end)."""
    n = len(items)
    if start < 0:
        start += n
    if stop < 0:
        stop += n
    start = max(start, 0)
    if start >= n or start > stop:
        return []
    stop = min(stop, n - 1)
    return items[start:stop + 1]


class MemoryStore(KeyspaceStore):
    """In-process keyspace store.

    Implements the full ``KeyspaceStore`` interface on Python containers,
    with lazy TTL expiry driven by an injectable clock. Best for tests and
    single-process applications.

    Features:
    - Thread-safe with RLock
    - Glob key scanning
    - Sorted sets, sets, hashes and lists
    - Synchronous pub/sub dispatch
    - HyperLogLog commands backed by exact sets

    Example:
        store = MemoryStore()
        store.set("key", "value", ttl=60)
        store.zadd("scores", {"alice": 10})
    """

    def __init__(
        self,
        config: Optional[StoreConfig] = None,
        clock: Optional[Clock] = None,
        serializer: Optional[Serializer] = None,
    ):
        """Initialize memory store.

        Args:
            config: Store configuration
            clock: Time source for expiry
            serializer: Serializer for the JSON helpers
        """
        super().__init__(config, serializer)
        self._clock = clock or SystemClock()
        self._data: Dict[str, Any] = {}
        self._expires: Dict[str, float] = {}
        self._subscribers: Dict[str, List[MessageCallback]] = {}
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _expired(self, key: str) -> bool:
        deadline = self._expires.get(key)
        return deadline is not None and self._clock.time() >= deadline

    def _drop(self, key: str) -> None:
        self._data.pop(key, None)
        self._expires.pop(key, None)

    def _lookup(self, key: str, kind: Optional[Type] = None) -> Any:
        """Return the live value at key, purging it if expired."""
        if key in self._data and self._expired(key):
            self._drop(key)
        value = self._data.get(key)
        if value is not None and kind is not None and type(value) is not kind:
            raise TypeError(
                f"WRONGTYPE key {key!r} holds {type(value).__name__}, "
                f"not {kind.__name__}"
            )
        return value

    def _container(self, key: str, kind: Type) -> Any:
        """Return the container at key, creating it if missing."""
        value = self._lookup(key, kind)
        if value is None:
            value = kind()
            self._data[key] = value
        return value

    def _prune_empty(self, key: str) -> None:
        value = self._data.get(key)
        if value is not None and not isinstance(value, str) and len(value) == 0:
            self._drop(key)

    # ------------------------------------------------------------------
    # Strings
    # ------------------------------------------------------------------

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._lookup(key, str)

    def set(
        self,
        key: str,
        value: Any,
        ttl: Optional[float] = None,
        only_if_absent: bool = False,
        only_if_present: bool = False,
        keep_ttl: bool = False,
    ) -> bool:
        with self._lock:
            exists = self._lookup(key) is not None
            if only_if_absent and exists:
                return False
            if only_if_present and not exists:
                return False

            self._data[key] = str(value)
            if ttl is not None:
                self._expires[key] = self._clock.time() + ttl
            elif not keep_ttl:
                self._expires.pop(key, None)
            return True

    def delete(self, *keys: str) -> int:
        with self._lock:
            count = 0
            for key in keys:
                if self._lookup(key) is not None:
                    self._drop(key)
                    count += 1
            return count

    def exists(self, *keys: str) -> bool:
        if not keys:
            return False
        with self._lock:
            return all(self._lookup(key) is not None for key in keys)

    def mget(self, *keys: str) -> List[Optional[str]]:
        with self._lock:
            return [self._lookup(key, str) for key in keys]

    def mset(self, mapping: Dict[str, Any]) -> bool:
        with self._lock:
            for key, value in mapping.items():
                self.set(key, value)
            return True

    # ------------------------------------------------------------------
    # Hashes
    # ------------------------------------------------------------------

    def hget(self, key: str, field: str) -> Optional[str]:
        with self._lock:
            value = self._lookup(key, dict)
            return None if value is None else value.get(field)

    def hset(self, key: str, field: str, value: Any) -> int:
        with self._lock:
            fields = self._container(key, dict)
            is_new = field not in fields
            fields[field] = str(value)
            return 1 if is_new else 0

    def hmget(self, key: str, *fields: str) -> List[Optional[str]]:
        with self._lock:
            value = self._lookup(key, dict) or {}
            return [value.get(field) for field in fields]

    def hmset(self, key: str, mapping: Dict[str, Any]) -> bool:
        with self._lock:
            fields = self._container(key, dict)
            for field, value in mapping.items():
                fields[field] = str(value)
            return True

    def hgetall(self, key: str) -> Dict[str, str]:
        with self._lock:
            return dict(self._lookup(key, dict) or {})

    # ------------------------------------------------------------------
    # Counters
    # ------------------------------------------------------------------

    def incrby(self, key: str, amount: int) -> int:
        with self._lock:
            current = self._lookup(key, str)
            try:
                value = int(current) if current is not None else 0
            except ValueError:
                raise ValueError(f"value at {key!r} is not an integer")
            value += amount
            self._data[key] = str(value)
            return value

    # ------------------------------------------------------------------
    # Expiry
    # ------------------------------------------------------------------

    def ttl(self, key: str) -> int:
        with self._lock:
            if self._lookup(key) is None:
                return -2
            deadline = self._expires.get(key)
            if deadline is None:
                return -1
            return max(0, math.ceil(deadline - self._clock.time()))

    def expire(self, key: str, seconds: float) -> bool:
        with self._lock:
            if self._lookup(key) is None:
                return False
            if seconds <= 0:
                self._drop(key)
            else:
                self._expires[key] = self._clock.time() + seconds
            return True

    def persist(self, key: str) -> bool:
        with self._lock:
            if self._lookup(key) is None:
                return False
            return self._expires.pop(key, None) is not None

    # ------------------------------------------------------------------
    # Enumeration
    # ------------------------------------------------------------------

    def scan_all(self, pattern: str = "*", count: Optional[int] = None) -> List[str]:
        with self._lock:
            return [
                key for key in list(self._data.keys())
                if self._lookup(key) is not None and fnmatch.fnmatchcase(key, pattern)
            ]

    # ------------------------------------------------------------------
    # Pub/Sub
    # ------------------------------------------------------------------

    def publish(self, channel: str, message: str) -> int:
        with self._lock:
            callbacks = list(self._subscribers.get(channel, []))
        for callback in callbacks:
            callback(message, channel)
        return len(callbacks)

    def subscribe(self, channel: str, callback: MessageCallback) -> Callable[[], None]:
        with self._lock:
            self._subscribers.setdefault(channel, []).append(callback)

        def unsubscribe() -> None:
            with self._lock:
                callbacks = self._subscribers.get(channel, [])
                if callback in callbacks:
                    callbacks.remove(callback)
                if not callbacks:
                    self._subscribers.pop(channel, None)

        return unsubscribe

    # ------------------------------------------------------------------
    # Lists
    # ------------------------------------------------------------------

    def lpush(self, key: str, *values: Any) -> int:
        with self._lock:
            items = self._container(key, list)
            for value in values:
                items.insert(0, str(value))
            return len(items)

    def rpush(self, key: str, *values: Any) -> int:
        with self._lock:
            items = self._container(key, list)
            items.extend(str(value) for value in values)
            return len(items)

    def lrange(self, key: str, start: int = 0, stop: int = -1) -> List[str]:
        with self._lock:
            return list(_index_slice(self._lookup(key, list) or [], start, stop))

    def lpop(self, key: str) -> Optional[str]:
        with self._lock:
            items = self._lookup(key, list)
            if not items:
                return None
            value = items.pop(0)
            self._prune_empty(key)
            return value

    def rpop(self, key: str) -> Optional[str]:
        with self._lock:
            items = self._lookup(key, list)
            if not items:
                return None
            value = items.pop()
            self._prune_empty(key)
            return value

    # ------------------------------------------------------------------
    # Sets
    # ------------------------------------------------------------------

    def sadd(self, key: str, *members: Any) -> int:
        with self._lock:
            members_set = self._container(key, set)
            before = len(members_set)
            members_set.update(str(m) for m in members)
            return len(members_set) - before

    def srem(self, key: str, *members: Any) -> int:
        with self._lock:
            members_set = self._lookup(key, set)
            if not members_set:
                return 0
            removed = 0
            for member in members:
                if str(member) in members_set:
                    members_set.discard(str(member))
                    removed += 1
            self._prune_empty(key)
            return removed

    def smembers(self, key: str) -> Set[str]:
        with self._lock:
            return set(self._lookup(key, set) or ())

    def sismember(self, key: str, member: Any) -> bool:
        with self._lock:
            return str(member) in (self._lookup(key, set) or ())

    def scard(self, key: str) -> int:
        with self._lock:
            return len(self._lookup(key, set) or ())

    # ------------------------------------------------------------------
    # Sorted sets
    # ------------------------------------------------------------------

    @staticmethod
    def _format(
        items: List[Tuple[str, float]],
        withscores: bool,
    ) -> Union[List[str], List[Tuple[str, float]]]:
        if withscores:
            return list(items)
        return [member for member, _ in items]

    def zadd(self, key: str, mapping: Dict[str, float]) -> int:
        with self._lock:
            zset = self._container(key, _SortedSet)
            added = 0
            for member, score in mapping.items():
                if str(member) not in zset:
                    added += 1
                zset[str(member)] = float(score)
            return added

    def zrange(self, key, start, stop, withscores=False):
        with self._lock:
            zset = self._lookup(key, _SortedSet) or _SortedSet()
            return self._format(_index_slice(zset.ordered(), start, stop), withscores)

    def zrevrange(self, key, start, stop, withscores=False):
        with self._lock:
            zset = self._lookup(key, _SortedSet) or _SortedSet()
            ordered = list(reversed(zset.ordered()))
            return self._format(_index_slice(ordered, start, stop), withscores)

    def zrangebyscore(self, key, min, max, start=None, num=None, withscores=False):
        low, high = _parse_bound(min), _parse_bound(max)
        with self._lock:
            zset = self._lookup(key, _SortedSet) or _SortedSet()
            items = [item for item in zset.ordered() if _in_range(item[1], low, high)]
        if start is not None:
            items = items[start:]
            if num is not None and num >= 0:
                items = items[:num]
        return self._format(items, withscores)

    def zrem(self, key: str, *members: Any) -> int:
        with self._lock:
            zset = self._lookup(key, _SortedSet)
            if not zset:
                return 0
            removed = 0
            for member in members:
                if zset.pop(str(member), None) is not None:
                    removed += 1
            self._prune_empty(key)
            return removed

    def zscore(self, key: str, member: Any) -> Optional[float]:
        with self._lock:
            zset = self._lookup(key, _SortedSet) or {}
            return zset.get(str(member))

    def zrank(self, key: str, member: Any) -> Optional[int]:
        with self._lock:
            zset = self._lookup(key, _SortedSet) or _SortedSet()
            for rank, (name, _) in enumerate(zset.ordered()):
                if name == str(member):
                    return rank
            return None

    def zrevrank(self, key: str, member: Any) -> Optional[int]:
        with self._lock:
            rank = self.zrank(key, member)
            if rank is None:
                return None
            return self.zcard(key) - 1 - rank

    def zincrby(self, key: str, amount: float, member: Any) -> float:
        with self._lock:
            zset = self._container(key, _SortedSet)
            score = zset.get(str(member), 0.0) + float(amount)
            zset[str(member)] = score
            return score

    def zcard(self, key: str) -> int:
        with self._lock:
            return len(self._lookup(key, _SortedSet) or ())

    def zremrangebyscore(self, key: str, min: ScoreBound, max: ScoreBound) -> int:
        low, high = _parse_bound(min), _parse_bound(max)
        with self._lock:
            zset = self._lookup(key, _SortedSet)
            if not zset:
                return 0
            doomed = [m for m, score in zset.items() if _in_range(score, low, high)]
            for member in doomed:
                del zset[member]
            self._prune_empty(key)
            return len(doomed)

    # ------------------------------------------------------------------
    # HyperLogLog
    # ------------------------------------------------------------------

    def pfadd(self, key: str, *elements: Any) -> int:
        with self._lock:
            created = self._lookup(key, _HyperLogLog) is None
            registers = self._container(key, _HyperLogLog)
            before = len(registers)
            registers.update(str(e) for e in elements)
            return 1 if created or len(registers) != before else 0

    def pfcount(self, *keys: str) -> int:
        with self._lock:
            union: Set[str] = set()
            for key in keys:
                union |= self._lookup(key, _HyperLogLog) or set()
            return len(union)

    def pfmerge(self, dest: str, *sources: str) -> bool:
        with self._lock:
            merged = _HyperLogLog(self._lookup(dest, _HyperLogLog) or ())
            for key in sources:
                merged |= self._lookup(key, _HyperLogLog) or set()
            self._data[dest] = merged
            return True

    # ------------------------------------------------------------------

    def flushall(self) -> None:
        """Remove every key."""
        with self._lock:
            self._data.clear()
            self._expires.clear()

    def __len__(self) -> int:
        return len(self.scan_all())

    def __repr__(self) -> str:
        return f"MemoryStore(keys={len(self._data)})"


__all__ = ["MemoryStore"]
