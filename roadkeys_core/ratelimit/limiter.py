"""RoadKeys Rate Limiter - Fixed Window, Sliding Window and Token Bucket.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

import contextlib
import logging
import math
import secrets
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Union

from roadkeys_core._internal.clock import Clock, SystemClock, now_ms
from roadkeys_core.store.backend import KeyspaceStore
from roadkeys_core.store.namespace import NamespacedStore

logger = logging.getLogger(__name__)


class RateLimitAlgorithm(str, Enum):
    """Rate limiting algorithms."""

    FIXED = "fixed"              # Counter reset at fixed intervals
    SLIDING = "sliding"          # Timestamp log over a moving window
    TOKEN_BUCKET = "token-bucket"  # Lazily refilled token budget

    @property
    def key_prefix(self) -> str:
        """Key prefix of this algorithm's records."""
        return _KEY_PREFIXES[self]


_KEY_PREFIXES = {
    RateLimitAlgorithm.FIXED: "fixed",
    RateLimitAlgorithm.SLIDING: "sliding",
    RateLimitAlgorithm.TOKEN_BUCKET: "bucket",
}


@dataclass
class RateLimiterConfig:
    """Rate limiter configuration.

    Attributes:
        namespace: Namespace of all limiter records
        bucket_idle_ttl: Seconds an untouched token bucket is kept
        custom_limit_ttl: Seconds a custom limit record is kept
    """

    namespace: str = "ratelimit"
    bucket_idle_ttl: int = 3600
    custom_limit_ttl: int = 86400


@dataclass
class RateLimitResult:
    """Outcome of a rate limit check.

    Attributes:
        allowed: Whether the request may proceed
        remaining: Requests (or whole tokens) left
        limit: Configured maximum (bucket capacity for token bucket)
        reset_at: Epoch milliseconds when the limit fully resets
        retry_after: Seconds to wait before retrying, set only when denied
    """

    allowed: bool
    remaining: int
    limit: int
    reset_at: int
    retry_after: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "allowed": self.allowed,
            "remaining": self.remaining,
            "limit": self.limit,
            "reset_at": self.reset_at,
            "retry_after": self.retry_after,
        }

    def headers(self) -> Dict[str, str]:
        """Conventional ``X-RateLimit-*`` response headers."""
        headers = {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(self.reset_at // 1000),
        }
        if self.retry_after is not None:
            headers["Retry-After"] = str(self.retry_after)
        return headers


@dataclass
class CustomLimit:
    """A per-identifier limit tier."""

    max_requests: int
    window_seconds: float


class RateLimiter:
    """Rate limiter over a shared keyspace.

    Three interchangeable algorithms answer "is this request allowed,
    and when can the caller retry":

    - Fixed window: one atomic counter per window. Cheap, but two bursts
      either side of a window boundary can admit up to twice the limit.
    - Sliding window: a sorted set of request timestamps. Exact, at the
      cost of one entry per admitted request.
    - Token bucket: ``{tokens, last_refill}`` refilled lazily on each
      check. Allows bursts up to capacity with a smooth sustained rate.
      Concurrent checks on one bucket can both read the same baseline and
      over-grant slightly; the limit is approximate by design.

    The limiter never retries. If the store is unavailable the error
    propagates and the caller decides whether to fail open or closed.

    Example:
        limiter = RateLimiter(store)
        result = limiter.check("user-123", 10, 60)
        if not result.allowed:
            raise TooManyRequests(retry_after=result.retry_after)
    """

    def __init__(
        self,
        store: KeyspaceStore,
        config: Optional[RateLimiterConfig] = None,
        clock: Optional[Clock] = None,
        metrics: Optional[Any] = None,  # MetricsCollector
    ):
        """Initialize rate limiter.

        Args:
            store: Shared keyspace store
            config: Limiter configuration
            clock: Time source
            metrics: Optional metrics collector
        """
        self.config = config or RateLimiterConfig()
        self._store = NamespacedStore(store, self.config.namespace)
        self._clock = clock or SystemClock()
        self._metrics = metrics

    @staticmethod
    def _key(algorithm: RateLimitAlgorithm, identifier: str) -> str:
        return f"{algorithm.key_prefix}:{identifier}"

    def _timed(self):
        if self._metrics is None:
            return contextlib.nullcontext()
        return self._metrics.timer()

    def check(
        self,
        identifier: str,
        max_requests: int,
        window_seconds: float,
        algorithm: Union[RateLimitAlgorithm, str] = RateLimitAlgorithm.FIXED,
        capacity: Optional[float] = None,
        refill_rate: Optional[float] = None,
        cost: float = 1,
    ) -> RateLimitResult:
        """Check and consume the rate limit for an identifier.

        Args:
            identifier: User ID, IP address or other identifier
            max_requests: Maximum requests per window
            window_seconds: Window length in seconds
            algorithm: Algorithm to apply
            capacity: Token bucket capacity (default max_requests)
            refill_rate: Tokens per second (default max_requests / window_seconds)
            cost: Tokens consumed by this request (token bucket only,
                0 < cost <= capacity)

        Returns:
            RateLimitResult

        Raises:
            ValueError: On invalid limits or an unknown algorithm
        """
        algorithm = RateLimitAlgorithm(algorithm)
        if max_requests < 1:
            raise ValueError(f"max_requests must be >= 1, got {max_requests}")
        if window_seconds <= 0:
            raise ValueError(f"window_seconds must be > 0, got {window_seconds}")

        with self._timed():
            if algorithm is RateLimitAlgorithm.SLIDING:
                result = self._check_sliding_window(identifier, max_requests, window_seconds)
            elif algorithm is RateLimitAlgorithm.TOKEN_BUCKET:
                capacity = capacity if capacity is not None else max_requests
                refill_rate = (
                    refill_rate if refill_rate is not None
                    else max_requests / window_seconds
                )
                result = self._check_token_bucket(identifier, capacity, refill_rate, cost)
            else:
                result = self._check_fixed_window(identifier, max_requests, window_seconds)

        if not result.allowed:
            logger.debug(
                f"Rate limit denied for {identifier!r} ({algorithm.value}), "
                f"retry after {result.retry_after}s"
            )
        if self._metrics is not None:
            self._metrics.record_rate_limit(algorithm.value, result.allowed)
        return result

    def _check_fixed_window(
        self,
        identifier: str,
        max_requests: int,
        window_seconds: float,
    ) -> RateLimitResult:
        key = self._key(RateLimitAlgorithm.FIXED, identifier)
        now = now_ms(self._clock)

        count = self._store.incr(key)

        # Only the request that opens the window sets its TTL
        if count == 1:
            self._store.expire(key, window_seconds)

        ttl = self._store.ttl(key)
        if ttl == -1:
            # Counter lost its expiry between INCR and EXPIRE
            logger.warning(f"Fixed window {identifier!r} had no TTL, re-applying")
            self._store.expire(key, window_seconds)
            ttl = math.ceil(window_seconds)
        ttl = max(ttl, 0)

        allowed = count <= max_requests
        return RateLimitResult(
            allowed=allowed,
            remaining=max(0, max_requests - count),
            limit=max_requests,
            reset_at=now + ttl * 1000,
            retry_after=None if allowed else max(1, ttl),
        )

    def _check_sliding_window(
        self,
        identifier: str,
        max_requests: int,
        window_seconds: float,
    ) -> RateLimitResult:
        key = self._key(RateLimitAlgorithm.SLIDING, identifier)
        now = now_ms(self._clock)
        window_ms = int(window_seconds * 1000)
        window_start = now - window_ms

        # Entries at exactly window_start have aged out
        self._store.zremrangebyscore(key, "-inf", window_start)
        count = self._store.zcard(key)

        allowed = count < max_requests
        if allowed:
            member = f"{now}-{secrets.token_hex(6)}"
            self._store.zadd(key, {member: now})
            self._store.expire(key, window_seconds)
            return RateLimitResult(
                allowed=True,
                remaining=max(0, max_requests - count - 1),
                limit=max_requests,
                reset_at=now + window_ms,
            )

        oldest = self._store.zrange(key, 0, 0, withscores=True)
        if oldest:
            frees_at = int(oldest[0][1]) + window_ms
        else:
            frees_at = now + window_ms
        return RateLimitResult(
            allowed=False,
            remaining=0,
            limit=max_requests,
            reset_at=frees_at,
            retry_after=max(1, math.ceil((frees_at - now) / 1000)),
        )

    def _check_token_bucket(
        self,
        identifier: str,
        capacity: float,
        refill_rate: float,
        cost: float,
    ) -> RateLimitResult:
        if capacity <= 0:
            raise ValueError(f"capacity must be > 0, got {capacity}")
        if refill_rate <= 0:
            raise ValueError(f"refill_rate must be > 0, got {refill_rate}")
        if cost <= 0:
            raise ValueError(f"cost must be > 0, got {cost}")
        if cost > capacity:
            raise ValueError(f"cost {cost} exceeds bucket capacity {capacity}")

        key = self._key(RateLimitAlgorithm.TOKEN_BUCKET, identifier)
        now = now_ms(self._clock)

        bucket = self._store.get_json(key)
        if isinstance(bucket, dict) and "tokens" in bucket and "last_refill" in bucket:
            elapsed = max(0, now - bucket["last_refill"]) / 1000
            tokens = min(capacity, float(bucket["tokens"]) + elapsed * refill_rate)
        else:
            tokens = float(capacity)

        allowed = tokens >= cost
        if allowed:
            tokens -= cost

        # Persist regardless of outcome so idle buckets age out
        self._store.set_json(
            key,
            {"tokens": tokens, "last_refill": now},
            ttl=self.config.bucket_idle_ttl,
        )

        return RateLimitResult(
            allowed=allowed,
            remaining=math.floor(tokens),
            limit=int(capacity),
            reset_at=now + int((capacity - tokens) / refill_rate * 1000),
            retry_after=None if allowed else math.ceil((cost - tokens) / refill_rate),
        )

    def reset(
        self,
        identifier: str,
        algorithm: Optional[Union[RateLimitAlgorithm, str]] = None,
    ) -> int:
        """Delete rate limit records for an identifier.

        Args:
            identifier: Identifier to reset
            algorithm: Only this algorithm's record (default: all)

        Returns:
            Number of records deleted
        """
        if algorithm is None:
            algorithms = list(RateLimitAlgorithm)
        else:
            algorithms = [RateLimitAlgorithm(algorithm)]
        return self._store.delete(*(self._key(a, identifier) for a in algorithms))

    def get_usage(
        self,
        identifier: str,
        algorithm: Union[RateLimitAlgorithm, str] = RateLimitAlgorithm.FIXED,
    ) -> float:
        """Get current usage without consuming anything.

        Args:
            identifier: Identifier
            algorithm: Algorithm to inspect

        Returns:
            Fixed: requests counted this window. Sliding: requests recorded
            in the window. Token bucket: tokens stored at the last check.
        """
        algorithm = RateLimitAlgorithm(algorithm)
        key = self._key(algorithm, identifier)

        if algorithm is RateLimitAlgorithm.SLIDING:
            return self._store.zcard(key)
        if algorithm is RateLimitAlgorithm.TOKEN_BUCKET:
            bucket = self._store.get_json(key)
            if isinstance(bucket, dict):
                return float(bucket.get("tokens", 0))
            return 0.0

        count = self._store.get(key)
        return int(count) if count else 0

    def set_custom_limit(
        self,
        identifier: str,
        max_requests: int,
        window_seconds: float,
    ) -> str:
        """Store a custom limit tier for an identifier.

        Args:
            identifier: Identifier (user, API key...)
            max_requests: Maximum requests
            window_seconds: Window length

        Returns:
            Key of the stored record (relative to the limiter namespace)
        """
        if max_requests < 1 or window_seconds <= 0:
            raise ValueError("custom limit needs max_requests >= 1 and window_seconds > 0")
        key = f"config:{identifier}"
        self._store.set_json(
            key,
            {"max_requests": max_requests, "window_seconds": window_seconds},
            ttl=self.config.custom_limit_ttl,
        )
        return key

    def get_custom_limit(self, identifier: str) -> Optional[CustomLimit]:
        """Get an identifier's custom limit tier, or None."""
        data = self._store.get_json(f"config:{identifier}")
        if not isinstance(data, dict):
            return None
        try:
            return CustomLimit(
                max_requests=int(data["max_requests"]),
                window_seconds=float(data["window_seconds"]),
            )
        except (KeyError, TypeError, ValueError):
            return None

    def check_with_custom_limit(
        self,
        identifier: str,
        default_max_requests: int,
        default_window_seconds: float,
        algorithm: Union[RateLimitAlgorithm, str] = RateLimitAlgorithm.FIXED,
    ) -> RateLimitResult:
        """Check using the identifier's custom tier, falling back to defaults."""
        custom = self.get_custom_limit(identifier)
        if custom is None:
            return self.check(identifier, default_max_requests, default_window_seconds, algorithm)
        return self.check(identifier, custom.max_requests, custom.window_seconds, algorithm)


__all__ = [
    "RateLimiter",
    "RateLimiterConfig",
    "RateLimitResult",
    "RateLimitAlgorithm",
    "CustomLimit",
]
