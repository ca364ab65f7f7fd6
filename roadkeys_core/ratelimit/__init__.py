"""Rate limit module - Fixed window, sliding window and token bucket limiters."""

from roadkeys_core.ratelimit.limiter import (
    RateLimiter,
    RateLimiterConfig,
    RateLimitResult,
    RateLimitAlgorithm,
    CustomLimit,
)

__all__ = [
    "RateLimiter",
    "RateLimiterConfig",
    "RateLimitResult",
    "RateLimitAlgorithm",
    "CustomLimit",
]
