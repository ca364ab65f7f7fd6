"""RoadKeys Clock - Injectable Time Source.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

import time
from typing import Protocol


class Clock(Protocol):
    """Protocol for getting the current time.  Inject a fake in tests."""

    def time(self) -> float: ...


class SystemClock:
    """Default clock backed by the real system time."""

    def time(self) -> float:
        return time.time()


def now_ms(clock: Clock) -> int:
    """Current clock time as epoch milliseconds."""
    return int(clock.time() * 1000)


__all__ = ["Clock", "SystemClock", "now_ms"]
