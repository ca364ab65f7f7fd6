"""Analytics module - Unique counting, events and time series."""

from roadkeys_core.analytics.analytics import (
    Analytics,
    EventStats,
    TimeSeriesPoint,
    FunnelStep,
)

__all__ = [
    "Analytics",
    "EventStats",
    "TimeSeriesPoint",
    "FunnelStep",
]
