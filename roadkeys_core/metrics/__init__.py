"""Metrics module - Operational counters and export."""

from roadkeys_core.metrics.collector import (
    MetricsCollector,
    KeyspaceMetrics,
    Timer,
)

__all__ = [
    "MetricsCollector",
    "KeyspaceMetrics",
    "Timer",
]
