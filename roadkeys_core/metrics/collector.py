"""RoadKeys Metrics Collector - Operational Counters and Export.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Callable, Deque, Dict, List

logger = logging.getLogger(__name__)


@dataclass
class KeyspaceMetrics:
    """Snapshot of collected metrics.

    Attributes:
        cache_hits: Cache lookups served from the store
        cache_misses: Cache lookups that invoked a loader
        decode_errors: Stored values discarded because they failed to decode
        rate_limit_allowed: Allowed rate-limit checks by algorithm
        rate_limit_denied: Denied rate-limit checks by algorithm
        job_events: Job transitions by event name
        latency_avg_ms: Average recorded latency
        latency_p99_ms: P99 recorded latency
        ops_per_second: Recorded operations per second
    """

    cache_hits: int = 0
    cache_misses: int = 0
    decode_errors: int = 0
    rate_limit_allowed: Dict[str, int] = field(default_factory=dict)
    rate_limit_denied: Dict[str, int] = field(default_factory=dict)
    job_events: Dict[str, int] = field(default_factory=dict)
    latency_avg_ms: float = 0.0
    latency_p99_ms: float = 0.0
    ops_per_second: float = 0.0

    @property
    def hit_rate(self) -> float:
        """Cache hit rate as a fraction."""
        total = self.cache_hits + self.cache_misses
        return self.cache_hits / total if total > 0 else 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "cache_hits": self.cache_hits,
            "cache_misses": self.cache_misses,
            "hit_rate": self.hit_rate,
            "decode_errors": self.decode_errors,
            "rate_limit_allowed": dict(self.rate_limit_allowed),
            "rate_limit_denied": dict(self.rate_limit_denied),
            "job_events": dict(self.job_events),
            "latency_avg_ms": self.latency_avg_ms,
            "latency_p99_ms": self.latency_p99_ms,
            "ops_per_second": self.ops_per_second,
        }


class MetricsCollector:
    """Collects counters from the cache, rate limiter and job queue.

    Features:
    - Thread-safe counters
    - Latency window with average and P99
    - Throughput calculation
    - Prometheus text export

    Example:
        metrics = MetricsCollector()
        cache = Cache(store, metrics=metrics)
        queue = JobQueue(store, metrics=metrics)

        print(metrics.to_prometheus())
    """

    def __init__(self, window_seconds: int = 60, max_latencies: int = 10000):
        """Initialize collector.

        Args:
            window_seconds: Window for rate calculations
            max_latencies: Latency samples kept
        """
        self.window_seconds = window_seconds

        self._cache_hits = 0
        self._cache_misses = 0
        self._decode_errors = 0
        self._allowed: Dict[str, int] = {}
        self._denied: Dict[str, int] = {}
        self._job_events: Dict[str, int] = {}

        self._ops_window: Deque[float] = deque()
        self._latencies: Deque[float] = deque(maxlen=max_latencies)

        self._lock = threading.RLock()
        self._exporters: List[Callable[[KeyspaceMetrics], None]] = []

    def record_hit(self) -> None:
        """Record a cache hit."""
        with self._lock:
            self._cache_hits += 1
            self._record_op()

    def record_miss(self) -> None:
        """Record a cache miss."""
        with self._lock:
            self._cache_misses += 1
            self._record_op()

    def record_decode_error(self) -> None:
        """Record a stored value that could not be decoded."""
        with self._lock:
            self._decode_errors += 1

    def record_rate_limit(self, algorithm: str, allowed: bool) -> None:
        """Record a rate-limit decision.

        Args:
            algorithm: Algorithm name
            allowed: Whether the request was allowed
        """
        with self._lock:
            bucket = self._allowed if allowed else self._denied
            bucket[algorithm] = bucket.get(algorithm, 0) + 1
            self._record_op()

    def record_job(self, event: str) -> None:
        """Record a job transition (added, claimed, completed, retried, failed...)."""
        with self._lock:
            self._job_events[event] = self._job_events.get(event, 0) + 1
            self._record_op()

    def record_latency(self, ms: float) -> None:
        with self._lock:
            self._latencies.append(ms)

    def _record_op(self) -> None:
        now = time.time()
        self._ops_window.append(now)

        cutoff = now - self.window_seconds
        while self._ops_window and self._ops_window[0] < cutoff:
            self._ops_window.popleft()

    def _calculate_ops_per_second(self) -> float:
        if not self._ops_window:
            return 0.0

        now = time.time()
        cutoff = now - self.window_seconds
        while self._ops_window and self._ops_window[0] < cutoff:
            self._ops_window.popleft()

        if not self._ops_window:
            return 0.0

        elapsed = now - self._ops_window[0]
        if elapsed == 0:
            return 0.0

        return len(self._ops_window) / elapsed

    def _calculate_latency_avg(self) -> float:
        if not self._latencies:
            return 0.0
        return sum(self._latencies) / len(self._latencies)

    def _calculate_latency_p99(self) -> float:
        if not self._latencies:
            return 0.0

        sorted_latencies = sorted(self._latencies)
        idx = int(len(sorted_latencies) * 0.99)
        return sorted_latencies[min(idx, len(sorted_latencies) - 1)]

    def get_metrics(self) -> KeyspaceMetrics:
        """Get a snapshot of current metrics."""
        with self._lock:
            return KeyspaceMetrics(
                cache_hits=self._cache_hits,
                cache_misses=self._cache_misses,
                decode_errors=self._decode_errors,
                rate_limit_allowed=dict(self._allowed),
                rate_limit_denied=dict(self._denied),
                job_events=dict(self._job_events),
                latency_avg_ms=self._calculate_latency_avg(),
                latency_p99_ms=self._calculate_latency_p99(),
                ops_per_second=self._calculate_ops_per_second(),
            )

    def reset(self) -> None:
        """Reset all metrics."""
        with self._lock:
            self._cache_hits = 0
            self._cache_misses = 0
            self._decode_errors = 0
            self._allowed.clear()
            self._denied.clear()
            self._job_events.clear()
            self._ops_window.clear()
            self._latencies.clear()

    def add_exporter(self, exporter: Callable[[KeyspaceMetrics], None]) -> None:
        self._exporters.append(exporter)

    def export(self) -> None:
        """Export metrics to all exporters."""
        metrics = self.get_metrics()
        for exporter in self._exporters:
            try:
                exporter(metrics)
            except Exception as e:
                logger.error(f"Exporter error: {e}")

    def to_prometheus(self) -> str:
        """Export metrics in Prometheus text format."""
        metrics = self.get_metrics()
        lines = [
            "# HELP roadkeys_cache_hits_total Total cache hits",
            "# TYPE roadkeys_cache_hits_total counter",
            f"roadkeys_cache_hits_total {metrics.cache_hits}",
            "",
            "# HELP roadkeys_cache_misses_total Total cache misses",
            "# TYPE roadkeys_cache_misses_total counter",
            f"roadkeys_cache_misses_total {metrics.cache_misses}",
            "",
            "# HELP roadkeys_decode_errors_total Stored values discarded as undecodable",
            "# TYPE roadkeys_decode_errors_total counter",
            f"roadkeys_decode_errors_total {metrics.decode_errors}",
            "",
            "# HELP roadkeys_rate_limit_checks_total Rate limit decisions",
            "# TYPE roadkeys_rate_limit_checks_total counter",
        ]
        for algorithm, count in sorted(metrics.rate_limit_allowed.items()):
            lines.append(
                f'roadkeys_rate_limit_checks_total{{algorithm="{algorithm}",allowed="true"}} {count}'
            )
        for algorithm, count in sorted(metrics.rate_limit_denied.items()):
            lines.append(
                f'roadkeys_rate_limit_checks_total{{algorithm="{algorithm}",allowed="false"}} {count}'
            )
        lines += [
            "",
            "# HELP roadkeys_job_events_total Job state transitions",
            "# TYPE roadkeys_job_events_total counter",
        ]
        for event, count in sorted(metrics.job_events.items()):
            lines.append(f'roadkeys_job_events_total{{event="{event}"}} {count}')
        lines += [
            "",
            "# HELP roadkeys_latency_avg_ms Average latency",
            "# TYPE roadkeys_latency_avg_ms gauge",
            f"roadkeys_latency_avg_ms {metrics.latency_avg_ms:.2f}",
            "",
            "# HELP roadkeys_latency_p99_ms P99 latency",
            "# TYPE roadkeys_latency_p99_ms gauge",
            f"roadkeys_latency_p99_ms {metrics.latency_p99_ms:.2f}",
        ]
        return "\n".join(lines)

    def timer(self) -> "Timer":
        """Context manager recording the latency of a block."""
        return Timer(self)

    def __repr__(self) -> str:
        metrics = self.get_metrics()
        return f"MetricsCollector(hits={metrics.cache_hits}, hit_rate={metrics.hit_rate:.2%})"


class Timer:
    """Context manager for timing operations."""

    def __init__(self, collector: MetricsCollector):
        self._collector = collector
        self._start: float = 0.0

    def __enter__(self) -> "Timer":
        self._start = time.time()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        elapsed_ms = (time.time() - self._start) * 1000
        self._collector.record_latency(elapsed_ms)


__all__ = [
    "MetricsCollector",
    "KeyspaceMetrics",
    "Timer",
]
