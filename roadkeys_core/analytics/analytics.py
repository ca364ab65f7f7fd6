"""RoadKeys Analytics - Unique Counting, Events and Time Series.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Union

from roadkeys_core._internal.clock import Clock, SystemClock
from roadkeys_core.store.backend import KeyspaceStore
from roadkeys_core.store.namespace import NamespacedStore

logger = logging.getLogger(__name__)

TIME_SERIES_TTL = 90 * 86400

DateLike = Union[date, datetime]


@dataclass
class EventStats:
    """Totals for one event."""

    total: int = 0
    unique: int = 0


@dataclass
class TimeSeriesPoint:
    """Daily bucket of a time series."""

    date: str
    count: int = 0


@dataclass
class FunnelStep:
    """One step of a funnel report.

    Attributes:
        step: Step name
        users: Unique users that reached the step
        conversion_rate: Percent of the previous step's users (100 for the first step)
    """

    step: str
    users: int = 0
    conversion_rate: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {"step": self.step, "users": self.users, "conversion_rate": self.conversion_rate}


class Analytics:
    """Approximate unique counting and exact event counters.

    Unique counts use the store's HyperLogLog commands, so each metric
    costs a bounded amount of memory at ~0.81% error. Daily buckets are
    keyed by UTC date (``YYYY-MM-DD``).

    Key layout inside the ``analytics`` namespace:
    - ``unique:<metric>``: HyperLogLog
    - ``event:<type>:<name>``: counter
    - ``timeseries:<metric>:<date>``: counter, 90 day TTL
    - ``counter:<name>``: counter

    Example:
        analytics = Analytics(store)
        analytics.track_event("page-view", "/dashboard", user_id="user-123")
        analytics.track_dau("user-123")
        wau = analytics.get_wau()
    """

    def __init__(
        self,
        store: KeyspaceStore,
        namespace: str = "analytics",
        clock: Optional[Clock] = None,
    ):
        self._store = NamespacedStore(store, namespace)
        self._clock = clock or SystemClock()

    def _today(self) -> date:
        return datetime.fromtimestamp(self._clock.time(), tz=timezone.utc).date()

    @staticmethod
    def _as_date(value: DateLike) -> date:
        if isinstance(value, datetime):
            if value.tzinfo is not None:
                value = value.astimezone(timezone.utc)
            return value.date()
        return value

    def _format_date(self, value: Optional[DateLike]) -> str:
        day = self._today() if value is None else self._as_date(value)
        return day.isoformat()

    @staticmethod
    def _unique_key(metric: str) -> str:
        return f"unique:{metric}"

    @staticmethod
    def _read_int(value: Optional[str]) -> int:
        return int(value) if value is not None else 0

    # ------------------------------------------------------------------
    # Unique counting
    # ------------------------------------------------------------------

    def track_unique(self, metric: str, identifier: str) -> bool:
        """Add an identifier to a metric's unique set.

        Returns:
            True if the estimate changed
        """
        return self._store.pfadd(self._unique_key(metric), identifier) > 0

    def get_unique_count(self, metric: str) -> int:
        return self._store.pfcount(self._unique_key(metric))

    def merge_unique(self, dest_metric: str, *source_metrics: str) -> bool:
        """Merge source metrics into a destination metric."""
        return self._store.pfmerge(
            self._unique_key(dest_metric),
            *[self._unique_key(m) for m in source_metrics],
        )

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def track_event(self, event_type: str, event_name: str, user_id: Optional[str] = None) -> int:
        """Count an event occurrence.

        Args:
            event_type: Event type (e.g. "page-view")
            event_name: Event name (e.g. "/dashboard")
            user_id: Also track the user as unique for this event

        Returns:
            New total for the event
        """
        total = self._store.incr(f"event:{event_type}:{event_name}")
        if user_id:
            self.track_unique(f"{event_type}:{event_name}", user_id)
        return total

    def get_event_count(self, event_type: str, event_name: str) -> int:
        return self._read_int(self._store.get(f"event:{event_type}:{event_name}"))

    def get_event_stats(self, event_type: str, event_name: str) -> EventStats:
        return EventStats(
            total=self.get_event_count(event_type, event_name),
            unique=self.get_unique_count(f"{event_type}:{event_name}"),
        )

    # ------------------------------------------------------------------
    # Active users
    # ------------------------------------------------------------------

    def track_dau(self, user_id: str, day: Optional[DateLike] = None) -> bool:
        return self.track_unique(f"dau:{self._format_date(day)}", user_id)

    def get_dau(self, day: Optional[DateLike] = None) -> int:
        return self.get_unique_count(f"dau:{self._format_date(day)}")

    def _active_users(self, days: int, end: Optional[DateLike]) -> int:
        last = self._today() if end is None else self._as_date(end)
        keys = [
            self._unique_key(f"dau:{(last - timedelta(days=i)).isoformat()}")
            for i in range(days)
        ]
        return self._store.pfcount(*keys)

    def get_wau(self, end: Optional[DateLike] = None) -> int:
        """Unique users over the 7 days ending at ``end``."""
        return self._active_users(7, end)

    def get_mau(self, end: Optional[DateLike] = None) -> int:
        """Unique users over the 30 days ending at ``end``."""
        return self._active_users(30, end)

    # ------------------------------------------------------------------
    # Time series
    # ------------------------------------------------------------------

    def track_time_series(self, metric: str, value: int = 1, day: Optional[DateLike] = None) -> int:
        """Add to a metric's daily bucket.

        Buckets expire 90 days after their last update.

        Returns:
            New bucket value
        """
        key = f"timeseries:{metric}:{self._format_date(day)}"
        count = self._store.incrby(key, value)
        self._store.expire(key, TIME_SERIES_TTL)
        return count

    def get_date_range(self, metric: str, start: DateLike, end: DateLike) -> List[TimeSeriesPoint]:
        """Daily buckets from ``start`` to ``end`` inclusive, zero-filled."""
        current = self._as_date(start)
        last = self._as_date(end)

        points = []
        while current <= last:
            day = current.isoformat()
            points.append(TimeSeriesPoint(
                date=day,
                count=self._read_int(self._store.get(f"timeseries:{metric}:{day}")),
            ))
            current += timedelta(days=1)
        return points

    # ------------------------------------------------------------------
    # Counters
    # ------------------------------------------------------------------

    def increment(self, counter: str, amount: int = 1) -> int:
        return self._store.incrby(f"counter:{counter}", amount)

    def get_counter(self, counter: str) -> int:
        return self._read_int(self._store.get(f"counter:{counter}"))

    def reset_counter(self, counter: str) -> bool:
        return self._store.delete(f"counter:{counter}") > 0

    # ------------------------------------------------------------------
    # Funnels
    # ------------------------------------------------------------------

    def track_funnel_step(self, funnel: str, step: str, user_id: str) -> bool:
        return self.track_unique(f"funnel:{funnel}:{step}", user_id)

    def get_funnel_stats(self, funnel: str, steps: List[str]) -> List[FunnelStep]:
        """Conversion report for ordered funnel steps.

        A step following a step with no users has a conversion rate of 0.
        """
        report = []
        previous = 0
        for i, step in enumerate(steps):
            users = self.get_unique_count(f"funnel:{funnel}:{step}")
            if i == 0:
                rate = 100.0
            elif previous == 0:
                rate = 0.0
            else:
                rate = round(users / previous * 100, 2)
            report.append(FunnelStep(step=step, users=users, conversion_rate=rate))
            previous = users
        return report

    # ------------------------------------------------------------------
    # Housekeeping
    # ------------------------------------------------------------------

    def clear_metric(self, metric: str) -> int:
        """Delete every analytics key containing ``metric``.

        Returns:
            Number of keys deleted
        """
        keys = self._store.scan_all(f"*{metric}*")
        if not keys:
            return 0
        count = self._store.delete(*keys)
        logger.info(f"Cleared {count} analytics keys matching {metric!r}")
        return count

    def list_metrics(self) -> List[str]:
        """Names of tracked metrics (second key segment), sorted."""
        metrics = set()
        for key in self._store.scan_all():
            parts = key.split(":")
            if len(parts) >= 2:
                metrics.add(parts[1])
        return sorted(metrics)


__all__ = ["Analytics", "EventStats", "TimeSeriesPoint", "FunnelStep"]
