"""Tests for Analytics.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from datetime import date, timedelta

import pytest

from roadkeys_core.analytics.analytics import Analytics

# FakeClock starts at 2023-11-14 22:13:20 UTC
TODAY = date(2023, 11, 14)


@pytest.fixture
def analytics(store, clock):
    return Analytics(store, clock=clock)


class TestUniqueCounting:
    """Tests for HyperLogLog-backed metrics."""

    def test_track_unique(self, analytics):
        """Test repeated identifiers count once."""
        assert analytics.track_unique("visitors", "alice")
        assert not analytics.track_unique("visitors", "alice")
        analytics.track_unique("visitors", "bob")

        assert analytics.get_unique_count("visitors") == 2
        assert analytics.get_unique_count("missing") == 0

    def test_merge_unique(self, analytics):
        """Test merging metrics."""
        analytics.track_unique("mon", "alice")
        analytics.track_unique("tue", "alice")
        analytics.track_unique("tue", "bob")

        analytics.merge_unique("week", "mon", "tue")
        assert analytics.get_unique_count("week") == 2


class TestEvents:
    """Tests for event counters."""

    def test_track_event(self, analytics):
        """Test totals and unique users per event."""
        analytics.track_event("page-view", "/home", "alice")
        analytics.track_event("page-view", "/home", "alice")
        analytics.track_event("page-view", "/home", "bob")
        analytics.track_event("page-view", "/home")

        stats = analytics.get_event_stats("page-view", "/home")
        assert stats.total == 4
        assert stats.unique == 2
        assert analytics.get_event_count("page-view", "/about") == 0


class TestActiveUsers:
    """Tests for DAU/WAU/MAU."""

    def test_dau_defaults_to_today(self, analytics, store):
        """Test DAU buckets use the clock's UTC date."""
        analytics.track_dau("alice")
        analytics.track_dau("alice")

        assert analytics.get_dau() == 1
        assert analytics.get_dau(TODAY) == 1
        assert store.exists("analytics:unique:dau:2023-11-14")

    def test_wau_and_mau(self, analytics):
        """Test rolling windows over daily buckets."""
        analytics.track_dau("alice", TODAY)
        analytics.track_dau("bob", TODAY - timedelta(days=6))
        analytics.track_dau("carol", TODAY - timedelta(days=7))
        analytics.track_dau("dave", TODAY - timedelta(days=30))

        assert analytics.get_wau(TODAY) == 2
        assert analytics.get_mau(TODAY) == 3
        assert analytics.get_wau() == 2


class TestTimeSeries:
    """Tests for daily time series."""

    def test_date_range(self, analytics, store):
        """Test zero-filled daily buckets."""
        analytics.track_time_series("signups", 3, TODAY)
        analytics.track_time_series("signups", day=TODAY)
        analytics.track_time_series("signups", 2, TODAY - timedelta(days=2))

        points = analytics.get_date_range("signups", TODAY - timedelta(days=2), TODAY)
        assert [(p.date, p.count) for p in points] == [
            ("2023-11-12", 2),
            ("2023-11-13", 0),
            ("2023-11-14", 4),
        ]
        assert store.ttl("analytics:timeseries:signups:2023-11-14") == 90 * 86400


class TestCountersAndFunnels:
    """Tests for counters, funnels and housekeeping."""

    def test_counters(self, analytics):
        """Test increment, read and reset."""
        assert analytics.increment("api-calls") == 1
        assert analytics.increment("api-calls", 9) == 10
        assert analytics.get_counter("api-calls") == 10

        assert analytics.reset_counter("api-calls")
        assert analytics.get_counter("api-calls") == 0

    def test_funnel(self, analytics):
        """Test conversion rates between steps."""
        for user in ("a", "b", "c", "d"):
            analytics.track_funnel_step("signup", "visit", user)
        for user in ("a", "b"):
            analytics.track_funnel_step("signup", "form", user)
        analytics.track_funnel_step("signup", "done", "a")

        report = analytics.get_funnel_stats("signup", ["visit", "form", "done"])
        assert [(s.step, s.users, s.conversion_rate) for s in report] == [
            ("visit", 4, 100.0),
            ("form", 2, 50.0),
            ("done", 1, 50.0),
        ]

    def test_funnel_empty_step(self, analytics):
        """Test a step after an empty step converts at 0."""
        analytics.track_funnel_step("f", "last", "a")

        report = analytics.get_funnel_stats("f", ["first", "last"])
        assert report[1].users == 1
        assert report[1].conversion_rate == 0.0

    def test_list_and_clear_metrics(self, analytics):
        """Test metric discovery and deletion."""
        analytics.track_unique("visitors", "alice")
        analytics.increment("api-calls")
        analytics.track_event("click", "buy")

        assert analytics.list_metrics() == ["api-calls", "click", "visitors"]
        assert analytics.clear_metric("visitors") == 1
        assert analytics.list_metrics() == ["api-calls", "click"]
