"""Tests for JobQueue.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from datetime import datetime, timezone

import pytest

from roadkeys_core.queue.job import Job, JobStatus, ordering_score
from roadkeys_core.queue.queue import JobQueue, QueueConfig


@pytest.fixture
def queue(store, clock, metrics):
    return JobQueue(store, clock=clock, metrics=metrics)


class TestJob:
    """Tests for the job record."""

    def test_ordering_score(self):
        """Test schedule time dominates and priority breaks ties."""
        assert ordering_score(1000, 10) < ordering_score(1000, 1)
        assert ordering_score(1000, 1) < ordering_score(1010, 10)

    def test_dict_round_trip(self):
        """Test to_dict/from_dict preserve every field."""
        job = Job(
            id="1-abc", type="email", payload={"to": "a@b.com"},
            priority=8, created_at=5, attempts=2, max_retries=4,
            scheduled_for=9, last_error="boom", status=JobStatus.PROCESSING,
        )
        assert Job.from_dict(job.to_dict()) == job


class TestProducer:
    """Tests for adding jobs."""

    def test_add(self, queue, clock):
        """Test a new job is pending with its record stored."""
        job_id = queue.add("email", {"to": "a@b.com"}, priority=8)
        job = queue.get_job(job_id)

        assert job.type == "email"
        assert job.payload == {"to": "a@b.com"}
        assert job.attempts == 0
        assert job.scheduled_for == int(clock.time() * 1000)
        assert queue.get_status(job_id) is JobStatus.PENDING
        assert queue.get_stats().pending == 1

    def test_defaults_from_config(self, store, clock):
        """Test priority and retries default from the config."""
        queue = JobQueue(
            store, QueueConfig(default_priority=7, default_max_retries=1), clock=clock,
        )
        job = queue.get_job(queue.add("t", None))

        assert job.priority == 7
        assert job.max_retries == 1

    def test_invalid_priority(self, queue):
        """Test priority outside 1..10 is rejected."""
        with pytest.raises(ValueError):
            queue.add("t", None, priority=0)
        with pytest.raises(ValueError):
            queue.add("t", None, priority=11)

    def test_delayed_job(self, queue, clock):
        """Test a delayed job is not eligible early."""
        queue.add("report", None, delay_seconds=30)

        assert queue.next() is None
        clock.advance(30)
        assert queue.next() is not None

    def test_scheduled_for_datetime(self, queue, clock):
        """Test absolute schedule times."""
        when = datetime.fromtimestamp(clock.time() + 60, tz=timezone.utc)
        job_id = queue.add("report", None, scheduled_for=when)

        assert queue.get_job(job_id).scheduled_for == int(clock.time() * 1000) + 60_000
        assert queue.next() is None


class TestWorker:
    """Tests for claiming and finishing jobs."""

    def test_priority_ordering(self, queue):
        """Test the higher priority job is claimed first."""
        low = queue.add("t", "A", priority=1)
        high = queue.add("t", "B", priority=10)

        assert queue.next().id == high
        assert queue.next().id == low
        assert queue.next() is None

    def test_schedule_beats_priority(self, queue, clock):
        """Test priority never overrides an unmet schedule time."""
        queue.add("t", "later", priority=10, delay_seconds=5)
        now_job = queue.add("t", "now", priority=1)

        assert queue.next().id == now_job
        assert queue.next() is None

    def test_priority_across_milliseconds(self, queue, clock):
        """Test priority wins over a slightly earlier schedule time."""
        low = queue.add("t", "A", priority=1)
        clock.advance(0.001)
        high = queue.add("t", "B", priority=10)
        clock.advance(1)

        assert queue.next().id == high
        assert queue.next().id == low

    def test_near_future_job_not_claimed(self, queue, clock):
        """Test a job due in a few milliseconds waits for its time."""
        soon = queue.add("t", "soon", priority=10, delay_seconds=0.005)

        assert queue.next() is None
        assert queue.get_status(soon) is JobStatus.PENDING

        clock.advance(0.006)
        assert queue.next().id == soon

    def test_next_claims(self, queue):
        """Test next moves the job to processing and counts the attempt."""
        job_id = queue.add("t", None)
        job = queue.next()

        assert job.id == job_id
        assert job.attempts == 1
        assert job.status is JobStatus.PROCESSING
        assert queue.get_status(job_id) is JobStatus.PROCESSING
        assert queue.get_job(job_id).attempts == 1

    def test_lost_race_skips_candidate(self, queue, store):
        """Test a candidate removed by another worker is skipped."""
        first = queue.add("t", "1", priority=10)
        second = queue.add("t", "2", priority=5)

        original_zrem = store.zrem
        stolen = []

        def racing_zrem(key, *members):
            if key == "queue:pending" and first in members and not stolen:
                stolen.append(first)
                original_zrem(key, *members)
                return 0
            return original_zrem(key, *members)

        store.zrem = racing_zrem
        assert queue.next().id == second

    def test_missing_record_skipped(self, queue, store):
        """Test a pending id without a record is dropped."""
        store.zadd("queue:pending", {"ghost": 0})
        job_id = queue.add("t", None)

        assert queue.next().id == job_id
        assert queue.get_stats().pending == 0
        assert queue.get_stats().processing == 1

    def test_complete(self, queue, store):
        """Test completion and retention."""
        job_id = queue.add("t", None)
        queue.next()

        assert queue.complete(job_id)
        assert queue.get_status(job_id) is JobStatus.COMPLETED
        assert queue.get_job(job_id).status is JobStatus.COMPLETED
        assert store.ttl(f"queue:job:{job_id}") == 86400
        assert not queue.complete(job_id)

    def test_complete_requires_processing(self, queue):
        """Test completing a pending job is a no-op."""
        job_id = queue.add("t", None)
        assert not queue.complete(job_id)
        assert queue.get_status(job_id) is JobStatus.PENDING


class TestRetries:
    """Tests for failure handling."""

    def test_backoff_end_to_end(self, queue, clock):
        """Test fail requeues with exponential backoff."""
        job_id = queue.add("email", {"to": "a@b.com"}, priority=8)

        job = queue.next()
        assert job.id == job_id and job.attempts == 1

        assert queue.fail(job_id, "smtp down")
        failed = queue.get_job(job_id)
        now = int(clock.time() * 1000)
        assert failed.scheduled_for == now + 2000
        assert failed.attempts == 1
        assert failed.last_error == "smtp down"
        assert queue.get_status(job_id) is JobStatus.PENDING

        assert queue.next() is None

        clock.advance(2)
        job = queue.next()
        assert job.id == job_id
        assert job.attempts == 2

        queue.fail(job_id, "smtp down")
        assert queue.get_job(job_id).scheduled_for == int(clock.time() * 1000) + 4000

    def test_retries_exhausted(self, queue, clock):
        """Test a job failing max_retries times ends FAILED."""
        job_id = queue.add("t", None, max_retries=3)

        for _ in range(3):
            clock.advance(60)
            assert queue.next().id == job_id
            assert queue.fail(job_id, "boom")

        job = queue.get_job(job_id)
        assert job.status is JobStatus.FAILED
        assert job.attempts == 3
        assert queue.get_status(job_id) is JobStatus.FAILED
        assert queue.get_stats().failed == 1

        assert not queue.fail(job_id, "again")
        assert queue.get_job(job_id).attempts == 3

    def test_retry_failed_job(self, queue, clock):
        """Test retry requeues a failed job with a fresh budget."""
        job_id = queue.add("t", None, max_retries=1)
        queue.next()
        queue.fail(job_id, "boom")

        assert queue.retry(job_id)
        job = queue.get_job(job_id)
        assert job.attempts == 0
        assert job.last_error is None
        assert queue.get_status(job_id) is JobStatus.PENDING
        assert queue.next().id == job_id

    def test_retry_requires_failed(self, queue):
        """Test retry is refused for jobs that did not fail."""
        job_id = queue.add("t", None)
        assert not queue.retry(job_id)
        assert not queue.retry("missing")

    def test_process(self, queue):
        """Test process completes on success."""
        job_id = queue.add("t", {"n": 2})
        seen = []

        job = queue.process(lambda j: seen.append(j.payload["n"]))

        assert job.id == job_id
        assert seen == [2]
        assert queue.get_status(job_id) is JobStatus.COMPLETED
        assert queue.process(lambda j: None) is None

    def test_process_failure_reraises(self, queue):
        """Test handler errors fail the job and propagate."""
        job_id = queue.add("t", None)

        def handler(job):
            raise RuntimeError("handler broke")

        with pytest.raises(RuntimeError, match="handler broke"):
            queue.process(handler)

        job = queue.get_job(job_id)
        assert job.last_error == "handler broke"
        assert queue.get_status(job_id) is JobStatus.PENDING


class TestAdministration:
    """Tests for cancel, stats and housekeeping."""

    def test_cancel(self, queue):
        """Test cancel only works while pending."""
        job_id = queue.add("t", None)
        assert queue.cancel(job_id)
        assert queue.get_job(job_id) is None
        assert queue.get_status(job_id) is JobStatus.UNKNOWN

        claimed = queue.add("t", None)
        queue.next()
        assert not queue.cancel(claimed)

    def test_stats(self, queue):
        """Test container counts."""
        for _ in range(3):
            queue.add("t", None)
        job = queue.next()
        queue.complete(job.id)
        queue.next()

        stats = queue.get_stats()
        assert stats.to_dict() == {"pending": 1, "processing": 1, "completed": 1, "failed": 0}
        assert stats.total == 3

    def test_count_by_type(self, queue):
        """Test pending jobs grouped by type."""
        queue.add("email", None)
        queue.add("email", None)
        queue.add("sms", None)

        assert queue.get_job_count_by_type() == {"email": 2, "sms": 1}
        assert len(queue.pending_ids()) == 3
        assert queue.pending_ids(limit=1) == queue.pending_ids()[:1]

    def test_cleanup(self, queue, clock):
        """Test old finished jobs are removed."""
        old = queue.add("t", None)
        queue.next()
        queue.complete(old)

        clock.advance(2 * 3600)
        recent = queue.add("t", None)
        queue.next()
        queue.complete(recent)

        assert queue.cleanup(older_than_hours=1) == 1
        assert queue.get_job(old) is None
        assert queue.get_status(recent) is JobStatus.COMPLETED

    def test_cleanup_expired_records(self, queue, clock):
        """Test ids whose records expired are cleaned up."""
        job_id = queue.add("t", None)
        queue.next()
        queue.complete(job_id)

        clock.advance(86400)
        assert queue.cleanup(older_than_hours=48) == 1
        assert queue.get_stats().completed == 0

    def test_requeue_stale(self, queue, clock):
        """Test jobs stuck in processing can be swept back."""
        job_id = queue.add("t", None)
        queue.next()

        clock.advance(30)
        assert queue.requeue_stale(timeout_seconds=60) == 0

        clock.advance(31)
        assert queue.requeue_stale(timeout_seconds=60) == 1
        assert queue.get_status(job_id) is JobStatus.PENDING

        job = queue.next()
        assert job.id == job_id
        assert job.attempts == 2

    def test_clear(self, queue, store):
        """Test clear removes every queue key."""
        queue.add("t", None)
        queue.add("t", None)
        queue.next()
        store.set("other", "kept")

        assert queue.clear() == 4
        assert store.scan_all() == ["other"]

    def test_metrics(self, queue, metrics):
        """Test job transitions are counted."""
        job_id = queue.add("t", None)
        queue.next()
        queue.complete(job_id)

        assert metrics.get_metrics().job_events == {
            "added": 1, "claimed": 1, "completed": 1,
        }
