"""RoadKeys Job Queue - Priority Queue with Retries and Scheduling.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Union

from roadkeys_core._internal.clock import Clock, SystemClock, now_ms
from roadkeys_core.queue.job import (
    MAX_PRIORITY,
    MIN_PRIORITY,
    Job,
    JobStatus,
    eligible_bound,
)
from roadkeys_core.store.backend import KeyspaceStore
from roadkeys_core.store.namespace import NamespacedStore

logger = logging.getLogger(__name__)

PENDING = "pending"
PROCESSING = "processing"
COMPLETED = "completed"
FAILED = "failed"


@dataclass
class QueueConfig:
    """Job queue configuration.

    Attributes:
        namespace: Namespace of all queue keys
        retention_seconds: How long finished job records are kept
        default_priority: Priority when none is given
        default_max_retries: Attempts allowed when none is given
        backoff_base: Retry delay is ``backoff_base ** attempts`` seconds
        claim_batch: Eligible candidates tried per ``next()`` call
    """

    namespace: str = "queue"
    retention_seconds: int = 86400
    default_priority: int = 5
    default_max_retries: int = 3
    backoff_base: float = 2.0
    claim_batch: int = 10


@dataclass
class QueueStats:
    """Sizes of the queue's tracking containers."""

    pending: int = 0
    processing: int = 0
    completed: int = 0
    failed: int = 0

    @property
    def total(self) -> int:
        return self.pending + self.processing + self.completed + self.failed

    def to_dict(self) -> Dict[str, int]:
        return {
            "pending": self.pending,
            "processing": self.processing,
            "completed": self.completed,
            "failed": self.failed,
        }


class JobQueue:
    """Priority job queue over a shared keyspace.

    Layout (inside the queue namespace):
    - ``pending``: sorted set, score = schedule time (ms) + (10 - priority) / 10
    - ``processing``: sorted set, score = claim time (ms)
    - ``completed`` / ``failed``: sets of job IDs
    - ``job:<id>``: JSON job record

    State machine: PENDING -> PROCESSING -> COMPLETED | PENDING (retry) | FAILED.

    Claiming is poll-based. ``next()`` removes a candidate from
    ``pending`` and only proceeds if the removal reported one member
    removed, so two workers never own the same job. A worker that dies
    between ``next()`` and ``complete``/``fail`` leaves its job in
    ``processing``; ``requeue_stale`` must be called explicitly to
    recover such jobs.

    Example:
        queue = JobQueue(store)
        queue.add("send-email", {"to": "user@example.com"}, priority=8)

        job = queue.next()
        if job:
            try:
                send_email(job.payload)
                queue.complete(job.id)
            except SMTPError as e:
                queue.fail(job.id, str(e))
    """

    def __init__(
        self,
        store: KeyspaceStore,
        config: Optional[QueueConfig] = None,
        clock: Optional[Clock] = None,
        metrics: Optional[Any] = None,  # MetricsCollector
    ):
        """Initialize job queue.

        Args:
            store: Shared keyspace store
            config: Queue configuration
            clock: Time source
            metrics: Optional metrics collector
        """
        self.config = config or QueueConfig()
        self._store = NamespacedStore(store, self.config.namespace)
        self._clock = clock or SystemClock()
        self._metrics = metrics

    # ------------------------------------------------------------------
    # Records
    # ------------------------------------------------------------------

    @staticmethod
    def _job_key(job_id: str) -> str:
        return f"job:{job_id}"

    def _load(self, job_id: str) -> Optional[Job]:
        data = self._store.get_json(self._job_key(job_id))
        if not isinstance(data, dict):
            return None
        try:
            return Job.from_dict(data)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Discarding malformed job record {job_id!r}: {e}")
            return None

    def _save(self, job: Job, ttl: Optional[float] = None) -> None:
        self._store.set_json(self._job_key(job.id), job.to_dict(), ttl=ttl)

    def _record(self, event: str) -> None:
        if self._metrics is not None:
            self._metrics.record_job(event)

    def _generate_job_id(self) -> str:
        return f"{now_ms(self._clock)}-{secrets.token_hex(5)}"

    # ------------------------------------------------------------------
    # Producer API
    # ------------------------------------------------------------------

    def add(
        self,
        job_type: str,
        payload: Any = None,
        priority: Optional[int] = None,
        max_retries: Optional[int] = None,
        delay_seconds: float = 0,
        scheduled_for: Optional[Union[datetime, int]] = None,
    ) -> str:
        """Add a job to the queue.

        Args:
            job_type: Job type tag
            payload: JSON-compatible job data
            priority: 1-10, higher is more urgent
            max_retries: Attempts allowed before the job fails for good
            delay_seconds: Delay before the job becomes eligible
            scheduled_for: Absolute schedule time (datetime or epoch ms),
                takes precedence over ``delay_seconds``

        Returns:
            Job ID

        Raises:
            ValueError: On out-of-range priority, retries or delay
        """
        priority = self.config.default_priority if priority is None else priority
        max_retries = self.config.default_max_retries if max_retries is None else max_retries

        if not MIN_PRIORITY <= priority <= MAX_PRIORITY:
            raise ValueError(
                f"priority must be between {MIN_PRIORITY} and {MAX_PRIORITY}, got {priority}"
            )
        if max_retries < 0:
            raise ValueError(f"max_retries must be >= 0, got {max_retries}")
        if delay_seconds < 0:
            raise ValueError(f"delay_seconds must be >= 0, got {delay_seconds}")

        now = now_ms(self._clock)
        if isinstance(scheduled_for, datetime):
            when = int(scheduled_for.timestamp() * 1000)
        elif scheduled_for is not None:
            when = int(scheduled_for)
        else:
            when = now + int(delay_seconds * 1000)

        job = Job(
            id=self._generate_job_id(),
            type=job_type,
            payload=payload,
            priority=priority,
            created_at=now,
            attempts=0,
            max_retries=max_retries,
            scheduled_for=when,
        )

        self._save(job)
        self._store.zadd(PENDING, {job.id: job.score})

        logger.debug(f"Added job {job.id} ({job_type}, priority={priority})")
        self._record("added")
        return job.id

    # ------------------------------------------------------------------
    # Worker API
    # ------------------------------------------------------------------

    def next(self) -> Optional[Job]:
        """Claim the next eligible job.

        Takes the lowest-scoring pending entry whose schedule time has
        been reached. The ``ZREM`` on the pending set is the claim: a
        worker whose removal reports zero lost the race and moves on to
        the next candidate.

        Returns:
            The claimed job with ``attempts`` incremented, or None
        """
        now = now_ms(self._clock)
        candidates = self._store.zrangebyscore(
            PENDING, "-inf", eligible_bound(now), start=0, num=self.config.claim_batch
        )

        for job_id in candidates:
            pending = self._load(job_id)
            if pending is not None and pending.scheduled_for > now:
                continue

            if self._store.zrem(PENDING, job_id) == 0:
                logger.debug(f"Job {job_id} claimed by another worker")
                continue

            # Reload: the record may have changed between the check and the claim
            job = self._load(job_id)
            if job is None:
                logger.warning(f"Dropping pending job {job_id} with no record")
                continue

            self._store.zadd(PROCESSING, {job_id: now})
            job.attempts += 1
            job.status = JobStatus.PROCESSING
            self._save(job)

            logger.debug(f"Claimed job {job_id} (attempt {job.attempts})")
            self._record("claimed")
            return job

        return None

    def complete(self, job_id: str) -> bool:
        """Mark a claimed job as completed.

        The record is kept for ``retention_seconds`` for inspection.

        Returns:
            False if the job was not processing
        """
        if self._store.zrem(PROCESSING, job_id) == 0:
            return False

        self._store.sadd(COMPLETED, job_id)
        job = self._load(job_id)
        if job is not None:
            job.status = JobStatus.COMPLETED
            self._save(job, ttl=self.config.retention_seconds)

        self._record("completed")
        return True

    def fail(self, job_id: str, error: str) -> bool:
        """Record a failed attempt of a claimed job.

        While attempts remain, the job goes back to pending with its
        schedule pushed ``backoff_base ** attempts`` seconds into the
        future. Otherwise it moves to the failed set.

        Args:
            job_id: Job ID
            error: Error message

        Returns:
            False if the job was not processing (e.g. already failed)
        """
        if self._store.zrem(PROCESSING, job_id) == 0:
            return False

        job = self._load(job_id)
        if job is None:
            logger.warning(f"Failed job {job_id} has no record")
            return False

        job.last_error = error

        if job.attempts < job.max_retries:
            delay = self.config.backoff_base ** job.attempts
            job.scheduled_for = now_ms(self._clock) + int(delay * 1000)
            job.status = JobStatus.PENDING
            self._save(job)
            self._store.zadd(PENDING, {job_id: job.score})

            logger.debug(
                f"Job {job_id} failed attempt {job.attempts}/{job.max_retries}, "
                f"retrying in {delay:g}s: {error}"
            )
            self._record("retried")
        else:
            job.status = JobStatus.FAILED
            self._store.sadd(FAILED, job_id)
            self._save(job, ttl=self.config.retention_seconds)

            logger.warning(f"Job {job_id} failed after {job.attempts} attempts: {error}")
            self._record("failed")

        return True

    def process(self, handler: Callable[[Job], Any]) -> Optional[Job]:
        """Claim one job and run it through a handler.

        The job is completed if the handler returns, and failed with the
        exception message if it raises. The handler's exception is
        re-raised unchanged.

        Args:
            handler: Callable receiving the job

        Returns:
            The processed job, or None if nothing was eligible
        """
        job = self.next()
        if job is None:
            return None

        try:
            handler(job)
        except Exception as e:
            self.fail(job.id, str(e))
            raise

        self.complete(job.id)
        return job

    # ------------------------------------------------------------------
    # Administration
    # ------------------------------------------------------------------

    def cancel(self, job_id: str) -> bool:
        """Cancel a pending job and delete its record.

        Returns:
            False if the job was not pending (e.g. already claimed)
        """
        if self._store.zrem(PENDING, job_id) == 0:
            return False
        self._store.delete(self._job_key(job_id))
        self._record("cancelled")
        return True

    def retry(self, job_id: str) -> bool:
        """Requeue a failed job immediately with a fresh attempt budget.

        Returns:
            False if the job is not in the failed set or has no record
        """
        if not self._store.sismember(FAILED, job_id):
            return False

        job = self._load(job_id)
        if job is None:
            return False

        job.attempts = 0
        job.last_error = None
        job.scheduled_for = now_ms(self._clock)
        job.status = JobStatus.PENDING

        self._save(job)
        self._store.srem(FAILED, job_id)
        self._store.zadd(PENDING, {job_id: job.score})

        self._record("requeued")
        return True

    def requeue_stale(self, timeout_seconds: float) -> int:
        """Return jobs stuck in processing back to pending.

        A job is stale when it was claimed more than ``timeout_seconds``
        ago. Its attempt count is left as is. Nothing calls this
        automatically.

        Args:
            timeout_seconds: Processing deadline

        Returns:
            Number of jobs requeued
        """
        now = now_ms(self._clock)
        cutoff = now - int(timeout_seconds * 1000)
        stale = self._store.zrangebyscore(PROCESSING, "-inf", cutoff)

        requeued = 0
        for job_id in stale:
            if self._store.zrem(PROCESSING, job_id) == 0:
                continue
            job = self._load(job_id)
            if job is None:
                continue

            job.status = JobStatus.PENDING
            job.scheduled_for = now
            self._save(job)
            self._store.zadd(PENDING, {job_id: job.score})
            requeued += 1

        if requeued:
            logger.warning(f"Requeued {requeued} stale jobs")
            self._record("stale_requeued")
        return requeued

    def get_job(self, job_id: str) -> Optional[Job]:
        """Get a job record, or None."""
        return self._load(job_id)

    def get_status(self, job_id: str) -> JobStatus:
        """Get a job's status from the tracking containers."""
        if self._store.zscore(PENDING, job_id) is not None:
            return JobStatus.PENDING
        if self._store.zscore(PROCESSING, job_id) is not None:
            return JobStatus.PROCESSING
        if self._store.sismember(COMPLETED, job_id):
            return JobStatus.COMPLETED
        if self._store.sismember(FAILED, job_id):
            return JobStatus.FAILED
        return JobStatus.UNKNOWN

    def get_stats(self) -> QueueStats:
        """Get container sizes without scanning job records."""
        return QueueStats(
            pending=self._store.zcard(PENDING),
            processing=self._store.zcard(PROCESSING),
            completed=self._store.scard(COMPLETED),
            failed=self._store.scard(FAILED),
        )

    def get_job_count_by_type(self) -> Dict[str, int]:
        """Count pending jobs per type."""
        counts: Dict[str, int] = {}
        for job_id in self._store.zrange(PENDING, 0, -1):
            job = self._load(job_id)
            if job is not None:
                counts[job.type] = counts.get(job.type, 0) + 1
        return counts

    def pending_ids(self, limit: int = 100) -> List[str]:
        """IDs of pending jobs in claim order."""
        return self._store.zrange(PENDING, 0, limit - 1)

    def cleanup(self, older_than_hours: float = 24) -> int:
        """Remove finished jobs created before a cutoff.

        IDs whose records already expired are removed as well.

        Args:
            older_than_hours: Age threshold

        Returns:
            Number of jobs removed
        """
        cutoff = now_ms(self._clock) - int(older_than_hours * 3600 * 1000)
        cleaned = 0

        for container in (COMPLETED, FAILED):
            for job_id in self._store.smembers(container):
                job = self._load(job_id)
                if job is None or job.created_at < cutoff:
                    self._store.srem(container, job_id)
                    self._store.delete(self._job_key(job_id))
                    cleaned += 1

        if cleaned:
            logger.info(f"Cleaned up {cleaned} finished jobs")
        return cleaned

    def clear(self) -> int:
        """Delete every queue container and job record.

        Returns:
            Number of keys deleted
        """
        keys = [PENDING, PROCESSING, COMPLETED, FAILED]
        keys.extend(self._store.scan_all(self._job_key("*")))
        return self._store.delete(*keys)

    def __repr__(self) -> str:
        return f"JobQueue(namespace={self.config.namespace!r})"


__all__ = ["JobQueue", "QueueConfig", "QueueStats"]
