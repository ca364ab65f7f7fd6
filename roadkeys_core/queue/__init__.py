"""Queue module - Priority job queue with retries and backoff."""

from roadkeys_core.queue.job import (
    Job,
    JobStatus,
    ordering_score,
    MIN_PRIORITY,
    MAX_PRIORITY,
)
from roadkeys_core.queue.queue import JobQueue, QueueConfig, QueueStats

__all__ = [
    "Job",
    "JobStatus",
    "JobQueue",
    "QueueConfig",
    "QueueStats",
    "ordering_score",
    "MIN_PRIORITY",
    "MAX_PRIORITY",
]
