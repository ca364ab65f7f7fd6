"""RoadKeys Job - Job Record and Status.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

MIN_PRIORITY = 1
MAX_PRIORITY = 10


class JobStatus(str, Enum):
    """Job lifecycle states."""

    PENDING = "pending"          # Waiting in the pending set
    PROCESSING = "processing"    # Claimed by a worker
    COMPLETED = "completed"      # Terminal, succeeded
    FAILED = "failed"            # Terminal, retries exhausted
    UNKNOWN = "unknown"          # Not tracked (cancelled, cleaned up or never added)


def ordering_score(scheduled_for: int, priority: int) -> int:
    """Pending-set score of a job.

    The schedule time (epoch ms) plus ``MAX_PRIORITY - priority``
    milliseconds, so a higher priority job sorts ahead of lower priority
    jobs scheduled up to 9 ms before it.
    """
    return scheduled_for + (MAX_PRIORITY - priority)


def eligible_bound(now: int) -> int:
    """Highest pending score that may be due at ``now`` (epoch ms).

    Equal to the score of a lowest-priority job due now. Entries below the
    bound can still be scheduled up to 9 ms in the future, so callers
    must check ``scheduled_for`` before claiming.
    """
    return ordering_score(now, MIN_PRIORITY)


@dataclass
class Job:
    """A queued job.

    Attributes:
        id: Unique job ID
        type: Job type tag used by workers to dispatch
        payload: Opaque job data
        priority: 1-10, higher is more urgent
        created_at: Creation time (epoch ms)
        attempts: Number of times the job was claimed
        max_retries: Attempts allowed before the job fails for good
        scheduled_for: Earliest processing time (epoch ms)
        last_error: Error message of the last failed attempt
        status: Status at the time the record was last written
    """

    id: str
    type: str
    payload: Any
    priority: int = 5
    created_at: int = 0
    attempts: int = 0
    max_retries: int = 3
    scheduled_for: int = 0
    last_error: Optional[str] = None
    status: JobStatus = JobStatus.PENDING

    @property
    def score(self) -> int:
        return ordering_score(self.scheduled_for, self.priority)

    @property
    def retries_left(self) -> int:
        return max(0, self.max_retries - self.attempts)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary.

        Returns:
            Dictionary representation
        """
        return {
            "id": self.id,
            "type": self.type,
            "payload": self.payload,
            "priority": self.priority,
            "created_at": self.created_at,
            "attempts": self.attempts,
            "max_retries": self.max_retries,
            "scheduled_for": self.scheduled_for,
            "last_error": self.last_error,
            "status": self.status.value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Job":
        """Create from dictionary.

        Args:
            data: Dictionary data

        Returns:
            Job instance

        Raises:
            KeyError: If a required field is missing
        """
        return cls(
            id=data["id"],
            type=data["type"],
            payload=data.get("payload"),
            priority=int(data.get("priority", 5)),
            created_at=int(data.get("created_at", 0)),
            attempts=int(data.get("attempts", 0)),
            max_retries=int(data.get("max_retries", 3)),
            scheduled_for=int(data.get("scheduled_for", data.get("created_at", 0))),
            last_error=data.get("last_error"),
            status=JobStatus(data.get("status", JobStatus.PENDING.value)),
        )

    def __repr__(self) -> str:
        return (
            f"Job(id={self.id!r}, type={self.type!r}, status={self.status.value}, "
            f"attempts={self.attempts}/{self.max_retries})"
        )


__all__ = [
    "Job",
    "JobStatus",
    "ordering_score",
    "eligible_bound",
    "MIN_PRIORITY",
    "MAX_PRIORITY",
]
