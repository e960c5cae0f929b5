"""Domain models for the job queue and worker passes."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any


class JobStatus(str, Enum):
    """Durable job lifecycle states."""

    PENDING = "pending"
    DONE = "done"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self is not JobStatus.PENDING


@dataclass(slots=True)
class JobView:
    """Readable job view for clients and worker logic."""

    job_id: str
    prompt: str
    status: JobStatus
    response: dict[str, Any] | None
    attempts: int
    claimed_by: str | None
    created_at: datetime
    updated_at: datetime

    def to_public_dict(self) -> dict[str, Any]:
        """Serialize the client-facing fields (claim bookkeeping stays internal)."""

        return {
            "id": self.job_id,
            "prompt": self.prompt,
            "status": self.status.value,
            "response": self.response,
            "attempts": self.attempts,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }


@dataclass(slots=True)
class PassSummary:
    """Aggregate counters for one worker pass.

    ``processed`` counts jobs that completed successfully, ``failed`` counts
    jobs that reached the terminal error state in this pass.
    """

    processed: int = 0
    failed: int = 0
    retried: int = 0
    claim_lost: int = 0
    cleaned_up: int = 0
    finished_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": "worker_finished",
            "processed": self.processed,
            "failed": self.failed,
            "retried": self.retried,
            "time": int(self.finished_at.timestamp()) if self.finished_at else None,
        }
