"""Work queue jobs and results."""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any
from uuid import uuid4


class JobType(str, Enum):
    """Background job types."""

    SEND_FOR_SCORING = "send_for_scoring"
    RESCORE = "rescore"
    UPDATE_ARTICLE_COUNTS = "update_article_counts"
    TEXT_SIZES = "text_sizes"
    COMMENT_ACTION = "comment_action"
    SWEEP_UNSCORED = "sweep_unscored"


class JobStatus(str, Enum):
    """Job lifecycle."""

    QUEUED = "queued"
    RUNNING = "running"
    RETRYING = "retrying"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass
class Job:
    """A unit of background work.

    Jobs over several items keep them in ``payload["items"]``; a retry
    carries only the items that failed.
    """

    job_type: JobType
    payload: dict[str, Any] = field(default_factory=dict)
    job_id: str = field(default_factory=lambda: str(uuid4()))
    attempt: int = 1
    status: JobStatus = JobStatus.QUEUED
    last_error: str | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    finished_at: datetime | None = None

    @property
    def items(self) -> list[Any]:
        return list(self.payload.get("items", []))

    def retry_with(self, failed_items: list[Any] | None, error: str | None) -> "Job":
        """Next attempt of this job, narrowed to ``failed_items`` when given."""
        payload = dict(self.payload)
        if failed_items:
            payload["items"] = list(failed_items)
        return Job(
            job_type=self.job_type,
            payload=payload,
            job_id=self.job_id,
            attempt=self.attempt + 1,
            status=JobStatus.RETRYING,
            last_error=error,
            created_at=self.created_at,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "job_id": self.job_id,
            "job_type": self.job_type.value,
            "payload": self.payload,
            "attempt": self.attempt,
            "status": self.status.value,
            "last_error": self.last_error,
            "created_at": self.created_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
        }


@dataclass
class JobResult:
    """What a handler reports back.

    A non-empty ``failed_items`` means partial failure: the succeeded items
    are done and only the failed ones are retried.
    """

    processed: list[Any] = field(default_factory=list)
    failed_items: list[Any] = field(default_factory=list)
    error: str | None = None

    @property
    def ok(self) -> bool:
        return not self.failed_items and self.error is None
