"""Work queue module.

In-process background jobs with retries:
- WorkQueueDispatcher: non-blocking enqueue, worker pool, backoff, dead letters
- JobHandlers: scoring, rescoring, counts, text sizes and queued actions
- TextSizeService: comment heights cached in Redis

Note: Router is not exported here to avoid circular imports.
Import directly from osmod.workqueue.router when needed.
"""

from .dispatcher import WorkQueueDispatcher, WorkQueueError
from .models import Job, JobResult, JobStatus, JobType


__all__ = [
    "Job",
    "JobResult",
    "JobStatus",
    "JobType",
    "WorkQueueDispatcher",
    "WorkQueueError",
]
