"""Fire-and-forget work queue with background workers.

Key features:
- Non-blocking enqueue via asyncio.Queue.put_nowait() (drop + log when full)
- A pool of worker tasks running registered handlers
- Exponential backoff retries carrying only the failed items
- Bounded dead-letter list for jobs that exhausted their attempts
  or whose retry found the queue full
"""

from __future__ import annotations

import asyncio
import time
from collections import deque
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

import structlog

from osmod.core.context import JobContext

from .models import Job, JobResult, JobStatus, JobType


if TYPE_CHECKING:
    from osmod.config.settings import Settings


logger = structlog.get_logger(__name__)


JobHandler = Callable[[Job], Awaitable[JobResult | None]]


class WorkQueueError(Exception):
    """Base work queue error."""

    def __init__(self, message: str, code: str = "workqueue_error"):
        self.message = message
        self.code = code
        super().__init__(message)


class UnknownJobTypeError(WorkQueueError):
    """No handler is registered for a job type."""

    def __init__(self, job_type: str):
        super().__init__(f"No handler for job type {job_type}", "unknown_job_type")


class UnknownTriggerError(WorkQueueError):
    """Trigger name not recognised."""

    def __init__(self, name: str):
        super().__init__(f"Unknown trigger {name}", "unknown_trigger")


# Admin triggers: name -> (job type, payload)
TRIGGERS: dict[str, tuple[JobType, dict[str, Any]]] = {
    "scoring": (JobType.SWEEP_UNSCORED, {}),
    "counts": (JobType.UPDATE_ARTICLE_COUNTS, {"all": True}),
}


class WorkQueueDispatcher:
    """Non-blocking job queue with a pool of background workers."""

    def __init__(
        self,
        workers: int = 4,
        queue_size: int = 10000,
        max_attempts: int = 5,
        backoff_base: float = 2.0,
        backoff_max: float = 300.0,
        dead_letter_size: int = 500,
    ) -> None:
        """Initialize the dispatcher.

        Args:
            workers: Number of worker tasks
            queue_size: Maximum queued jobs (jobs dropped when full)
            max_attempts: Attempts before a job is marked failed
            backoff_base: Delay before the first retry, doubled for each retry
            backoff_max: Upper bound for the retry delay
            dead_letter_size: Failed jobs kept for inspection
        """
        self.workers = workers
        self.queue_size = queue_size
        self.max_attempts = max_attempts
        self.backoff_base = backoff_base
        self.backoff_max = backoff_max

        self._queue: asyncio.Queue[Job] = asyncio.Queue(maxsize=queue_size)
        self._handlers: dict[JobType, JobHandler] = {}
        self._running = False
        self._worker_tasks: list[asyncio.Task] = []
        self._delayed: set[asyncio.Task] = set()
        self._dead_letters: deque[Job] = deque(maxlen=dead_letter_size)
        self._start_time: float = 0.0
        self._last_job_at: datetime | None = None

        # Counters for monitoring
        self._jobs_enqueued = 0
        self._jobs_dropped = 0
        self._jobs_succeeded = 0
        self._jobs_failed = 0
        self._jobs_retried = 0

    @classmethod
    def from_settings(cls, settings: Settings) -> WorkQueueDispatcher:
        return cls(
            workers=settings.workqueue_workers,
            queue_size=settings.workqueue_queue_size,
            max_attempts=settings.workqueue_max_attempts,
            backoff_base=settings.workqueue_backoff_base_seconds,
            backoff_max=settings.workqueue_backoff_max_seconds,
            dead_letter_size=settings.workqueue_dead_letter_size,
        )

    def register(self, job_type: JobType, handler: JobHandler) -> None:
        """Register the handler for a job type."""
        self._handlers[job_type] = handler

    # ==========================================================================
    # Enqueue (non-blocking)
    # ==========================================================================

    def enqueue(
        self,
        job_type: JobType,
        payload: dict[str, Any] | None = None,
        delay: float = 0.0,
    ) -> Job | None:
        """Queue a job.

        Returns:
            The job, or None if the queue is full and the job was dropped

        Raises:
            UnknownJobTypeError: If no handler is registered for ``job_type``
        """
        if job_type not in self._handlers:
            raise UnknownJobTypeError(job_type.value)

        job = Job(job_type=job_type, payload=payload or {})
        if delay > 0:
            self._schedule(job, delay)
            self._jobs_enqueued += 1
            return job
        if self._put(job):
            self._jobs_enqueued += 1
            return job
        return None

    def trigger(self, name: str) -> Job | None:
        """Queue the job behind an admin trigger name."""
        if name not in TRIGGERS:
            raise UnknownTriggerError(name)
        job_type, payload = TRIGGERS[name]
        logger.info("workqueue_triggered", trigger=name, job_type=job_type.value)
        return self.enqueue(job_type, dict(payload))

    def _put(self, job: Job) -> bool:
        try:
            self._queue.put_nowait(job)
            return True
        except asyncio.QueueFull:
            self._jobs_dropped += 1
            logger.warning(
                "workqueue_full",
                job_id=job.job_id,
                job_type=job.job_type.value,
                queue_size=self.queue_size,
                dropped_total=self._jobs_dropped,
            )
            return False

    def _schedule(self, job: Job, delay: float, origin: Job | None = None) -> None:
        async def _later() -> None:
            await asyncio.sleep(delay)
            if not self._put(job):
                # Delayed jobs dropped by a full queue are dead-lettered
                self._fail(job, "Queue full when the delayed job was due")
                if origin is not None:
                    origin.status = JobStatus.FAILED
                    origin.finished_at = job.finished_at

        task = asyncio.create_task(_later(), name=f"workqueue_delay_{job.job_id}")
        self._delayed.add(task)
        task.add_done_callback(self._delayed.discard)

    def backoff_delay(self, attempt: int) -> float:
        """Delay before retrying a job whose ``attempt`` just failed."""
        return min(self.backoff_max, self.backoff_base * 2 ** (attempt - 1))

    # ==========================================================================
    # Background Workers
    # ==========================================================================

    async def start(self) -> None:
        """Start the worker tasks."""
        if self._running:
            logger.warning("workqueue_already_running")
            return

        self._running = True
        self._start_time = time.monotonic()
        self._worker_tasks = [
            asyncio.create_task(self._worker_loop(), name=f"workqueue_worker_{i}")
            for i in range(self.workers)
        ]
        logger.info(
            "workqueue_started",
            workers=self.workers,
            queue_size=self.queue_size,
            max_attempts=self.max_attempts,
        )

    async def stop(self) -> None:
        """Stop the workers; queued and delayed jobs are dropped."""
        if not self._running:
            return

        self._running = False
        tasks = [*self._worker_tasks, *self._delayed]
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._worker_tasks = []

        logger.info(
            "workqueue_stopped",
            pending=self._queue.qsize(),
            jobs_succeeded=self._jobs_succeeded,
            jobs_failed=self._jobs_failed,
            jobs_retried=self._jobs_retried,
            jobs_dropped=self._jobs_dropped,
        )

    async def join(self) -> None:
        """Wait until every queued job has been processed."""
        await self._queue.join()

    async def _worker_loop(self) -> None:
        """Take jobs off the queue until cancelled."""
        while self._running:
            job = await self._queue.get()
            try:
                await self.run_job(job)
            except Exception:
                logger.exception("workqueue_worker_error", job_id=job.job_id)
            finally:
                self._queue.task_done()

    async def run_job(self, job: Job) -> JobResult:
        """Run one job and decide whether it succeeded, retries or fails."""
        handler = self._handlers.get(job.job_type)

        with JobContext(job.job_id):
            if handler is None:
                result = JobResult(error=f"No handler for {job.job_type.value}")
            else:
                job.status = JobStatus.RUNNING
                start_time = time.perf_counter()
                try:
                    result = await handler(job) or JobResult()
                except Exception as e:
                    logger.warning(
                        "job_handler_error",
                        job_type=job.job_type.value,
                        attempt=job.attempt,
                        error=str(e),
                    )
                    result = JobResult(failed_items=job.items, error=str(e))
                elapsed_ms = (time.perf_counter() - start_time) * 1000
                logger.debug(
                    "job_finished",
                    job_type=job.job_type.value,
                    attempt=job.attempt,
                    ok=result.ok,
                    elapsed_ms=round(elapsed_ms, 2),
                )

            self._last_job_at = datetime.now(UTC)
            if result.ok:
                self._succeed(job)
            else:
                self._retry_or_fail(job, result)
        return result

    def _succeed(self, job: Job) -> None:
        job.status = JobStatus.SUCCEEDED
        job.finished_at = datetime.now(UTC)
        self._jobs_succeeded += 1

    def _retry_or_fail(self, job: Job, result: JobResult) -> None:
        error = result.error or f"{len(result.failed_items)} item(s) failed"
        job.last_error = error

        # Jobs without a handler are not retried
        handler_missing = job.job_type not in self._handlers
        if handler_missing or job.attempt >= self.max_attempts:
            self._fail(job, error, result.failed_items)
            return

        delay = self.backoff_delay(job.attempt)
        retry = job.retry_with(result.failed_items, error)
        job.status = JobStatus.RETRYING
        self._jobs_retried += 1
        self._schedule(retry, delay, origin=job)
        logger.info(
            "job_retry_scheduled",
            job_type=job.job_type.value,
            next_attempt=retry.attempt,
            delay_seconds=delay,
            items=len(retry.items),
        )

    def _fail(self, job: Job, error: str, failed_items: list[Any] | None = None) -> None:
        job.status = JobStatus.FAILED
        job.last_error = error
        job.finished_at = datetime.now(UTC)
        if failed_items:
            job.payload = {**job.payload, "items": list(failed_items)}
        self._dead_letters.append(job)
        self._jobs_failed += 1
        logger.error(
            "job_failed",
            job_type=job.job_type.value,
            attempts=job.attempt,
            error=error,
            failed_items=len(failed_items or []),
        )

    # ==========================================================================
    # Status/Monitoring
    # ==========================================================================

    @property
    def is_running(self) -> bool:
        """Check if workers are running."""
        return self._running

    @property
    def queue_length(self) -> int:
        """Get current queue length."""
        return self._queue.qsize()

    @property
    def dead_letters(self) -> list[Job]:
        """Jobs that exhausted their attempts, oldest first."""
        return list(self._dead_letters)

    @property
    def uptime_seconds(self) -> float:
        """Get worker uptime in seconds."""
        if not self._running or self._start_time == 0:
            return 0.0
        return time.monotonic() - self._start_time

    def get_stats(self) -> dict:
        """Get dispatcher statistics for monitoring."""
        return {
            "running": self._running,
            "workers": self.workers,
            "queue_size": self.queue_size,
            "queue_length": self._queue.qsize(),
            "delayed": len(self._delayed),
            "jobs_enqueued": self._jobs_enqueued,
            "jobs_succeeded": self._jobs_succeeded,
            "jobs_failed": self._jobs_failed,
            "jobs_retried": self._jobs_retried,
            "jobs_dropped": self._jobs_dropped,
            "dead_letters": len(self._dead_letters),
            "last_job_at": self._last_job_at,
            "uptime_seconds": self.uptime_seconds,
        }
