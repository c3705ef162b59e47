"""Tests for the work queue dispatcher."""

import asyncio

import pytest

from osmod.config.settings import Settings
from osmod.workqueue.dispatcher import (
    UnknownJobTypeError,
    UnknownTriggerError,
    WorkQueueDispatcher,
)
from osmod.workqueue.models import Job, JobResult, JobStatus, JobType


async def succeed(job: Job) -> JobResult:
    return JobResult(processed=job.items)


@pytest.fixture
def dispatcher() -> WorkQueueDispatcher:
    dispatcher = WorkQueueDispatcher(
        workers=2, queue_size=10, max_attempts=3, backoff_base=0.01, backoff_max=0.05
    )
    for job_type in JobType:
        dispatcher.register(job_type, succeed)
    return dispatcher


class TestEnqueue:
    """Tests for non-blocking enqueue."""

    async def test_enqueue(self, dispatcher: WorkQueueDispatcher) -> None:
        job = dispatcher.enqueue(JobType.TEXT_SIZES, {"items": ["a"]})
        assert job is not None
        assert job.status is JobStatus.QUEUED
        assert dispatcher.queue_length == 1

    async def test_unknown_job_type(self) -> None:
        dispatcher = WorkQueueDispatcher()
        with pytest.raises(UnknownJobTypeError):
            dispatcher.enqueue(JobType.RESCORE)

    async def test_full_queue_drops(self) -> None:
        dispatcher = WorkQueueDispatcher(queue_size=1)
        dispatcher.register(JobType.RESCORE, succeed)

        assert dispatcher.enqueue(JobType.RESCORE) is not None
        assert dispatcher.enqueue(JobType.RESCORE) is None
        stats = dispatcher.get_stats()
        assert stats["jobs_dropped"] == 1
        assert stats["jobs_enqueued"] == 1

    async def test_trigger(self, dispatcher: WorkQueueDispatcher) -> None:
        job = dispatcher.trigger("counts")
        assert job.job_type is JobType.UPDATE_ARTICLE_COUNTS
        assert job.payload == {"all": True}
        assert dispatcher.trigger("scoring").job_type is JobType.SWEEP_UNSCORED

    async def test_unknown_trigger(self, dispatcher: WorkQueueDispatcher) -> None:
        with pytest.raises(UnknownTriggerError):
            dispatcher.trigger("reindex")

    async def test_delayed_enqueue(self, dispatcher: WorkQueueDispatcher) -> None:
        dispatcher.enqueue(JobType.RESCORE, delay=0.01)
        assert dispatcher.queue_length == 0
        await asyncio.sleep(0.05)
        assert dispatcher.queue_length == 1


class TestBackoff:
    """Tests for retry delays."""

    def test_exponential_and_capped(self) -> None:
        dispatcher = WorkQueueDispatcher(backoff_base=2.0, backoff_max=10.0)
        assert dispatcher.backoff_delay(1) == 2.0
        assert dispatcher.backoff_delay(2) == 4.0
        assert dispatcher.backoff_delay(3) == 8.0
        assert dispatcher.backoff_delay(4) == 10.0

    def test_from_settings(self) -> None:
        settings = Settings(workqueue_workers=3, workqueue_max_attempts=7)
        dispatcher = WorkQueueDispatcher.from_settings(settings)
        assert dispatcher.workers == 3
        assert dispatcher.max_attempts == 7


class TestRunJob:
    """Tests for success, retry and failure of a single run."""

    async def test_success(self, dispatcher: WorkQueueDispatcher) -> None:
        job = Job(JobType.TEXT_SIZES, {"items": ["a", "b"]})
        result = await dispatcher.run_job(job)
        assert result.ok
        assert job.status is JobStatus.SUCCEEDED
        assert job.finished_at is not None

    async def test_retry_into_full_queue_is_dead_lettered(self) -> None:
        dispatcher = WorkQueueDispatcher(queue_size=1, backoff_base=0.01)

        async def broken(job: Job) -> JobResult:
            return JobResult(failed_items=job.items, error="scorer down")

        dispatcher.register(JobType.SEND_FOR_SCORING, broken)
        dispatcher.register(JobType.RESCORE, succeed)
        job = Job(JobType.SEND_FOR_SCORING, {"items": ["a"]})

        await dispatcher.run_job(job)
        assert job.status is JobStatus.RETRYING
        # Fill the only slot before the retry is due
        assert dispatcher.enqueue(JobType.RESCORE) is not None
        await asyncio.sleep(0.05)

        stats = dispatcher.get_stats()
        assert stats["jobs_dropped"] == 1
        assert stats["jobs_failed"] == 1
        [dead] = dispatcher.dead_letters
        assert dead.job_id == job.job_id
        assert dead.attempt == 2
        assert dead.status is JobStatus.FAILED
        assert dead.items == ["a"]
        assert job.status is JobStatus.FAILED

    async def test_delayed_enqueue_into_full_queue_is_dead_lettered(self) -> None:
        dispatcher = WorkQueueDispatcher(queue_size=1)
        dispatcher.register(JobType.RESCORE, succeed)

        delayed = dispatcher.enqueue(JobType.RESCORE, delay=0.01)
        assert dispatcher.enqueue(JobType.RESCORE) is not None
        await asyncio.sleep(0.05)

        assert dispatcher.dead_letters == [delayed]
        assert delayed.status is JobStatus.FAILED
        assert dispatcher.get_stats()["jobs_failed"] == 1

    async def test_partial_failure_retries_failed_items(
        self, dispatcher: WorkQueueDispatcher
    ) -> None:
        async def partial(job: Job) -> JobResult:
            return JobResult(processed=["a"], failed_items=["b"])

        dispatcher.register(JobType.SEND_FOR_SCORING, partial)
        job = Job(JobType.SEND_FOR_SCORING, {"items": ["a", "b"]})

        await dispatcher.run_job(job)

        assert job.status is JobStatus.RETRYING
        await asyncio.sleep(0.05)
        retry = dispatcher._queue.get_nowait()
        assert retry.job_id == job.job_id
        assert retry.attempt == 2
        assert retry.items == ["b"]
        assert retry.last_error == "1 item(s) failed"

    async def test_handler_exception_retries_whole_job(
        self, dispatcher: WorkQueueDispatcher
    ) -> None:
        async def broken(job: Job) -> JobResult:
            raise RuntimeError("database down")

        dispatcher.register(JobType.RESCORE, broken)
        job = Job(JobType.RESCORE, {"items": ["a", "b"]})

        result = await dispatcher.run_job(job)

        assert result.error == "database down"
        await asyncio.sleep(0.05)
        retry = dispatcher._queue.get_nowait()
        assert retry.items == ["a", "b"]
        assert retry.last_error == "database down"

    async def test_exhausted_attempts_go_to_dead_letters(
        self, dispatcher: WorkQueueDispatcher
    ) -> None:
        async def partial(job: Job) -> JobResult:
            return JobResult(processed=["a"], failed_items=["b"])

        dispatcher.register(JobType.SEND_FOR_SCORING, partial)
        job = Job(JobType.SEND_FOR_SCORING, {"items": ["a", "b"]}, attempt=3)

        await dispatcher.run_job(job)

        assert job.status is JobStatus.FAILED
        assert dispatcher.dead_letters == [job]
        assert job.items == ["b"]
        assert dispatcher.get_stats()["jobs_failed"] == 1
        await asyncio.sleep(0.05)
        assert dispatcher.queue_length == 0

    async def test_none_result_counts_as_success(
        self, dispatcher: WorkQueueDispatcher
    ) -> None:
        async def quiet(job: Job) -> None:
            return None

        dispatcher.register(JobType.RESCORE, quiet)
        job = Job(JobType.RESCORE)
        assert (await dispatcher.run_job(job)).ok
        assert job.status is JobStatus.SUCCEEDED


class TestWorkers:
    """Tests for the background workers."""

    async def test_retry_until_success(self, dispatcher: WorkQueueDispatcher) -> None:
        attempts: list[list[str]] = []
        done = asyncio.Event()

        async def flaky(job: Job) -> JobResult:
            attempts.append(job.items)
            if job.attempt == 1:
                return JobResult(processed=["a"], failed_items=["b"])
            done.set()
            return JobResult(processed=job.items)

        dispatcher.register(JobType.SEND_FOR_SCORING, flaky)
        await dispatcher.start()
        try:
            dispatcher.enqueue(JobType.SEND_FOR_SCORING, {"items": ["a", "b"]})
            await asyncio.wait_for(done.wait(), timeout=2.0)
            await dispatcher.join()
        finally:
            await dispatcher.stop()

        assert attempts == [["a", "b"], ["b"]]
        stats = dispatcher.get_stats()
        assert stats["jobs_retried"] == 1
        assert stats["jobs_succeeded"] == 1
        assert stats["running"] is False

    async def test_start_and_stop(self, dispatcher: WorkQueueDispatcher) -> None:
        await dispatcher.start()
        assert dispatcher.is_running
        await dispatcher.start()
        await dispatcher.stop()
        assert not dispatcher.is_running
        assert dispatcher.uptime_seconds == 0.0
