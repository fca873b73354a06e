"""Tests for the durable job queue: claiming, backoff and terminal failure."""

import asyncio
from datetime import datetime, timedelta

import pytest

from medialane.core.timezone import utcnow
from medialane.models.job import JobStatus
from medialane.services.jobs.queue import MAX_ATTEMPTS_EXCEEDED, JobQueue


class FakeClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock(utcnow())


@pytest.fixture
def queue(uow_factory, clock):
    return JobQueue(uow_factory, default_max_attempts=3, retry_base_ms=5000, clock=clock)


async def get_job(uow_factory, job_id):
    async with await uow_factory() as uow:
        return await uow.jobs.get_by_id(job_id)


@pytest.mark.asyncio
async def test_enqueue_claim_complete(queue, uow_factory):
    job_id = await queue.enqueue("STATS_UPDATE", {"contractAddress": "0xabc"})

    job = await queue.claim()
    assert job.id == job_id
    assert job.status == JobStatus.PROCESSING
    assert job.attempts == 1
    assert job.payload == {"contractAddress": "0xabc"}

    await queue.complete(job_id)

    assert (await get_job(uow_factory, job_id)).status == JobStatus.DONE
    assert await queue.claim() is None


@pytest.mark.asyncio
async def test_claim_empty_queue_returns_none(queue):
    assert await queue.claim() is None


@pytest.mark.asyncio
async def test_claim_respects_process_after(queue, clock):
    await queue.enqueue("STATS_UPDATE", {}, process_after=clock() + timedelta(seconds=30))

    assert await queue.claim() is None

    clock.advance(seconds=30)
    assert await queue.claim() is not None


@pytest.mark.asyncio
async def test_claim_takes_earliest_process_after_first(queue, clock):
    later = await queue.enqueue("STATS_UPDATE", {"n": 2}, process_after=clock() - timedelta(seconds=1))
    earlier = await queue.enqueue("STATS_UPDATE", {"n": 1}, process_after=clock() - timedelta(seconds=5))

    assert (await queue.claim()).id == earlier
    assert (await queue.claim()).id == later


@pytest.mark.asyncio
async def test_stale_claimers_race_exactly_one_wins(queue, uow_factory, clock):
    """Workers on separate connections peek the same job; only one conditional update takes it."""
    job_id = await queue.enqueue("STATS_UPDATE", {})

    workers = 4
    all_peeked = asyncio.Barrier(workers)

    async def claimer() -> bool:
        async with await uow_factory() as uow:
            candidate = await uow.jobs.peek_next_eligible(clock())
            assert candidate.id == job_id
            await all_peeked.wait()
            return await uow.jobs.try_claim(candidate.id)

    results = await asyncio.gather(*(claimer() for _ in range(workers)))

    assert results.count(True) == 1
    job = await get_job(uow_factory, job_id)
    assert job.status == JobStatus.PROCESSING
    assert job.attempts == 1


@pytest.mark.asyncio
async def test_fail_schedules_linear_backoff(queue, uow_factory, clock):
    job_id = await queue.enqueue("METADATA_FETCH", {})

    await queue.claim()
    await queue.fail(job_id, "gateway down")
    first = await get_job(uow_factory, job_id)
    assert first.status == JobStatus.PENDING
    assert first.error == "gateway down"
    assert first.process_after == clock() + timedelta(milliseconds=5000)

    clock.advance(seconds=5)
    await queue.claim()
    await queue.fail(job_id, "gateway down again")
    second = await get_job(uow_factory, job_id)
    assert second.process_after == clock() + timedelta(milliseconds=10000)
    assert second.process_after > first.process_after


@pytest.mark.asyncio
async def test_fail_with_custom_backoff_base(queue, uow_factory, clock):
    job_id = await queue.enqueue("METADATA_FETCH", {})
    await queue.claim()

    await queue.fail(job_id, "boom", retry_after_base_ms=100)

    job = await get_job(uow_factory, job_id)
    assert job.process_after == clock() + timedelta(milliseconds=100)


@pytest.mark.asyncio
async def test_fail_after_last_attempt_is_terminal(queue, uow_factory, clock):
    job_id = await queue.enqueue("METADATA_FETCH", {}, max_attempts=2)

    await queue.claim()
    await queue.fail(job_id, "first")
    clock.advance(minutes=1)
    await queue.claim()
    await queue.fail(job_id, "second")

    job = await get_job(uow_factory, job_id)
    assert job.status == JobStatus.FAILED
    assert job.attempts == 2
    assert job.error == "second"

    clock.advance(hours=1)
    assert await queue.claim() is None


@pytest.mark.asyncio
async def test_claim_force_fails_job_at_attempt_budget(queue, uow_factory):
    job_id = await queue.enqueue("METADATA_FETCH", {}, max_attempts=1)
    async with await uow_factory() as uow:
        job = await uow.jobs.get_by_id(job_id)
        job.attempts = 1
        uow.session.add(job)

    assert await queue.claim() is None

    job = await get_job(uow_factory, job_id)
    assert job.status == JobStatus.FAILED
    assert job.error == MAX_ATTEMPTS_EXCEEDED


@pytest.mark.asyncio
async def test_error_truncated_to_1000_characters(queue, uow_factory):
    job_id = await queue.enqueue("METADATA_FETCH", {}, max_attempts=1)
    await queue.claim()

    await queue.fail(job_id, "x" * 5000)

    assert len((await get_job(uow_factory, job_id)).error) == 1000


@pytest.mark.asyncio
async def test_recover_stale_requeues_processing_jobs(queue, uow_factory):
    job_id = await queue.enqueue("STATS_UPDATE", {})
    await queue.claim()

    assert await queue.recover_stale(timedelta(minutes=10)) == 0
    assert await queue.recover_stale(timedelta(seconds=-1)) == 1

    job = await get_job(uow_factory, job_id)
    assert job.status == JobStatus.PENDING
    assert job.attempts == 1
