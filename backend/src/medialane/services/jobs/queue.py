"""Durable job queue backed by the jobs table.

Claiming is race-free without row locks: a conditional UPDATE flips a job
from PENDING to PROCESSING, and only the claimer whose UPDATE matched a row
owns the job. Several orchestrator processes can share one table.
"""

from datetime import datetime, timedelta
from typing import Any, Callable
from uuid import UUID

import structlog

from medialane.core.timezone import utcnow
from medialane.models.job import Job
from medialane.uow import UnitOfWork

logger = structlog.get_logger(__name__)

MAX_ATTEMPTS_EXCEEDED = "Max attempts exceeded"


class JobQueue:
    """Enqueue, claim, complete and fail jobs."""

    def __init__(
        self,
        uow_factory,
        default_max_attempts: int = 3,
        retry_base_ms: int = 5000,
        clock: Callable[[], datetime] = utcnow,
    ):
        """Initialize queue.

        Args:
            uow_factory: Factory returned by create_uow_factory
            default_max_attempts: max_attempts for jobs enqueued without one
            retry_base_ms: Linear backoff base used by fail()
            clock: Returns naive UTC "now" (injectable for tests)
        """
        self.uow_factory = uow_factory
        self.default_max_attempts = default_max_attempts
        self.retry_base_ms = retry_base_ms
        self.clock = clock

    async def enqueue(
        self,
        job_type: str,
        payload: dict[str, Any],
        *,
        process_after: datetime | None = None,
        max_attempts: int | None = None,
        uow: UnitOfWork | None = None,
    ) -> UUID:
        """Create a PENDING job.

        Args:
            job_type: JobType value
            payload: JSON-serializable job payload
            process_after: Earliest eligibility time (default: now)
            max_attempts: Attempt budget (default: queue default)
            uow: Join this transaction instead of committing on its own

        Returns:
            ID of the new job
        """
        now = self.clock()
        job = Job(
            type=job_type,
            payload=payload,
            process_after=process_after or now,
            max_attempts=max_attempts or self.default_max_attempts,
            created_at=now,
            updated_at=now,
        )

        if uow is not None:
            await uow.jobs.add(job)
        else:
            async with await self.uow_factory() as own_uow:
                await own_uow.jobs.add(job)

        logger.debug("job.enqueued", job_id=str(job.id), job_type=job_type)
        return job.id

    async def claim(self) -> Job | None:
        """Claim the earliest eligible job.

        Steps:
        1. Peek the earliest PENDING job with process_after <= now
        2. Job already at its attempt budget: force FAILED, return None
        3. Conditional UPDATE ... WHERE id = :id AND status = 'PENDING'
        4. Zero rows updated: another worker won, return None

        Returns:
            The claimed job (status PROCESSING, attempts incremented) or None
        """
        async with await self.uow_factory() as uow:
            candidate = await uow.jobs.peek_next_eligible(self.clock())
            if candidate is None:
                return None

            if candidate.attempts >= candidate.max_attempts:
                await uow.jobs.mark_failed(candidate.id, MAX_ATTEMPTS_EXCEEDED)
                logger.warning(
                    "job.max_attempts_exceeded",
                    job_id=str(candidate.id),
                    job_type=candidate.type,
                    attempts=candidate.attempts,
                )
                return None

            if not await uow.jobs.try_claim(candidate.id):
                logger.debug("job.claim_lost", job_id=str(candidate.id))
                return None

            await uow.session.refresh(candidate)
            return candidate

    async def complete(self, job_id: UUID) -> None:
        """Mark job DONE."""
        async with await self.uow_factory() as uow:
            await uow.jobs.mark_done(job_id)

    async def fail(self, job_id: UUID, error: str, retry_after_base_ms: int | None = None) -> None:
        """Record a failed attempt.

        While attempts remain the job returns to PENDING with
        process_after = now + base * attempts; otherwise it becomes FAILED.

        Args:
            job_id: Job that failed
            error: Failure message (stored truncated to 1000 characters)
            retry_after_base_ms: Backoff base, defaults to the queue setting
        """
        base_ms = self.retry_base_ms if retry_after_base_ms is None else retry_after_base_ms

        async with await self.uow_factory() as uow:
            job = await uow.jobs.get_by_id(job_id)
            if job is None:
                logger.warning("job.fail.not_found", job_id=str(job_id))
                return

            if job.attempts < job.max_attempts:
                process_after = self.clock() + timedelta(milliseconds=base_ms * job.attempts)
                await uow.jobs.schedule_retry(job_id, error, process_after)
                logger.info(
                    "job.retry_scheduled",
                    job_id=str(job_id),
                    job_type=job.type,
                    attempts=job.attempts,
                    max_attempts=job.max_attempts,
                    process_after=process_after.isoformat(),
                )
            else:
                await uow.jobs.mark_failed(job_id, error)
                logger.error(
                    "job.failed_permanently",
                    job_id=str(job_id),
                    job_type=job.type,
                    attempts=job.attempts,
                    error=error[:200],
                )

    async def recover_stale(self, older_than: timedelta) -> int:
        """Return PROCESSING jobs untouched for `older_than` to PENDING.

        Jobs stay PROCESSING when a worker dies mid-handler. The attempt they
        consumed still counts against max_attempts.

        Returns:
            Number of jobs requeued
        """
        async with await self.uow_factory() as uow:
            count = await uow.jobs.requeue_stale_processing(self.clock() - older_than)
        if count:
            logger.warning("job.stale_recovered", count=count)
        return count
