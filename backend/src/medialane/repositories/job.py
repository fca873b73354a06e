"""Job repository.

Provides the race-free claim primitive of the work queue: a conditional
UPDATE that only one of several concurrent claimers can win.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from medialane.core.timezone import utcnow
from medialane.models.job import Job, JobStatus


class JobRepository:
    """Repository for Job entities."""

    def __init__(self, session: AsyncSession):
        """Initialize repository with database session.

        Args:
            session: SQLAlchemy async session for database operations
        """
        self.session = session

    async def add(self, job: Job) -> Job:
        """Persist new job to database.

        Args:
            job: Job entity to persist

        Returns:
            Persisted job with generated ID
        """
        self.session.add(job)
        await self.session.flush()
        return job

    async def get_by_id(self, job_id: UUID) -> Job | None:
        """Retrieve job by ID."""
        result = await self.session.execute(select(Job).where(Job.id == job_id))  # type: ignore[arg-type]
        return result.scalar_one_or_none()

    async def peek_next_eligible(self, now: datetime) -> Job | None:
        """Earliest PENDING job whose process_after has passed.

        Query explanation:
        - WHERE status = 'PENDING' AND process_after <= now
        - ORDER BY process_after ASC: Oldest eligible first
        - LIMIT 1

        No row lock is taken; ownership is decided by try_claim.
        """
        result = await self.session.execute(
            select(Job)
            .where(
                Job.status == JobStatus.PENDING,  # type: ignore[arg-type]
                Job.process_after <= now,  # type: ignore[arg-type]
            )
            .order_by(Job.process_after.asc())  # type: ignore[attr-defined]
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def try_claim(self, job_id: UUID) -> bool:
        """Flip PENDING -> PROCESSING and increment attempts, only if still PENDING.

        Query explanation:
        - UPDATE jobs SET status = 'PROCESSING', attempts = attempts + 1
        - WHERE id = :id AND status = 'PENDING'
        - rowcount = 0 means another worker won the race

        Returns:
            True if this caller now owns the job
        """
        result = await self.session.execute(
            update(Job)
            .where(
                Job.id == job_id,  # type: ignore[arg-type]
                Job.status == JobStatus.PENDING,  # type: ignore[arg-type]
            )
            .values(
                status=JobStatus.PROCESSING,
                attempts=Job.attempts + 1,
                updated_at=utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        await self.session.flush()
        return result.rowcount == 1  # type: ignore[attr-defined]

    async def mark_done(self, job_id: UUID) -> None:
        """Set job DONE."""
        await self.session.execute(
            update(Job)
            .where(Job.id == job_id)  # type: ignore[arg-type]
            .values(status=JobStatus.DONE, updated_at=utcnow())
        )
        await self.session.flush()

    async def mark_failed(self, job_id: UUID, error: str) -> None:
        """Set job terminally FAILED with error message (truncated to 1000 characters)."""
        await self.session.execute(
            update(Job)
            .where(Job.id == job_id)  # type: ignore[arg-type]
            .values(status=JobStatus.FAILED, error=error[:1000], updated_at=utcnow())
        )
        await self.session.flush()

    async def schedule_retry(self, job_id: UUID, error: str, process_after: datetime) -> None:
        """Return job to PENDING, eligible again at process_after."""
        await self.session.execute(
            update(Job)
            .where(Job.id == job_id)  # type: ignore[arg-type]
            .values(
                status=JobStatus.PENDING,
                error=error[:1000],
                process_after=process_after,
                updated_at=utcnow(),
            )
        )
        await self.session.flush()

    async def list_by_type(self, job_type: str, status: JobStatus | None = None) -> list[Job]:
        """Jobs of one type, oldest first, optionally filtered by status."""
        stmt = select(Job).where(Job.type == job_type)  # type: ignore[arg-type]
        if status is not None:
            stmt = stmt.where(Job.status == status)  # type: ignore[arg-type]
        result = await self.session.execute(stmt.order_by(Job.created_at.asc()))  # type: ignore[attr-defined]
        return list(result.scalars().all())

    async def requeue_stale_processing(self, updated_before: datetime) -> int:
        """Move PROCESSING jobs last touched before `updated_before` back to PENDING.

        Returns:
            Number of jobs requeued
        """
        result = await self.session.execute(
            update(Job)
            .where(
                Job.status == JobStatus.PROCESSING,  # type: ignore[arg-type]
                Job.updated_at < updated_before,  # type: ignore[arg-type]
            )
            .values(status=JobStatus.PENDING, updated_at=utcnow())
        )
        await self.session.flush()
        return result.rowcount  # type: ignore[attr-defined]
