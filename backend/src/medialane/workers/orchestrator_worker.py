"""Job orchestrator worker.

Claims one job at a time from the durable queue and dispatches it to the
handler registered for its type. Handlers signal failure by raising; the
queue then schedules a retry with linear backoff or marks the job FAILED.
"""

import asyncio
from datetime import timedelta
from typing import Any, Awaitable, Callable

import structlog

from medialane.services.jobs.queue import JobQueue

logger = structlog.get_logger(__name__)

JobHandler = Callable[[dict[str, Any]], Awaitable[None]]

# Jobs left PROCESSING by a crashed worker become claimable again after this long
STALE_JOB_AFTER = timedelta(minutes=10)

ERROR_BACKOFF_SECONDS = 5


class Orchestrator:
    """Single-threaded job dispatch loop."""

    def __init__(self, queue: JobQueue, handlers: dict[str, JobHandler], poll_interval: float = 2.0):
        """Initialize orchestrator.

        Args:
            queue: Durable job queue
            handlers: Job type -> async handler taking the job payload
            poll_interval: Idle sleep between empty claims, in seconds
        """
        self.queue = queue
        self.handlers = handlers
        self.poll_interval = poll_interval

    async def process_next_job(self) -> bool:
        """Claim and run one job.

        Returns:
            True if a job was claimed (whatever its outcome), False if none was eligible
        """
        job = await self.queue.claim()
        if job is None:
            return False

        log = logger.bind(job_id=str(job.id), job_type=job.type, attempt=job.attempts)
        handler = self.handlers.get(job.type)

        if handler is None:
            log.warning("job.unknown_type")
            await self.queue.complete(job.id)
            return True

        log.debug("job.started")

        try:
            await handler(job.payload)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            log.error("job.failed", error=str(e), error_type=type(e).__name__)
            await self.queue.fail(job.id, str(e) or type(e).__name__)
            return True

        await self.queue.complete(job.id)
        log.debug("job.completed")
        return True

    async def run(self) -> None:
        """Main orchestrator loop. Sleeps only when no job was claimed."""
        await self.queue.recover_stale(STALE_JOB_AFTER)

        logger.info(
            "worker.started",
            worker_type="orchestrator",
            poll_interval=self.poll_interval,
            job_types=sorted(self.handlers),
        )

        try:
            while True:
                try:
                    claimed = await self.process_next_job()
                    if not claimed:
                        await asyncio.sleep(self.poll_interval)

                except asyncio.CancelledError:
                    raise

                except Exception as e:
                    logger.error(
                        "worker.error",
                        worker_type="orchestrator",
                        error_type=type(e).__name__,
                        error_message=str(e),
                        exc_info=True,
                    )
                    await asyncio.sleep(ERROR_BACKOFF_SECONDS)

        except asyncio.CancelledError:
            logger.info("worker.stopped", worker_type="orchestrator")
            raise
